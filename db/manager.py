"""
Database connection manager module.

Provides a singleton DatabaseManager class for the MongoDB connection and
Beanie initialization, rebinding the client when the event loop changes.
"""

from __future__ import annotations

import asyncio
import logging
import os
import threading
from datetime import UTC
from typing import Any, Final, Self

import certifi
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

logger = logging.getLogger(__name__)

DEFAULT_MONGO_URI: Final[str] = "mongodb://localhost:27017"
MONGODB_URI_ENV_VAR: Final[str] = "MONGODB_URI"


def _get_mongo_uri() -> str:
    return os.getenv(MONGODB_URI_ENV_VAR, "").strip() or DEFAULT_MONGO_URI


class DatabaseManager:
    """
    Singleton class to manage the MongoDB client and database connection.

    Environment Variables:
        MONGODB_URI: Optional MongoDB URI override
        MONGODB_DATABASE: Database name (default: trackly)
        MONGODB_MAX_POOL_SIZE: Connection pool size (default: 50)
        MONGODB_SERVER_SELECTION_TIMEOUT_MS: Server selection timeout (default: 10000)
    """

    _instance: DatabaseManager | None = None
    _lock = threading.Lock()

    def __new__(cls) -> Self:
        """Create or return the singleton instance."""
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._initialized = False
        return cls._instance

    def __init__(self) -> None:
        if not getattr(self, "_initialized", False):
            self._client: AsyncIOMotorClient | None = None
            self._db: AsyncIOMotorDatabase | None = None
            self._bound_loop: asyncio.AbstractEventLoop | None = None
            self._beanie_initialized = False
            self._initialized = True

            self._max_pool_size = int(os.getenv("MONGODB_MAX_POOL_SIZE", "50"))
            self._server_selection_timeout_ms = int(
                os.getenv("MONGODB_SERVER_SELECTION_TIMEOUT_MS", "10000"),
            )
            self._db_name = os.getenv("MONGODB_DATABASE", "trackly")

    def _initialize_client(self) -> None:
        mongo_uri = _get_mongo_uri()
        client_kwargs: dict[str, Any] = {
            "tz_aware": True,
            "tzinfo": UTC,
            "maxPoolSize": self._max_pool_size,
            "serverSelectionTimeoutMS": self._server_selection_timeout_ms,
            "retryWrites": True,
            "retryReads": True,
            "appname": "Trackly",
        }
        if mongo_uri.startswith("mongodb+srv://"):
            client_kwargs.update(tls=True, tlsCAFile=certifi.where())

        try:
            self._client = AsyncIOMotorClient(mongo_uri, **client_kwargs)
            self._db = self._client[self._db_name]
            self._bound_loop = self._get_current_loop()
            logger.info("MongoDB client initialized for database %s", self._db_name)
        except Exception:
            logger.exception("Failed to initialize MongoDB client")
            raise

    @staticmethod
    def _get_current_loop() -> asyncio.AbstractEventLoop | None:
        try:
            return asyncio.get_running_loop()
        except RuntimeError:
            return None

    def _reset(self) -> None:
        if self._client:
            try:
                self._client.close()
            except Exception as e:
                logger.warning("Error closing MongoDB client: %s", str(e))
        self._client = None
        self._db = None
        self._bound_loop = None
        self._beanie_initialized = False

    def _check_loop_and_reconnect(self) -> None:
        current_loop = self._get_current_loop()
        if self._client is None or self._bound_loop is None:
            return
        if self._bound_loop.is_closed() or (
            current_loop is not None and current_loop is not self._bound_loop
        ):
            logger.info("Event loop changed, reconnecting MongoDB client")
            self._reset()

    @property
    def db(self) -> AsyncIOMotorDatabase:
        """Get the database instance, initializing if necessary."""
        self._check_loop_and_reconnect()
        if self._db is None:
            self._initialize_client()
        if self._db is None:
            msg = "Database instance could not be initialized."
            raise RuntimeError(msg)
        return self._db

    async def init_beanie(self) -> None:
        """Initialize Beanie ODM with all document models (creates indexes)."""
        self._check_loop_and_reconnect()
        if self._beanie_initialized and self._db is not None:
            logger.debug("Beanie already initialized, skipping")
            return

        from beanie import init_beanie

        from db.models import ALL_DOCUMENT_MODELS

        await init_beanie(database=self.db, document_models=ALL_DOCUMENT_MODELS)
        self._beanie_initialized = True
        logger.info(
            "Beanie ODM initialized with %d document models",
            len(ALL_DOCUMENT_MODELS),
        )

    async def cleanup_connections(self) -> None:
        """Close the MongoDB client."""
        if self._client:
            logger.info("Closing MongoDB client connections...")
        self._reset()


# Singleton instance
db_manager = DatabaseManager()
