"""API utilities for FastAPI route handling."""

import functools
import logging
from collections.abc import Callable

from fastapi import HTTPException, status

from core.exceptions import (
    AuthorizationException,
    ConflictException,
    DuplicateResourceException,
    ResourceNotFoundException,
    TracklyException,
    ValidationException,
)


def api_route(logger: logging.Logger):
    """
    Decorator for FastAPI endpoints that provides standardized error handling.

    Wraps async endpoint functions with try/except to:
    - Re-raise HTTPException instances as-is
    - Map custom exceptions to appropriate HTTP status codes
    - Log and convert other exceptions to 500 HTTPException

    Usage:
        @router.get("/api/example")
        @api_route(logger)
        async def my_endpoint():
            # ... business logic ...
            return result
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except HTTPException:
                raise
            except ValidationException as e:
                logger.warning("Validation error in %s: %s", func.__name__, e.message)
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=e.message,
                ) from e
            except ResourceNotFoundException as e:
                logger.info("Resource not found in %s: %s", func.__name__, e.message)
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND,
                    detail=e.message,
                ) from e
            except (DuplicateResourceException, ConflictException) as e:
                logger.warning("Conflict in %s: %s", func.__name__, e.message)
                detail: str | dict = e.message
                if e.details:
                    detail = {"message": e.message, **e.details}
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail=detail,
                ) from e
            except AuthorizationException as e:
                logger.warning(
                    "Authorization failed in %s: %s",
                    func.__name__,
                    e.message,
                )
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail=e.message,
                ) from e
            except TracklyException as e:
                logger.exception(
                    "Application error in %s: %s",
                    func.__name__,
                    e.message,
                )
                raise HTTPException(
                    status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                    detail=e.message,
                ) from e
            except Exception as e:
                logger.exception("Unexpected error in %s", func.__name__)
                raise HTTPException(
                    status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                    detail=str(e),
                ) from e

        return wrapper

    return decorator
