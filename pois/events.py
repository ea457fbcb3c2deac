"""
In-process event bus for POI and track-link mutations.

Services publish one event after each committed write; an audit consumer (or
any other listener) subscribes with an asyncio.Queue.

Event shape::

    {"entity": "poi" | "track_poi", "action": str, "id": str,
     "changed_fields": list[str], "ts": float, ...}
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

logger = logging.getLogger(__name__)

ENTITY_POI = "poi"
ENTITY_TRACK_POI = "track_poi"

ACTION_CREATED = "created"
ACTION_UPDATED = "updated"
ACTION_MERGED = "merged"
ACTION_DELETED = "deleted"
ACTION_LINKED = "linked"
ACTION_UNLINKED = "unlinked"

_subscribers: set[asyncio.Queue] = set()


def subscribe(maxsize: int = 256) -> asyncio.Queue:
    """Subscribe to all mutation events. Returns a Queue to await on."""
    q: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
    _subscribers.add(q)
    return q


def unsubscribe(q: asyncio.Queue) -> None:
    """Remove a subscriber queue."""
    _subscribers.discard(q)


def publish(
    entity: str,
    action: str,
    entity_id: Any,
    changed_fields: list[str] | None = None,
    **extra: Any,
) -> dict[str, Any]:
    """Publish a mutation event to every subscriber (non-blocking)."""
    event: dict[str, Any] = {
        "entity": entity,
        "action": action,
        "id": str(entity_id),
        "changed_fields": list(changed_fields or []),
        "ts": time.time(),
        **extra,
    }
    logger.debug("%s %s %s", entity, action, event["id"])
    for q in list(_subscribers):
        try:
            q.put_nowait(event)
        except asyncio.QueueFull:
            # Drop oldest to keep up
            try:
                q.get_nowait()
                q.put_nowait(event)
            except (asyncio.QueueEmpty, asyncio.QueueFull):
                logger.warning("Dropped %s %s event for slow subscriber", entity, action)
    return event
