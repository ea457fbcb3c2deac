import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]

if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest
from beanie import init_beanie
from mongomock_motor import AsyncMongoMockClient

from db.models import Poi, Track, TrackPoi  # noqa: E402
from pois import events  # noqa: E402


@pytest.fixture
async def beanie_db():
    client = AsyncMongoMockClient()
    database = client["test_db"]
    await init_beanie(database=database, document_models=[Track, Poi, TrackPoi])
    return database


@pytest.fixture
def event_queue():
    q = events.subscribe()
    yield q
    events.unsubscribe(q)
