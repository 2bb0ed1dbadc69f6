import asyncio
import pytest
from mockdb import MockDatabase, StoreConfig


@pytest.fixture()
def db(monkeypatch):
    monkeypatch.delenv('DEBUG_DB', raising=False)
    monkeypatch.delenv('LOG_LEVEL', raising=False)
    database = MockDatabase(StoreConfig())
    yield database
    database.reset()


@pytest.fixture()
def run():
    """Drive one coroutine to completion on a fresh event loop."""
    return asyncio.run


@pytest.fixture()
def seed(db, run):
    """create() shortcut returning the committed document."""
    def _seed(collection, **fields):
        return run(db.create(collection, fields))
    return _seed