from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from lms_core.api.deps import get_file_storage, get_store
from lms_core.crud import MemoryFileStorage, MemoryStore
from lms_core.main import app


@pytest.fixture(scope="function")
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture(scope="function")
def storage() -> MemoryFileStorage:
    return MemoryFileStorage()


@pytest_asyncio.fixture(scope="function")
async def client(
    store: MemoryStore, storage: MemoryFileStorage
) -> AsyncGenerator[AsyncClient, None]:
    """
    Client whose requests use a fresh store and file storage for every test.
    """
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_file_storage] = lambda: storage
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as c:
        yield c
    app.dependency_overrides.clear()
