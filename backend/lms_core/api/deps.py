from datetime import datetime, timezone
from typing import Annotated

from fastapi import Depends, Header, HTTPException

from lms_core.crud import FileStorage, MemoryFileStorage, MemoryStore

store = MemoryStore()
file_storage = MemoryFileStorage()


def get_store() -> MemoryStore:
    return store


def get_file_storage() -> FileStorage:
    return file_storage


def get_now() -> datetime:
    return datetime.now(timezone.utc)


def get_current_user_id(
    x_user_id: Annotated[str | None, Header()] = None,
) -> str:
    """Caller identity, as forwarded by the gateway in the X-User-Id header."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Missing X-User-Id header.")
    return x_user_id.strip()


StoreDep = Annotated[MemoryStore, Depends(get_store)]
StorageDep = Annotated[FileStorage, Depends(get_file_storage)]
NowDep = Annotated[datetime, Depends(get_now)]
CurrentUser = Annotated[str, Depends(get_current_user_id)]
