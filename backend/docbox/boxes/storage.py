"""Storage backends for files uploaded into boxes."""

import asyncio
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol, runtime_checkable


@runtime_checkable
class StorageBackend(Protocol):
    async def save(self, data: bytes, extension: str, prefix: str = "") -> str:
        """Save file data and return the storage key."""
        ...

    async def read(self, storage_path: str) -> bytes:
        ...

    async def delete(self, storage_path: str) -> None:
        ...

    async def exists(self, storage_path: str) -> bool:
        ...


class LocalStorage:
    """Filesystem backend laid out as {base}/{prefix}/{yyyy}/{mm}/{uuid}.{ext}.

    The prefix is the organization id so one tenant's files never share a
    directory with another's.
    """

    def __init__(self, base_path: str) -> None:
        self.base_path = Path(base_path)

    def _generate_path(self, extension: str, prefix: str) -> str:
        now = datetime.now(timezone.utc)
        filename = f"{uuid.uuid4().hex}.{extension.lstrip('.') or 'bin'}"
        parts = [p for p in (prefix, now.strftime("%Y"), now.strftime("%m"), filename) if p]
        return "/".join(parts)

    def _full_path(self, storage_path: str) -> Path:
        full = (self.base_path / storage_path).resolve()
        if self.base_path.resolve() not in full.parents:
            raise FileNotFoundError(f"Storage path escapes the storage root: {storage_path}")
        return full

    async def save(self, data: bytes, extension: str, prefix: str = "") -> str:
        storage_path = self._generate_path(extension, prefix)
        full_path = self._full_path(storage_path)
        await asyncio.to_thread(full_path.parent.mkdir, parents=True, exist_ok=True)
        await asyncio.to_thread(full_path.write_bytes, data)
        return storage_path

    async def read(self, storage_path: str) -> bytes:
        full_path = self._full_path(storage_path)
        if not await asyncio.to_thread(full_path.exists):
            raise FileNotFoundError(f"File not found at storage path: {storage_path}")
        return await asyncio.to_thread(full_path.read_bytes)

    async def delete(self, storage_path: str) -> None:
        full_path = self._full_path(storage_path)
        if await asyncio.to_thread(full_path.exists):
            await asyncio.to_thread(full_path.unlink)

    async def exists(self, storage_path: str) -> bool:
        full_path = self._full_path(storage_path)
        return await asyncio.to_thread(full_path.exists)
