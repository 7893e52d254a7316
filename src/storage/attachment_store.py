"""Attachment storage for ticket and report uploads."""

from pathlib import Path
from typing import Protocol
from uuid import uuid4


class AttachmentStoreProtocol(Protocol):
    """Protocol for attachment storage backends."""

    async def save(self, data: bytes, extension: str) -> str:
        """Store bytes and return a retrievable path."""
        ...

    async def delete(self, path: str) -> bool:
        """Delete a stored file by path."""
        ...


class LocalAttachmentStore:
    """Local filesystem attachment storage."""

    def __init__(self, base_path: str = "./uploads", base_url: str = "/uploads"):
        """Initialize local attachment store."""
        self.base_path = Path(base_path)
        self.base_url = base_url.rstrip("/")
        self.base_path.mkdir(parents=True, exist_ok=True)

    async def save(self, data: bytes, extension: str) -> str:
        """Write the file under a random name and return its URL path."""
        filename = f"{uuid4()}.{extension.lstrip('.').lower()}"
        (self.base_path / filename).write_bytes(data)
        return f"{self.base_url}/{filename}"

    async def delete(self, path: str) -> bool:
        """Delete a stored file; False if it does not exist."""
        filepath = self.base_path / Path(path).name
        if not filepath.exists():
            return False
        filepath.unlink()
        return True
