import hashlib
import logging
import os
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Protocol

from app.core.errors import ExternalServiceError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass(frozen=True)
class StoredFile:
    storage_key: str
    file_name: str
    content_type: str
    size: int
    checksum: str


class FileStore(Protocol):
    def write(self, data: bytes, file_name: str, content_type: str) -> StoredFile: ...

    def read(self, storage_key: str) -> bytes: ...

    def delete(self, storage_key: str) -> None: ...


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


class LocalFileStore:
    """
    Flat directory of blobs keyed by "<utc timestamp>-<sanitized file name>".

    The checksum is only used to detect corruption, not to deduplicate.
    """

    def __init__(self, base_path: str):
        self.base_path = Path(base_path)

    def _path_for(self, storage_key: str) -> Path:
        if not storage_key or "/" in storage_key or "\\" in storage_key or storage_key.startswith("."):
            raise ValidationError(f"Invalid storage key: {storage_key!r}")
        return self.base_path / storage_key

    def write(self, data: bytes, file_name: str, content_type: str) -> StoredFile:
        safe_name = _UNSAFE_CHARS.sub("_", os.path.basename(file_name)).strip("._") or "file"
        timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
        storage_key = f"{timestamp}-{safe_name}"

        try:
            self.base_path.mkdir(parents=True, exist_ok=True)
            self._path_for(storage_key).write_bytes(data)
        except OSError as exc:
            raise ExternalServiceError("file_store", f"write failed for {storage_key}: {exc}") from exc

        return StoredFile(
            storage_key=storage_key,
            file_name=file_name,
            content_type=content_type,
            size=len(data),
            checksum=sha256_hex(data),
        )

    def read(self, storage_key: str) -> bytes:
        path = self._path_for(storage_key)
        if not path.exists():
            raise NotFoundError(f"Stored file not found: {storage_key}")
        try:
            return path.read_bytes()
        except OSError as exc:
            raise ExternalServiceError("file_store", f"read failed for {storage_key}: {exc}") from exc

    def delete(self, storage_key: str) -> None:
        try:
            self._path_for(storage_key).unlink(missing_ok=True)
        except OSError as exc:
            raise ExternalServiceError("file_store", f"delete failed for {storage_key}: {exc}") from exc


def discard_quietly(file_store: FileStore, stored: Optional[StoredFile]) -> None:
    """Best-effort removal of a blob whose database record was never written."""
    if stored is None:
        return
    try:
        file_store.delete(stored.storage_key)
    except Exception:
        logger.exception("Orphan file cleanup failed", extra={"storage_key": stored.storage_key})


def file_store_from_env() -> LocalFileStore:
    return LocalFileStore(os.getenv("FILE_STORAGE_PATH", "./storage"))
