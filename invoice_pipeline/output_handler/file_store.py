"""
File Store Module.

Keeps the original uploaded bytes so a failed extraction can be retried.
``LocalFileStore`` writes ``<key><ext>`` and a ``<key>.meta.json`` sidecar
holding the original name and MIME type.

Author: ML Engineering Team
"""

import json
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from invoice_pipeline.utils.logger import get_logger
from invoice_pipeline.utils.helpers import ensure_directory, get_file_extension, format_file_size
from invoice_pipeline.utils.exceptions import FileStorageError

# Initialize module logger
logger = get_logger(__name__)

META_SUFFIX = ".meta.json"


@dataclass(frozen=True)
class StoredFile:
    """A file read back from the store."""
    file_key: str
    file_name: str
    mime_type: str
    content: bytes
    stored_at: Optional[datetime] = None

    @property
    def size_bytes(self) -> int:
        return len(self.content)


class FileStore(ABC):
    """Stores and retrieves raw uploaded documents by key."""

    @abstractmethod
    def store(self, file_bytes: bytes, file_name: str, mime_type: str) -> str:
        """Persist bytes and return the generated file key."""

    @abstractmethod
    def retrieve(self, file_key: str) -> StoredFile:
        """Load a stored file. Raises FileStorageError if it is missing."""

    @abstractmethod
    def delete(self, file_key: str) -> bool:
        """Remove a stored file. False if nothing was stored under the key."""


class LocalFileStore(FileStore):
    """
    Filesystem-backed file store.

    Example:
        >>> store = LocalFileStore("data/uploads")
        >>> key = store.store(pdf_bytes, "invoice.pdf", "application/pdf")
        >>> store.retrieve(key).file_name
        'invoice.pdf'
    """

    def __init__(self, upload_dir: Union[str, Path]) -> None:
        self.upload_dir = ensure_directory(upload_dir)
        logger.info(f"LocalFileStore initialized (dir: {self.upload_dir})")

    def _meta_path(self, file_key: str) -> Path:
        return self.upload_dir / f"{file_key}{META_SUFFIX}"

    def _read_meta(self, file_key: str) -> dict:
        meta_path = self._meta_path(file_key)
        if not meta_path.exists():
            raise FileStorageError("retrieve", file_key, "no such file")
        try:
            with open(meta_path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            raise FileStorageError("retrieve", file_key, str(e)) from e

    def store(self, file_bytes: bytes, file_name: str, mime_type: str) -> str:
        file_key = str(uuid.uuid4())
        extension = get_file_extension(file_name)
        data_path = self.upload_dir / f"{file_key}{extension}"
        meta = {
            'file_name': file_name,
            'mime_type': mime_type,
            'data_file': data_path.name,
            'size_bytes': len(file_bytes),
            'stored_at': datetime.now().isoformat(),
        }

        try:
            data_path.write_bytes(file_bytes)
            with open(self._meta_path(file_key), 'w', encoding='utf-8') as f:
                json.dump(meta, f, indent=2)
        except OSError as e:
            logger.error(f"Failed to store {file_name}: {e}")
            raise FileStorageError("store", file_key, str(e)) from e

        logger.debug(f"Stored {file_name} as {data_path.name} ({format_file_size(len(file_bytes))})")
        return file_key

    def retrieve(self, file_key: str) -> StoredFile:
        meta = self._read_meta(file_key)
        data_path = self.upload_dir / meta['data_file']
        try:
            content = data_path.read_bytes()
        except OSError as e:
            raise FileStorageError("retrieve", file_key, str(e)) from e

        stored_at = meta.get('stored_at')
        return StoredFile(
            file_key=file_key,
            file_name=meta['file_name'],
            mime_type=meta['mime_type'],
            content=content,
            stored_at=datetime.fromisoformat(stored_at) if stored_at else None,
        )

    def delete(self, file_key: str) -> bool:
        meta_path = self._meta_path(file_key)
        if not meta_path.exists():
            return False

        meta = self._read_meta(file_key)
        try:
            (self.upload_dir / meta['data_file']).unlink(missing_ok=True)
            meta_path.unlink()
        except OSError as e:
            raise FileStorageError("delete", file_key, str(e)) from e

        logger.info(f"Deleted stored file {file_key}")
        return True
