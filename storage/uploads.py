from __future__ import annotations

import io
from contextlib import contextmanager
from functools import lru_cache
from pathlib import Path, PurePosixPath
from threading import Lock
from typing import Dict, Iterator, List, Optional, TextIO

from settings import get_settings


class UploadBucket:
    """Holds raw CSV uploads keyed by ``<import_id>/<filename>``.

    With a ``root_path`` the objects are written to disk as well, so an import
    can be replayed after a restart.
    """

    def __init__(self, root_path: Optional[Path] = None) -> None:
        self.root_path = root_path
        self._objects: Dict[str, bytes] = {}
        self._lock = Lock()
        if root_path:
            root_path.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def object_key(import_id: str, filename: str) -> str:
        return f"{import_id}/{PurePosixPath(filename).name or 'upload.csv'}"

    def put_upload(self, import_id: str, filename: str, data: bytes) -> str:
        key = self.object_key(import_id, filename)
        with self._lock:
            self._objects[key] = data
            if self.root_path:
                path = self.root_path / key
                path.parent.mkdir(parents=True, exist_ok=True)
                path.write_bytes(data)
        return key

    def get_object(self, key: str) -> bytes:
        with self._lock:
            data = self._objects.get(key)
        if data is not None:
            return data

        if self.root_path:
            path = self.root_path / key
            if path.is_file():
                data = path.read_bytes()
                with self._lock:
                    self._objects[key] = data
                return data

        raise KeyError(f"Upload {key!r} not found.")

    @contextmanager
    def open_text(self, key: str, encoding: str = "utf-8") -> Iterator[TextIO]:
        """Yield a text handle suitable for ``csv`` readers."""
        buffer = io.StringIO(self.get_object(key).decode(encoding), newline="")
        try:
            yield buffer
        finally:
            buffer.close()

    def list_keys(self) -> List[str]:
        with self._lock:
            keys = set(self._objects)
        if self.root_path:
            keys.update(
                path.relative_to(self.root_path).as_posix()
                for path in self.root_path.rglob("*")
                if path.is_file()
            )
        return sorted(keys)


@lru_cache
def build_default_bucket(root_path: Optional[str] = None) -> UploadBucket:
    settings = get_settings()
    bucket_root = settings.upload_root_path if root_path is None else root_path
    return UploadBucket(root_path=Path(bucket_root) if bucket_root else None)
