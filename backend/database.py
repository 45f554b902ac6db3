# JSON file-based bookmark store
# The whole collection is one JSON array; every write rewrites the full snapshot.
# There is no locking across requests: concurrent writers may lose updates.

import json
import os
import tempfile
import logging
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from backend.geo import DEFAULT_RADIUS_KM, within_radius

logger = logging.getLogger(__name__)


class StorageFault(Exception):
    """Raised when the bookmark snapshot cannot be written"""


class DuplicateBookmarkId(Exception):
    """Raised when a caller-supplied id already exists in the collection"""

    def __init__(self, bookmark_id: str):
        super().__init__(f"Bookmark id already exists: {bookmark_id}")
        self.bookmark_id = bookmark_id


def now_iso() -> str:
    """UTC timestamp in the same shape the browser client writes (toISOString)"""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def new_bookmark_id() -> str:
    return f"bm_{int(time.time() * 1000)}_{uuid.uuid4().hex[:6]}"


# ─────────────────────────────────────────────────────────────
# Storage backends
# ─────────────────────────────────────────────────────────────

class JsonFileBackend:
    """Snapshot kept in a single pretty-printed JSON file"""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def read(self) -> Optional[str]:
        if not self.path.exists():
            return None
        with open(self.path, "r", encoding="utf-8") as f:
            return f.read()

    def write(self, text: str):
        # write beside the target, then swap it in with one rename
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    def __repr__(self):
        return f"JsonFileBackend({str(self.path)!r})"


class MemoryBackend:
    """Snapshot kept in process memory, serialized like the file backend"""

    def __init__(self, initial: Optional[str] = None):
        self._text = initial

    def read(self) -> Optional[str]:
        return self._text

    def write(self, text: str):
        self._text = text

    def __repr__(self):
        return "MemoryBackend()"


# ─────────────────────────────────────────────────────────────
# Bookmark store
# ─────────────────────────────────────────────────────────────

class BookmarkStore:
    def __init__(self, backend=None):
        self.backend = backend if backend is not None else MemoryBackend()

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "BookmarkStore":
        return cls(JsonFileBackend(path))

    def _load(self) -> List[Dict]:
        try:
            raw = self.backend.read()
        except OSError as e:
            logger.error("Error reading bookmarks from %r: %s", self.backend, e)
            return []
        if not raw or not raw.strip():
            return []
        try:
            data = json.loads(raw)
        except ValueError as e:
            logger.error("Malformed bookmarks snapshot in %r: %s", self.backend, e)
            return []
        if not isinstance(data, list):
            logger.error("Bookmarks snapshot in %r is not a list, ignoring it", self.backend)
            return []
        return [b for b in data if isinstance(b, dict)]

    def _save(self, bookmarks: List[Dict]):
        text = json.dumps(bookmarks, ensure_ascii=False, indent=2, default=str)
        try:
            self.backend.write(text)
        except OSError as e:
            logger.error("Error writing bookmarks to %r: %s", self.backend, e)
            raise StorageFault(str(e)) from e

    def list_bookmarks(self) -> List[Dict]:
        """Get all bookmarks in stored order"""
        return self._load()

    def find_bookmark(self, bookmark_id: str) -> Optional[Dict]:
        for bookmark in self._load():
            if bookmark.get("id") == bookmark_id:
                return bookmark
        return None

    def create_bookmark(self, data: Dict[str, Any]) -> Dict:
        """Add a new bookmark; id is generated when the caller did not supply one"""
        bookmarks = self._load()

        bookmark = dict(data)
        bookmark.pop("updatedAt", None)
        if not bookmark.get("id"):
            bookmark["id"] = new_bookmark_id()
        elif any(b.get("id") == bookmark["id"] for b in bookmarks):
            raise DuplicateBookmarkId(bookmark["id"])
        bookmark["createdAt"] = now_iso()

        bookmarks.append(bookmark)
        self._save(bookmarks)
        return bookmark

    def update_bookmark(self, bookmark_id: str, fields: Dict[str, Any]) -> Optional[Dict]:
        """Merge fields onto an existing bookmark, keeping its id and createdAt"""
        bookmarks = self._load()

        for index, existing in enumerate(bookmarks):
            if existing.get("id") == bookmark_id:
                merged = {**existing, **fields}
                merged["id"] = existing.get("id")
                if "createdAt" in existing:
                    merged["createdAt"] = existing["createdAt"]
                else:
                    merged.pop("createdAt", None)
                merged["updatedAt"] = now_iso()
                bookmarks[index] = merged
                self._save(bookmarks)
                return merged
        return None

    def delete_bookmark(self, bookmark_id: str) -> bool:
        bookmarks = self._load()

        original_len = len(bookmarks)
        bookmarks = [b for b in bookmarks if b.get("id") != bookmark_id]
        if len(bookmarks) < original_len:
            self._save(bookmarks)
            return True
        return False

    def clear_bookmarks(self) -> bool:
        try:
            self._save([])
        except StorageFault:
            return False
        return True

    def replace_all(self, bookmarks: List[Dict]) -> bool:
        """Overwrite the collection verbatim (bulk sync from a client mirror)"""
        try:
            self._save(list(bookmarks))
        except StorageFault:
            return False
        return True

    def search_by_radius(self, lat: float, lng: float, radius_km: float = DEFAULT_RADIUS_KM) -> List[Dict]:
        return [b for b in self._load() if within_radius(b, lat, lng, radius_km)]
