#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
bookmark_client.py — client-side bookmark cache for the map frontend

Features
- Config from Streamlit secrets with env fallback
- HTTP calls to the bookmarks API with retry and timeout
- In-memory mirror of the server collection plus a local JSON snapshot
- Every mutation lands in the mirror and the snapshot even when the server
  is unreachable; the server is a best-effort upstream
- Radius search falls back to the local mirror
"""

from __future__ import annotations

import os
import time
import json
import uuid
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Any, Callable

import requests

from backend.geo import DEFAULT_RADIUS_KM, within_radius

# Streamlit may not always be present (e.g., CLI tests).
try:
    import streamlit as st  # type: ignore
    _HAS_ST = True
except Exception:
    _HAS_ST = False

logger = logging.getLogger(__name__)

STORAGE_KEY = "map_bookmarks"

# ---------- Config ----------

def _get_secret(name: str, default: Optional[str] = None) -> Optional[str]:
    """Get from Streamlit secrets first, then environment variables."""
    if _HAS_ST:
        try:
            if name in st.secrets:
                return st.secrets.get(name)  # type: ignore
        except Exception:
            # no secrets.toml at all
            pass
    return os.environ.get(name, default)

def get_config() -> Dict[str, str]:
    """
    Returns resolved configuration.
        BOOKMARKS_API_BASE (e.g., http://localhost:8000/api)
        BOOKMARKS_TIMEOUT_SEC
        BOOKMARKS_RETRIES
        BOOKMARKS_LOCAL_FILE (local snapshot path)
    """
    cfg = {
        "BOOKMARKS_API_BASE"   : _get_secret("BOOKMARKS_API_BASE", "http://localhost:8000/api"),
        "BOOKMARKS_TIMEOUT_SEC": _get_secret("BOOKMARKS_TIMEOUT_SEC", "10"),
        "BOOKMARKS_RETRIES"    : _get_secret("BOOKMARKS_RETRIES", "0"),
        "BOOKMARKS_LOCAL_FILE" : _get_secret("BOOKMARKS_LOCAL_FILE", ".bookmarks_cache.json"),
    }
    return cfg  # type: ignore


# ---------- Utilities ----------

class UpstreamUnavailable(Exception):
    """The bookmarks API could not be reached or answered with an error."""


def _is_transient(err: Exception) -> bool:
    """Connection problems, timeouts and 5xx are worth retrying; 4xx are not."""
    if isinstance(err, (requests.ConnectionError, requests.Timeout)):
        return True
    if isinstance(err, requests.HTTPError):
        status = getattr(err.response, "status_code", None)
        return status is not None and status >= 500
    return False

def _retry(fn: Callable[[], Any], retries: int = 0, backoff: float = 0.7) -> Any:
    for i in range(retries + 1):
        try:
            return fn()
        except Exception as e:
            if i >= retries or not _is_transient(e):
                raise
            time.sleep(backoff * (2 ** i))

def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")

def _new_id() -> str:
    return f"bm_{int(time.time() * 1000)}_{uuid.uuid4().hex[:6]}"


class LocalSnapshot:
    """
    Local fallback copy of the mirror, stored under a fixed key in a JSON file.
    Read and write failures are logged, never raised.
    """

    def __init__(self, path: str | Path, key: str = STORAGE_KEY):
        self.path = Path(path)
        self.key = key

    def load(self) -> Optional[List[Dict[str, Any]]]:
        if not self.path.exists():
            return None
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error("Error reading local bookmark snapshot %s: %s", self.path, e)
            return None
        stored = data.get(self.key) if isinstance(data, dict) else None
        if not isinstance(stored, list):
            return None
        return stored

    def save(self, bookmarks: List[Dict[str, Any]]):
        data: Dict[str, Any] = {}
        if self.path.exists():
            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    existing = json.load(f)
                if isinstance(existing, dict):
                    data = existing
            except (OSError, ValueError):
                pass  # overwritten below
        data[self.key] = bookmarks
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
        except OSError as e:
            logger.error("Error saving bookmarks to local snapshot %s: %s", self.path, e)


# ---------- Client cache ----------

class BookmarkClient:
    def __init__(
        self,
        cfg: Optional[Dict[str, str]] = None,
        session: Optional[requests.Session] = None,
        snapshot: Optional[LocalSnapshot] = None,
    ):
        if cfg is None:
            cfg = get_config()
        self.cfg = cfg
        self.base = cfg["BOOKMARKS_API_BASE"].rstrip("/")
        self.timeout = float(cfg.get("BOOKMARKS_TIMEOUT_SEC", "10"))
        self.retries = int(cfg.get("BOOKMARKS_RETRIES", "0"))
        self.session = session if session is not None else requests.Session()
        if snapshot is None:
            snapshot = LocalSnapshot(cfg.get("BOOKMARKS_LOCAL_FILE", ".bookmarks_cache.json"))
        self.snapshot = snapshot
        self.bookmarks: List[Dict[str, Any]] = []

    def _request(self, method: str, path: str, **kwargs) -> Any:
        """
        One API round trip. Returns decoded JSON.
        Raises UpstreamUnavailable on transport errors, non-2xx or bad JSON.
        """
        url = f"{self.base}{path}"

        def _do():
            r = self.session.request(method, url, timeout=self.timeout, **kwargs)
            r.raise_for_status()
            return r.json()
        try:
            return _retry(_do, retries=self.retries)
        except (requests.RequestException, ValueError) as e:
            raise UpstreamUnavailable(f"{method} {url}: {e}") from e

    def save_to_local(self):
        self.snapshot.save(self.bookmarks)

    # Initialize bookmarks from server, local snapshot as fallback
    def init(self) -> List[Dict[str, Any]]:
        try:
            loaded = self._request("GET", "/bookmarks")
            if not isinstance(loaded, list):
                raise UpstreamUnavailable("bookmark list is not an array")
            self.bookmarks = loaded
            logger.info("Loaded bookmarks from server: %d", len(self.bookmarks))
            return self.bookmarks
        except UpstreamUnavailable as e:
            logger.warning("Error loading bookmarks from server: %s", e)

        self.bookmarks = []
        stored = self.snapshot.load()
        if stored is not None:
            self.bookmarks = stored
            logger.info("Loaded bookmarks from local snapshot fallback: %d", len(self.bookmarks))
            # migrate the local copy back to the server
            self.save_to_storage()
        return self.bookmarks

    def get_all(self) -> List[Dict[str, Any]]:
        return self.bookmarks

    def find_by_id(self, bookmark_id: str) -> Optional[Dict[str, Any]]:
        for bookmark in self.bookmarks:
            if bookmark.get("id") == bookmark_id:
                return bookmark
        return None

    def find_by_name(self, query: str) -> Optional[Dict[str, Any]]:
        """First bookmark whose name equals the query or whose notes contain it (case-insensitive)"""
        needle = (query or "").strip().lower()
        if not needle:
            return None
        for bookmark in self.bookmarks:
            name = bookmark.get("name") or ""
            notes = bookmark.get("notes") or ""
            if name.lower() == needle or needle in notes.lower():
                return bookmark
        return None

    def add(self, bookmark: Dict[str, Any]) -> Dict[str, Any]:
        bookmark = dict(bookmark)
        if not bookmark.get("id"):
            bookmark["id"] = _new_id()
        if not bookmark.get("createdAt"):
            bookmark["createdAt"] = _now_iso()

        try:
            saved = self._request("POST", "/bookmarks", json=bookmark)
            if not isinstance(saved, dict):
                raise UpstreamUnavailable("created bookmark is not an object")
        except UpstreamUnavailable as e:
            logger.warning("Error adding bookmark, keeping it locally only: %s", e)
            saved = bookmark

        self.bookmarks.append(saved)
        self.save_to_local()
        return saved

    def remove(self, bookmark_id: str) -> bool:
        initial_len = len(self.bookmarks)
        self.bookmarks = [b for b in self.bookmarks if b.get("id") != bookmark_id]
        if len(self.bookmarks) == initial_len:
            return False

        try:
            self._request("DELETE", f"/bookmarks/{bookmark_id}")
        except UpstreamUnavailable as e:
            logger.warning("Error deleting bookmark from server: %s", e)

        self.save_to_local()
        return True

    def update(self, bookmark_id: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        index = next((i for i, b in enumerate(self.bookmarks) if b.get("id") == bookmark_id), None)
        if index is None:
            return None

        current = self.bookmarks[index]
        updated = {
            **current,
            **updates,
            "id": current.get("id"),
            "createdAt": current.get("createdAt"),
            "updatedAt": _now_iso(),
        }

        try:
            self._request("PUT", f"/bookmarks/{bookmark_id}", json=updated)
        except UpstreamUnavailable as e:
            logger.warning("Error updating bookmark on server: %s", e)

        # the mirror may have changed while the request was in flight
        index = next((i for i, b in enumerate(self.bookmarks) if b.get("id") == bookmark_id), None)
        if index is not None:
            self.bookmarks[index] = updated
        self.save_to_local()
        return updated

    def search_by_coordinates(self, lat: float, lng: float, radius_km: float = DEFAULT_RADIUS_KM) -> List[Dict[str, Any]]:
        try:
            results = self._request(
                "GET", "/bookmarks/search",
                params={"lat": lat, "lng": lng, "radius": radius_km},
            )
            if isinstance(results, list):
                return results
            raise UpstreamUnavailable("search result is not an array")
        except UpstreamUnavailable as e:
            logger.warning("Error searching bookmarks on server, searching locally: %s", e)
        return [b for b in self.bookmarks if within_radius(b, lat, lng, radius_km)]

    def save_to_storage(self):
        """Push the whole mirror to the server, always keeping the local snapshot current"""
        try:
            self._request("POST", "/bookmarks/sync", json=self.bookmarks)
        except UpstreamUnavailable as e:
            logger.warning("Error saving bookmarks to server: %s", e)
        self.save_to_local()

    def clear(self):
        try:
            self._request("DELETE", "/bookmarks")
        except UpstreamUnavailable as e:
            logger.warning("Error clearing bookmarks from server: %s", e)

        self.bookmarks = []
        self.save_to_local()

    @staticmethod
    def create_from_map(lat: float, lng: float, zoom: int, name: Optional[str] = None, notes: str = "") -> Dict[str, Any]:
        """Bookmark entry (not yet saved) for the current map centre"""
        return {
            "name": name or "Unnamed Location",
            "notes": notes,
            "position": {
                "lat": lat,
                "lng": lng,
                "zoom": zoom,
            },
        }


# ---------- Simple self-test (optional) ----------
if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    client = BookmarkClient()
    print("[cfg]", json.dumps(client.cfg, ensure_ascii=False, indent=2))
    print("[bookmarks]", len(client.init()))
