# Bookmarks router - Bookmark CRUD, bulk sync and radius search

import logging
import math
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from typing import Any, Dict, List, Optional
from backend.database import BookmarkStore, DuplicateBookmarkId
from backend.geo import DEFAULT_RADIUS_KM
from backend.models import BookmarkCreate, BookmarkUpdate, SuccessResponse

logger = logging.getLogger(__name__)

router = APIRouter()

def get_store(request: Request) -> BookmarkStore:
    return request.app.state.store

def _payload(model) -> Dict[str, Any]:
    """Fields the caller sent, extra keys included"""
    data = model.model_dump(exclude_unset=True)
    data.update(model.model_extra or {})
    return data

def _parse_coordinate(value: str) -> float:
    """Parse a query value as a finite float, raising 400 otherwise"""
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail="Invalid coordinates or radius")
    if not math.isfinite(number):
        raise HTTPException(status_code=400, detail="Invalid coordinates or radius")
    return number

@router.get("/bookmarks")
async def get_bookmarks(store: BookmarkStore = Depends(get_store)):
    """Get all bookmarks"""
    return store.list_bookmarks()

@router.post("/bookmarks", status_code=201)
async def create_bookmark(bookmark: BookmarkCreate, store: BookmarkStore = Depends(get_store)):
    """Add a new bookmark"""
    try:
        return store.create_bookmark(_payload(bookmark))
    except DuplicateBookmarkId as e:
        raise HTTPException(status_code=409, detail=str(e))

@router.get("/bookmarks/search")
async def search_bookmarks(
    lat: Optional[str] = Query(None),
    lng: Optional[str] = Query(None),
    radius: Optional[str] = Query(None),
    store: BookmarkStore = Depends(get_store),
):
    """Search bookmarks within a radius (km) of a coordinate"""
    if not lat or not lng:
        raise HTTPException(status_code=400, detail="Latitude and longitude are required")
    latitude = _parse_coordinate(lat)
    longitude = _parse_coordinate(lng)
    radius_km = DEFAULT_RADIUS_KM if radius in (None, "") else _parse_coordinate(radius)
    return store.search_by_radius(latitude, longitude, radius_km)

@router.post("/bookmarks/sync", response_model=SuccessResponse)
async def sync_bookmarks(bookmarks: List[Dict[str, Any]], store: BookmarkStore = Depends(get_store)):
    """Replace the whole collection"""
    success = store.replace_all(bookmarks)
    if success:
        logger.info("Synced %d bookmarks", len(bookmarks))
    return {"success": success}

@router.put("/bookmarks/{bookmark_id}")
async def update_bookmark(bookmark_id: str, updates: BookmarkUpdate, store: BookmarkStore = Depends(get_store)):
    """Update a bookmark"""
    result = store.update_bookmark(bookmark_id, _payload(updates))
    if result is None:
        raise HTTPException(status_code=404, detail="Bookmark not found")
    return result

@router.delete("/bookmarks/{bookmark_id}", response_model=SuccessResponse)
async def delete_bookmark(bookmark_id: str, store: BookmarkStore = Depends(get_store)):
    """Delete a bookmark"""
    success = store.delete_bookmark(bookmark_id)
    if not success:
        raise HTTPException(status_code=404, detail="Bookmark not found")
    return {"success": True}

@router.delete("/bookmarks", response_model=SuccessResponse)
async def clear_bookmarks(store: BookmarkStore = Depends(get_store)):
    """Delete all bookmarks"""
    return {"success": store.clear_bookmarks()}
