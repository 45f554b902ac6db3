# Pydantic models for API request/response

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, Union

# ─────────────────────────────────────────────────────────────
# Bookmark Models
# ─────────────────────────────────────────────────────────────

class Position(BaseModel):
    model_config = ConfigDict(extra="allow")

    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    zoom: int = Field(ge=0, le=22)

class PositionUpdate(BaseModel):
    # synced records may lack zoom or carry a fractional one
    model_config = ConfigDict(extra="allow")

    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    zoom: Optional[Union[int, float]] = None

    @field_validator("zoom")
    @classmethod
    def zoom_in_range(cls, value):
        if value is not None and not 0 <= value <= 22:
            raise ValueError("zoom must be between 0 and 22")
        return value

class BookmarkCreate(BaseModel):
    # extra keys written by the browser client are kept as-is
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    name: str = Field(min_length=1)
    notes: Optional[str] = ""
    position: Optional[Position] = None

class BookmarkUpdate(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: Optional[str] = Field(default=None, min_length=1)
    notes: Optional[str] = None
    position: Optional[PositionUpdate] = None

    @field_validator("name")
    @classmethod
    def name_not_null(cls, value):
        if value is None:
            raise ValueError("name cannot be null")
        return value

class SuccessResponse(BaseModel):
    success: bool
