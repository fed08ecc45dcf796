"""
Pydantic models for request validation and response serialization.
"""
from datetime import datetime
from typing import List, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _check_url(value: Optional[str]) -> Optional[str]:
    # Empty string is accepted and means "no URL".
    if value is None or value == "":
        return value
    parsed = urlparse(value)
    if not parsed.scheme or not parsed.netloc:
        raise ValueError("url must be an absolute URL")
    return value


class ReferenceBase(BaseModel):
    title: str = Field(..., min_length=1, description="Reference title")
    url: Optional[str] = Field(default=None, description="Absolute URL of the referenced UI")
    description: Optional[str] = Field(default=None)
    notes: Optional[str] = Field(default=None)
    tags: List[str] = Field(default_factory=list)

    @field_validator("url")
    @classmethod
    def url_is_absolute(cls, value):
        return _check_url(value)


class ReferenceCreate(ReferenceBase):
    pass


class ReferenceUpdate(BaseModel):
    """Partial update; only fields present in the payload are written."""
    title: Optional[str] = Field(None, min_length=1)
    url: Optional[str] = Field(None)
    description: Optional[str] = Field(None)
    notes: Optional[str] = Field(None)
    tags: Optional[List[str]] = Field(None)

    @field_validator("url")
    @classmethod
    def url_is_absolute(cls, value):
        return _check_url(value)

    @field_validator("title", "tags")
    @classmethod
    def reject_null(cls, value):
        if value is None:
            raise ValueError("field may be omitted but not null")
        return value


class ReferenceOut(BaseModel):
    id: int
    title: str
    url: Optional[str] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_validator("tags", mode="before")
    @classmethod
    def tags_always_list(cls, value):
        return list(value) if value else []


class ScreenshotCreate(BaseModel):
    reference_id: Optional[int] = Field(default=None, description="Owning reference, if any")
    filename: str = Field(..., min_length=1)
    original_filename: str = Field(..., min_length=1)
    file_path: str = Field(..., min_length=1)
    file_size: int = Field(..., gt=0, description="Size in bytes")
    mime_type: str = Field(..., min_length=1)
    alt_text: Optional[str] = Field(default=None)


class ScreenshotUpdate(BaseModel):
    """Only ownership and alt text can change after upload."""
    reference_id: Optional[int] = Field(None)
    alt_text: Optional[str] = Field(None)


class ScreenshotOut(BaseModel):
    id: int
    reference_id: Optional[int] = None
    filename: str
    original_filename: str
    file_path: str
    file_size: int
    mime_type: str
    alt_text: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ReferenceWithScreenshots(ReferenceOut):
    screenshots: List[ScreenshotOut] = Field(default_factory=list)


class SearchRequest(BaseModel):
    """
    Composite search. Every field is optional and present fields are ANDed:

    - query: case-insensitive substring of title, description or notes
    - tags: the reference must carry every listed tag
    - has_url: presence (True) or absence (False) of a non-empty url
    - has_screenshots: at least one (True) or no (False) owned screenshot
    """
    query: Optional[str] = None
    tags: Optional[List[str]] = None
    has_url: Optional[bool] = None
    has_screenshots: Optional[bool] = None
