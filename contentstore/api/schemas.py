"""
Record schemas for inserts into the images and history collections.
Only enforced when SCHEMA_VALIDATION_STRICT is on.
"""

from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, field_validator


class ImageRecordRequest(BaseModel):
    model_config = ConfigDict(extra='forbid')

    image_id: str
    image_url: Optional[str] = None
    image_title: Optional[str] = None
    image_width: Optional[int] = None
    image_height: Optional[int] = None
    image_updated: Optional[Union[datetime, str]] = None

    @field_validator('image_id')
    @classmethod
    def image_id_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('image_id cannot be empty')
        if '/' in v:
            raise ValueError('image_id cannot contain "/"')
        return v

    @field_validator('image_width', 'image_height')
    @classmethod
    def dimension_must_be_non_negative(cls, v):
        if v is not None and v < 0:
            raise ValueError('dimensions must be non-negative')
        return v


class HistoryRecordRequest(BaseModel):
    model_config = ConfigDict(extra='forbid')

    image_id: Optional[str] = None
    history_action: Optional[str] = None
    history_timestamp: Optional[Union[datetime, str]] = None

    @field_validator('history_action')
    @classmethod
    def action_must_not_be_empty(cls, v):
        if v is not None and not v.strip():
            raise ValueError('history_action cannot be empty')
        return v


class HealthResponse(BaseModel):
    status: str
    version: str
    db_health: bool
    image_count: int
    history_count: int
