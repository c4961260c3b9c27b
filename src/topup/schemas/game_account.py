"""Pydantic schemas for saved game accounts."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class GameAccountCreate(BaseModel):
    game_name: str = Field(..., min_length=1, max_length=100)
    game_id: str = Field(..., min_length=1, max_length=100)
    server: Optional[str] = Field(None, max_length=50)
    zone_id: Optional[str] = Field(None, max_length=50)
    nickname: Optional[str] = Field(None, max_length=100)
    is_primary: bool = False


class GameAccountUpdate(BaseModel):
    game_name: Optional[str] = Field(None, min_length=1, max_length=100)
    game_id: Optional[str] = Field(None, min_length=1, max_length=100)
    server: Optional[str] = Field(None, max_length=50)
    zone_id: Optional[str] = Field(None, max_length=50)
    nickname: Optional[str] = Field(None, max_length=100)
    is_primary: Optional[bool] = None


class GameAccountRead(BaseModel):
    """Saved game account response payload."""

    id: int
    user_id: int
    game_name: str
    game_id: str
    server: Optional[str]
    zone_id: Optional[str]
    nickname: Optional[str]
    is_primary: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
