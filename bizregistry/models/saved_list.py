"""Saved list models."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class SavedListCreate(BaseModel):
    """Model for creating a saved list."""

    owner_id: str
    name: str
    filter_query: Optional[str] = None


class SavedList(SavedListCreate):
    """Complete saved list model with ID."""

    id: int
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
