"""
Bookmark data models
"""
from pydantic import BaseModel
from typing import Optional
from datetime import datetime


class Bookmark(BaseModel):
    id: int
    title: str
    url: str
    user_id: str
    created_at: Optional[datetime] = None


class BookmarkDraftUpdate(BaseModel):
    """Raw form input, validated only on submit"""
    title: str = ""
    url: str = ""
