"""
Activity (telemetry) Models
"""
from pydantic import BaseModel
from typing import Optional, Dict, Any
from datetime import datetime
from enum import Enum


class ActivityType(str, Enum):
    LESSON_START = "lesson_start"
    QUIZ_ATTEMPT = "quiz_attempt"
    QUIZ_COMPLETE = "quiz_complete"
    GAME_PLAY = "game_play"
    LESSON_COMPLETE = "lesson_complete"
    LOGIN = "login"
    LOGOUT = "logout"
    PAGE_VIEW = "page_view"
    NAVIGATION = "navigation"


class ActivityEvent(BaseModel):
    id: Optional[int] = None
    user_id: int
    activity_type: ActivityType
    details: Dict[str, Any] = {}
    timestamp: datetime
    duration_seconds: Optional[int] = None
    score: Optional[int] = None
    page_url: Optional[str] = None

    class Config:
        from_attributes = True


class PageView(BaseModel):
    page_path: str
    page_title: Optional[str] = None
    duration_seconds: Optional[int] = None
