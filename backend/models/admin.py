"""
Admin Models - platform settings
"""
from pydantic import BaseModel, Field
from typing import Optional


class SystemSettings(BaseModel):
    default_language: str = "en"
    default_country: str = "US"
    session_timeout_minutes: int = Field(default=60, ge=5)
    maintenance_mode: bool = False
    debug_mode: bool = False
    analytics_enabled: bool = True
    content_cache_minutes: int = Field(default=30, ge=0)
    max_login_attempts: int = Field(default=5, ge=1)
    password_reset_timeout_hours: int = Field(default=24, ge=1)


class SystemSettingsUpdate(BaseModel):
    default_language: Optional[str] = None
    default_country: Optional[str] = None
    session_timeout_minutes: Optional[int] = Field(default=None, ge=5)
    maintenance_mode: Optional[bool] = None
    debug_mode: Optional[bool] = None
    analytics_enabled: Optional[bool] = None
    content_cache_minutes: Optional[int] = Field(default=None, ge=0)
    max_login_attempts: Optional[int] = Field(default=None, ge=1)
    password_reset_timeout_hours: Optional[int] = Field(default=None, ge=1)
    # Empty string clears the stored key
    narration_api_key: Optional[str] = None
