"""
Shared service instances for routers

Routers take these through Depends so tests can swap in other stores.
"""
from typing import Optional
import logging

from fastapi import Depends

from config import settings
from services.flow_registry import FlowRegistry
from services.game_adapter import ScenarioGameAdapter
from services.mysql_stores import (
    MySQLActivitySink, MySQLContentStore, MySQLProgressStore, MySQLSettingsStore,
)
from services.narration_service import NarrationService
from services.stores import ContentStore, ProgressStore, SettingsStore, StoreError, TelemetrySink
from utils.encryption import decrypt_secret

logger = logging.getLogger(__name__)

NARRATION_KEY_SETTING = "narration_api_key"

_content_store = MySQLContentStore()
_progress_store = MySQLProgressStore()
_activity_sink = MySQLActivitySink()
_settings_store = MySQLSettingsStore()
_flow_registry: Optional[FlowRegistry] = None


def get_content_store() -> ContentStore:
    return _content_store


def get_progress_store() -> ProgressStore:
    return _progress_store


def get_telemetry() -> TelemetrySink:
    return _activity_sink


def get_settings_store() -> SettingsStore:
    return _settings_store


def get_flow_registry() -> FlowRegistry:
    global _flow_registry
    if _flow_registry is None:
        _flow_registry = FlowRegistry(_progress_store, _activity_sink, ScenarioGameAdapter())
    return _flow_registry


async def get_narration_service(
    settings_store: SettingsStore = Depends(get_settings_store)
) -> NarrationService:
    """Narration with the environment key, else the key saved by an admin"""
    api_key = settings.OPENAI_API_KEY
    if not api_key:
        try:
            stored = (await settings_store.get_settings()).get(NARRATION_KEY_SETTING)
            api_key = decrypt_secret(stored) if stored else None
        except StoreError as e:
            logger.error(f"Could not read narration key: {e}")
    return NarrationService(api_key or None)
