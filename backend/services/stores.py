"""
Store contracts used by the lesson flow

The flow controller only talks to these protocols. Concrete MySQL
implementations live in services.mysql_stores.
"""
from typing import Protocol, Optional, List, Dict, Any, Awaitable
import logging

from models.lesson import Lesson
from models.progress import ProgressRecord
from models.activity import ActivityType

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """A read or write against a backing store failed."""


class LessonNotFound(LookupError):
    """The requested lesson does not exist for this catalog."""

    def __init__(self, lesson_id: str):
        super().__init__(f"Lesson {lesson_id} not found")
        self.lesson_id = lesson_id


class GuardViolation(Exception):
    """An action was attempted that the current flow state does not allow."""


class ContentStore(Protocol):
    async def get_lesson(self, lesson_id: str) -> Lesson:
        ...

    async def list_lessons(self, language: str, country: str) -> List[Lesson]:
        ...


class ProgressStore(Protocol):
    async def get_progress(self, user_id: int, lesson_id: str) -> Optional[ProgressRecord]:
        ...

    async def upsert_progress(self, user_id: int, lesson_id: str,
                              score: int, completed: bool) -> ProgressRecord:
        ...

    async def list_progress(self, user_id: int) -> List[ProgressRecord]:
        ...


class TelemetrySink(Protocol):
    async def record(self, user_id: int, event_type: ActivityType,
                     payload: Dict[str, Any]) -> None:
        ...


class SettingsStore(Protocol):
    async def get_settings(self) -> Dict[str, Any]:
        ...

    async def put_settings(self, values: Dict[str, Any]) -> None:
        ...


async def best_effort(label: str, call: Awaitable) -> bool:
    """
    Await a store call and swallow its failure.

    Returns True when the call succeeded. Failures are logged and
    discarded so callers can keep going.
    """
    try:
        await call
        return True
    except StoreError as e:
        logger.error(f"{label} failed: {e}")
    except Exception as e:
        logger.exception(f"{label} failed unexpectedly: {e}")
    return False
