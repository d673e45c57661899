"""
MySQL-backed content, progress and activity stores
"""
from datetime import datetime
from typing import Optional, List, Dict, Any
import asyncio
import json
import logging

from database import get_db_cursor
from models.activity import ActivityType
from models.lesson import Lesson, QuizQuestion
from models.progress import ProgressRecord
from services.stores import LessonNotFound, StoreError

logger = logging.getLogger(__name__)

FALLBACK_COUNTRY = "US"
FALLBACK_LANGUAGE = "en"


def _lesson_pk(lesson_id: str) -> Optional[int]:
    try:
        return int(lesson_id)
    except (TypeError, ValueError):
        return None


def _json(value, default):
    if value is None:
        return default
    if isinstance(value, (bytes, bytearray)):
        value = value.decode()
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return default
    return value


def lesson_from_rows(lesson_row: Dict[str, Any], question_rows: List[Dict[str, Any]]) -> Lesson:
    return Lesson(
        id=str(lesson_row["id"]),
        title=lesson_row["title"],
        description=lesson_row.get("description") or "",
        content=lesson_row.get("content") or "",
        level=lesson_row.get("level") or 1,
        language=lesson_row.get("language") or FALLBACK_LANGUAGE,
        country=lesson_row.get("country") or FALLBACK_COUNTRY,
        category=lesson_row.get("category"),
        tags=_json(lesson_row.get("tags"), []),
        quiz_questions=[
            QuizQuestion(
                id=str(q["id"]),
                question=q["question"],
                options=_json(q["options"], []),
                correct_answer=q["correct_answer"],
                explanation=q.get("explanation") or ""
            )
            for q in question_rows
        ]
    )


class MySQLContentStore:
    """Lessons and their quiz questions."""

    async def get_lesson(self, lesson_id: str) -> Lesson:
        return await asyncio.to_thread(self._get_lesson, lesson_id)

    async def list_lessons(self, language: str, country: str) -> List[Lesson]:
        return await asyncio.to_thread(self._list_lessons, language, country)

    def _get_lesson(self, lesson_id: str) -> Lesson:
        pk = _lesson_pk(lesson_id)
        if pk is None:
            raise LessonNotFound(lesson_id)
        try:
            with get_db_cursor() as cursor:
                cursor.execute(
                    """SELECT id, title, description, content, level, language,
                              country, category, tags
                       FROM lessons WHERE id = %s""",
                    (pk,)
                )
                lesson = cursor.fetchone()
                if not lesson:
                    raise LessonNotFound(lesson_id)
                cursor.execute(
                    """SELECT id, question, options, correct_answer, explanation
                       FROM quiz_questions WHERE lesson_id = %s
                       ORDER BY position, id""",
                    (pk,)
                )
                questions = cursor.fetchall()
        except LessonNotFound:
            raise
        except Exception as e:
            raise StoreError(f"Failed to load lesson {lesson_id}: {e}") from e
        return lesson_from_rows(lesson, questions)

    def _list_lessons(self, language: str, country: str) -> List[Lesson]:
        """
        Catalog for a locale, ordered by level.

        Falls back from (country, language) to (country, en) to (US, en),
        taking the first variant that has any lessons.
        """
        variants = [(country, language), (country, FALLBACK_LANGUAGE),
                    (FALLBACK_COUNTRY, FALLBACK_LANGUAGE)]
        seen = set()
        try:
            with get_db_cursor() as cursor:
                for variant in variants:
                    if variant in seen:
                        continue
                    seen.add(variant)
                    cursor.execute(
                        """SELECT id, title, description, content, level, language,
                                  country, category, tags
                           FROM lessons WHERE country = %s AND language = %s
                           ORDER BY level ASC, id ASC""",
                        variant
                    )
                    lessons = cursor.fetchall()
                    if lessons:
                        break
                else:
                    return []

                ids = [row["id"] for row in lessons]
                placeholders = ", ".join(["%s"] * len(ids))
                cursor.execute(
                    f"""SELECT id, lesson_id, question, options, correct_answer, explanation
                        FROM quiz_questions WHERE lesson_id IN ({placeholders})
                        ORDER BY lesson_id, position, id""",
                    tuple(ids)
                )
                questions = cursor.fetchall()
        except Exception as e:
            raise StoreError(f"Failed to list lessons: {e}") from e

        by_lesson: Dict[int, List[Dict[str, Any]]] = {}
        for q in questions:
            by_lesson.setdefault(q["lesson_id"], []).append(q)
        return [lesson_from_rows(row, by_lesson.get(row["id"], [])) for row in lessons]


class MySQLProgressStore:
    """Per-user lesson completion and score; last write wins."""

    async def get_progress(self, user_id: int, lesson_id: str) -> Optional[ProgressRecord]:
        return await asyncio.to_thread(self._get_progress, user_id, lesson_id)

    async def upsert_progress(self, user_id: int, lesson_id: str,
                              score: int, completed: bool) -> ProgressRecord:
        return await asyncio.to_thread(self._upsert_progress, user_id, lesson_id, score, completed)

    async def list_progress(self, user_id: int) -> List[ProgressRecord]:
        return await asyncio.to_thread(self._list_progress, user_id)

    def _get_progress(self, user_id: int, lesson_id: str) -> Optional[ProgressRecord]:
        try:
            with get_db_cursor() as cursor:
                cursor.execute(
                    """SELECT user_id, lesson_id, completed, score, completed_at
                       FROM user_progress WHERE user_id = %s AND lesson_id = %s""",
                    (user_id, _lesson_pk(lesson_id))
                )
                row = cursor.fetchone()
        except Exception as e:
            raise StoreError(f"Failed to read progress: {e}") from e
        return self._record(row) if row else None

    def _upsert_progress(self, user_id: int, lesson_id: str,
                         score: int, completed: bool) -> ProgressRecord:
        now = datetime.now()
        try:
            with get_db_cursor() as cursor:
                cursor.execute(
                    """INSERT INTO user_progress (user_id, lesson_id, completed, score, completed_at)
                       VALUES (%s, %s, %s, %s, %s)
                       ON DUPLICATE KEY UPDATE
                           completed = VALUES(completed),
                           score = VALUES(score),
                           completed_at = VALUES(completed_at)""",
                    (user_id, _lesson_pk(lesson_id), completed, score, now)
                )
        except Exception as e:
            raise StoreError(f"Failed to save progress: {e}") from e
        return ProgressRecord(user_id=user_id, lesson_id=lesson_id, completed=completed,
                              score=score, completed_at=now)

    def _list_progress(self, user_id: int) -> List[ProgressRecord]:
        try:
            with get_db_cursor() as cursor:
                cursor.execute(
                    """SELECT user_id, lesson_id, completed, score, completed_at
                       FROM user_progress WHERE user_id = %s
                       ORDER BY completed_at DESC""",
                    (user_id,)
                )
                rows = cursor.fetchall()
        except Exception as e:
            raise StoreError(f"Failed to list progress: {e}") from e
        return [self._record(row) for row in rows]

    @staticmethod
    def _record(row) -> ProgressRecord:
        return ProgressRecord(
            user_id=row["user_id"],
            lesson_id=str(row["lesson_id"]),
            completed=bool(row["completed"]),
            score=row["score"] or 0,
            completed_at=row["completed_at"]
        )


class MySQLActivitySink:
    """Writes activity events to user_activity_logs."""

    async def record(self, user_id: int, event_type: ActivityType,
                     payload: Dict[str, Any]) -> None:
        await asyncio.to_thread(self._record_event, user_id, event_type, payload)

    def _record_event(self, user_id: int, event_type: ActivityType,
                      payload: Dict[str, Any]) -> None:
        details = dict(payload)
        score = details.pop("score", None)
        duration = details.pop("duration_seconds", None)
        page_url = details.pop("page_url", None)
        now = datetime.now()
        try:
            with get_db_cursor() as cursor:
                cursor.execute(
                    """INSERT INTO user_activity_logs
                       (user_id, activity_type, activity_details, timestamp,
                        duration_seconds, score, page_url)
                       VALUES (%s, %s, %s, %s, %s, %s, %s)""",
                    (user_id, ActivityType(event_type).value, json.dumps(details, default=str),
                     now, duration, score, page_url)
                )
                cursor.execute(
                    "UPDATE users SET last_active = %s WHERE id = %s",
                    (now, user_id)
                )
                if event_type == ActivityType.LESSON_COMPLETE and details.get("lesson_title"):
                    cursor.execute(
                        "UPDATE users SET last_lesson_completed = %s WHERE id = %s",
                        (details["lesson_title"], user_id)
                    )
        except Exception as e:
            raise StoreError(f"Failed to log {event_type}: {e}") from e
        logger.debug(f"Logged {event_type} for user {user_id}")


class MySQLSettingsStore:
    """Key/value platform settings; values are stored JSON-encoded."""

    async def get_settings(self) -> Dict[str, Any]:
        return await asyncio.to_thread(self._get_settings)

    async def put_settings(self, values: Dict[str, Any]) -> None:
        await asyncio.to_thread(self._put_settings, values)

    def _get_settings(self) -> Dict[str, Any]:
        try:
            with get_db_cursor() as cursor:
                cursor.execute("SELECT setting_key, setting_value FROM system_settings")
                rows = cursor.fetchall()
        except Exception as e:
            raise StoreError(f"Failed to read settings: {e}") from e
        return {row["setting_key"]: _json(row["setting_value"], None) for row in rows}

    def _put_settings(self, values: Dict[str, Any]) -> None:
        now = datetime.now()
        try:
            with get_db_cursor() as cursor:
                for key, value in values.items():
                    cursor.execute(
                        """INSERT INTO system_settings (setting_key, setting_value, updated_at)
                           VALUES (%s, %s, %s)
                           ON DUPLICATE KEY UPDATE
                               setting_value = VALUES(setting_value),
                               updated_at = VALUES(updated_at)""",
                        (key, json.dumps(value), now)
                    )
        except Exception as e:
            raise StoreError(f"Failed to save settings: {e}") from e
