"""
Shared fixtures: in-memory stores, sample lessons and an API client
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

import dependencies
import main
from models.activity import ActivityType
from models.lesson import Lesson, QuizQuestion
from models.progress import ProgressRecord
from services.flow_controller import FlowConfig, LessonFlowController
from services.flow_registry import FlowRegistry
from services.game_adapter import ScenarioGameAdapter
from services.narration_service import NarrationService
from services.stores import LessonNotFound, StoreError
from utils.jwt_handler import get_current_user

STUDENT = {"user_id": 7, "email": "learner@example.com", "role": "student",
           "language": "en", "country": "US"}
ADMIN = {"user_id": 1, "email": "admin@example.com", "role": "admin",
         "language": "en", "country": "US"}


class InMemoryContentStore:
    def __init__(self, lessons: List[Lesson]):
        self.lessons = list(lessons)

    async def get_lesson(self, lesson_id: str) -> Lesson:
        for lesson in self.lessons:
            if lesson.id == lesson_id:
                return lesson
        raise LessonNotFound(lesson_id)

    async def list_lessons(self, language: str, country: str) -> List[Lesson]:
        return sorted(self.lessons, key=lambda l: (l.level, l.id))


class InMemoryProgressStore:
    def __init__(self):
        self.records: Dict[tuple, ProgressRecord] = {}
        self.writes: List[tuple] = []

    async def get_progress(self, user_id: int, lesson_id: str) -> Optional[ProgressRecord]:
        return self.records.get((user_id, lesson_id))

    async def upsert_progress(self, user_id: int, lesson_id: str,
                              score: int, completed: bool) -> ProgressRecord:
        record = ProgressRecord(user_id=user_id, lesson_id=lesson_id, completed=completed,
                                score=score, completed_at=datetime.now())
        self.records[(user_id, lesson_id)] = record
        self.writes.append((user_id, lesson_id, score, completed))
        return record

    async def list_progress(self, user_id: int) -> List[ProgressRecord]:
        return [r for (uid, _), r in self.records.items() if uid == user_id]


class RecordingTelemetry:
    def __init__(self):
        self.events: List[tuple] = []

    async def record(self, user_id: int, event_type: ActivityType,
                     payload: Dict[str, Any]) -> None:
        self.events.append((user_id, event_type, dict(payload)))

    def types(self) -> List[ActivityType]:
        return [event_type for _, event_type, _ in self.events]


class FailingProgressStore(InMemoryProgressStore):
    async def upsert_progress(self, user_id, lesson_id, score, completed):
        raise StoreError("database is down")


class FailingTelemetry(RecordingTelemetry):
    async def record(self, user_id, event_type, payload):
        raise StoreError("activity log unavailable")


class InMemorySettingsStore:
    def __init__(self):
        self.values: Dict[str, Any] = {}

    async def get_settings(self) -> Dict[str, Any]:
        return dict(self.values)

    async def put_settings(self, values: Dict[str, Any]) -> None:
        self.values.update(values)


def make_lesson(lesson_id: str, title: str, correct=(1, 0, 2, 3), level: int = 1,
                country: str = "US", category: Optional[str] = None) -> Lesson:
    return Lesson(
        id=lesson_id,
        title=title,
        description=f"{title} basics",
        content=f"Everything about {title.lower()}.",
        level=level,
        country=country,
        category=category,
        quiz_questions=[
            QuizQuestion(
                id=f"{lesson_id}-q{i + 1}",
                question=f"Question {i + 1}?",
                options=["A", "B", "C", "D"],
                correct_answer=answer,
                explanation=f"Option {answer} is right."
            )
            for i, answer in enumerate(correct)
        ]
    )


@pytest.fixture
def lesson():
    return make_lesson("l1", "Traffic Signals")


@pytest.fixture
def catalog():
    return [
        make_lesson("l1", "Traffic Signals", level=1),
        make_lesson("l2", "Pedestrian Crossings", level=2),
        make_lesson("l3", "Parking Basics", level=3),
    ]


@pytest.fixture
def progress_store():
    return InMemoryProgressStore()


@pytest.fixture
def telemetry():
    return RecordingTelemetry()


@pytest.fixture
def make_controller(progress_store, telemetry):
    """Build a controller with no transition delays unless asked for"""
    def factory(lesson, catalog_ids=("l1", "l2", "l3"), store=None, sink=None, adapter=None,
                **options):
        options.setdefault("quiz_result_delay", 0)
        options.setdefault("game_complete_delay", 0)
        return LessonFlowController(
            lesson, list(catalog_ids), STUDENT["user_id"],
            store or progress_store, sink or telemetry, adapter or ScenarioGameAdapter(),
            config=FlowConfig(language="en", country="US"), **options
        )
    return factory


@pytest.fixture
def settings_store():
    return InMemorySettingsStore()


@pytest.fixture
def caller():
    """The authenticated user; update it with ADMIN for admin routes"""
    return dict(STUDENT)


@pytest.fixture
def registry(progress_store, telemetry):
    return FlowRegistry(progress_store, telemetry, ScenarioGameAdapter(),
                        quiz_result_delay=0, game_complete_delay=0)


@pytest.fixture
def api(catalog, progress_store, telemetry, settings_store, registry, caller, monkeypatch):
    """TestClient wired to in-memory stores"""
    monkeypatch.setattr(main, "init_database", lambda: True)

    app = main.app
    app.dependency_overrides[dependencies.get_content_store] = lambda: InMemoryContentStore(catalog)
    app.dependency_overrides[dependencies.get_progress_store] = lambda: progress_store
    app.dependency_overrides[dependencies.get_telemetry] = lambda: telemetry
    app.dependency_overrides[dependencies.get_settings_store] = lambda: settings_store
    app.dependency_overrides[dependencies.get_flow_registry] = lambda: registry
    app.dependency_overrides[dependencies.get_narration_service] = lambda: NarrationService(None)
    app.dependency_overrides[get_current_user] = lambda: caller

    with TestClient(app) as client:
        yield client
    registry.close_all()
    app.dependency_overrides.clear()
