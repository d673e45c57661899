import pytest

from conftest import make_lesson
from models.lesson import Lesson
from services.game_adapter import (
    GAME_CATALOG, GameKind, GameSession, ScenarioGameAdapter, describe_game, select_game_kind,
)


@pytest.mark.parametrize("lesson,expected", [
    (Lesson(id="1", title="Road Rules", category="parking"), GameKind.PARKING),
    (Lesson(id="2", title="Road Rules", tags=["misc", "Highway"]), GameKind.SPEED_LIMIT),
    (Lesson(id="3", title="Crossing the Road Safely"), GameKind.PEDESTRIAN),
    (Lesson(id="4", title="Speed at Intersections"), GameKind.TRAFFIC_LIGHT),
    (Lesson(id="5", title="Road Rules", country="IN"), GameKind.TRAFFIC_LIGHT),
    (Lesson(id="6", title="Road Rules", country="US"), GameKind.SPEED_LIMIT),
    (Lesson(id="7", title="Road Rules", country="GB"), GameKind.PEDESTRIAN),
])
def test_select_game_kind(lesson, expected):
    assert select_game_kind(lesson) == expected


def test_category_beats_title():
    lesson = Lesson(id="1", title="Parking near signals", category="pedestrian_safety")
    assert select_game_kind(lesson) == GameKind.PEDESTRIAN


def test_every_kind_is_described():
    for kind in GameKind:
        info = describe_game(kind)
        assert info["kind"] == kind.value
        assert info["name"] == GAME_CATALOG[kind]["name"]
        assert info["controls"]


def test_session_reports_once():
    session = GameSession(GameKind.PARKING, "l1", "en", "US")
    received = []
    session.subscribe(received.append)
    session.complete(55)
    session.complete(99)
    assert received == [55]
    assert session.finished
    assert session.final_score == 55


def test_adapter_passes_locale_and_theme():
    lesson = make_lesson("l2", "Pedestrian Crossings", country="IN")
    session = ScenarioGameAdapter().start(lesson, "hi", "IN", {"primary": "#0044ff"})
    assert session.kind == GameKind.PEDESTRIAN
    assert session.lesson_id == "l2"
    assert (session.language, session.country) == ("hi", "IN")
    assert session.theme == {"primary": "#0044ff"}
    assert not session.finished
