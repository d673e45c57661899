"""
Mini-Game Adapter - game selection and game sessions hosted for a lesson flow
"""
from enum import Enum
from typing import Callable, Dict, List, Optional, Protocol, Any
import logging
import uuid

from models.lesson import Lesson

logger = logging.getLogger(__name__)


class GameKind(str, Enum):
    TRAFFIC_LIGHT = "traffic_light"
    PEDESTRIAN = "pedestrian"
    PARKING = "parking"
    SPEED_LIMIT = "speed_limit"


GAME_CATALOG: Dict[GameKind, Dict[str, Any]] = {
    GameKind.TRAFFIC_LIGHT: {
        "name": "Traffic Light Control",
        "description": "Manage traffic flow at an intersection with changing traffic lights",
        "controls": [
            "Watch vehicles approach the intersection",
            "Vehicles should stop on red and yellow lights",
            "Earn points for each vehicle that stops properly",
            "Lose points for traffic violations",
        ],
    },
    GameKind.PEDESTRIAN: {
        "name": "Pedestrian Crossing Safety",
        "description": "Help pedestrians cross safely at the crosswalk",
        "controls": [
            "Pedestrians will wait at crosswalks",
            "They should cross during WALK signals",
            "Vehicles must stop for crossing pedestrians",
            "Earn points for safe crossings",
        ],
    },
    GameKind.PARKING: {
        "name": "Parking Master",
        "description": "Master different parking techniques",
        "controls": [
            "Up/W - Drive forward",
            "Down/S - Reverse",
            "Left/A - Turn left",
            "Right/D - Turn right",
            "Park accurately in the designated space",
        ],
    },
    GameKind.SPEED_LIMIT: {
        "name": "Speed Limit Challenge",
        "description": "Drive through different road segments maintaining proper speeds",
        "controls": [
            "Up/W - Accelerate",
            "Down/S - Brake",
            "Follow posted speed limits",
            "Adapt to changing conditions",
            "Watch for speed cameras",
        ],
    },
}

# Category or tag values that pin a game directly
CATEGORY_GAMES = {
    "traffic_signals": GameKind.TRAFFIC_LIGHT,
    "intersections": GameKind.TRAFFIC_LIGHT,
    "pedestrian_safety": GameKind.PEDESTRIAN,
    "crossings": GameKind.PEDESTRIAN,
    "parking": GameKind.PARKING,
    "speed": GameKind.SPEED_LIMIT,
    "highway": GameKind.SPEED_LIMIT,
}

# Checked in order; first match wins
TITLE_KEYWORDS = [
    (("traffic light", "signal", "intersection"), GameKind.TRAFFIC_LIGHT),
    (("pedestrian", "crosswalk", "crossing"), GameKind.PEDESTRIAN),
    (("parking", "park"), GameKind.PARKING),
    (("speed", "limit", "highway"), GameKind.SPEED_LIMIT),
]

REGION_DEFAULTS = {
    "IN": GameKind.TRAFFIC_LIGHT,
    "US": GameKind.SPEED_LIMIT,
}


def select_game_kind(lesson: Lesson) -> GameKind:
    """Pick the mini-game for a lesson from its category, tags, title, then region."""
    for key in [lesson.category, *lesson.tags]:
        if key and key.lower() in CATEGORY_GAMES:
            return CATEGORY_GAMES[key.lower()]

    title = lesson.title.lower()
    for keywords, kind in TITLE_KEYWORDS:
        if any(word in title for word in keywords):
            return kind

    return REGION_DEFAULTS.get(lesson.country.upper(), GameKind.PEDESTRIAN)


def describe_game(kind: GameKind) -> Dict[str, Any]:
    return {"kind": kind.value, **GAME_CATALOG[kind]}


class GameSession:
    """
    One running mini-game.

    The host subscribes before or after the game starts; the session
    reports its final score exactly once.
    """

    def __init__(self, kind: GameKind, lesson_id: str, language: str,
                 country: str, theme: Optional[Dict[str, str]] = None):
        self.id = uuid.uuid4().hex
        self.kind = kind
        self.lesson_id = lesson_id
        self.language = language
        self.country = country
        self.theme = theme or {}
        self.final_score: Optional[float] = None
        self._subscribers: List[Callable[[float], Any]] = []

    @property
    def finished(self) -> bool:
        return self.final_score is not None

    def subscribe(self, on_complete: Callable[[float], Any]) -> None:
        self._subscribers.append(on_complete)

    def complete(self, score: float) -> None:
        """Report the final score to subscribers; later reports are ignored."""
        if self.finished:
            logger.warning(f"Game session {self.id} already finished, ignoring score {score}")
            return
        self.final_score = score
        for callback in self._subscribers:
            callback(score)


class MiniGameAdapter(Protocol):
    def start(self, lesson: Lesson, language: str, country: str,
              theme: Optional[Dict[str, str]] = None) -> GameSession:
        ...


class ScenarioGameAdapter:
    """Starts games that run in the client and report back through the API."""

    def start(self, lesson: Lesson, language: str, country: str,
              theme: Optional[Dict[str, str]] = None) -> GameSession:
        kind = select_game_kind(lesson)
        logger.info(f"Starting {kind.value} game for lesson {lesson.id}")
        return GameSession(kind, lesson.id, language, country, theme)
