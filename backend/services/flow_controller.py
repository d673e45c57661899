"""
Lesson Flow Controller - drives one lesson visit through lesson, quiz, game and completion

All store and telemetry writes are fire-and-forget: they run as tasks on the
event loop, failures are logged, and the flow never waits on them. Methods
that schedule work must be called from inside a running event loop.
"""
import asyncio
import math
import time
import uuid
from typing import Any, Callable, Dict, List, Optional
import logging

from pydantic import BaseModel

from config import settings
from models.activity import ActivityType
from models.lesson import Lesson
from models.progress import (
    CompletionSummary, Destination, FlowSnapshot, FlowState, QuizResult,
)
from services.game_adapter import GameSession, MiniGameAdapter
from services.quiz_evaluator import AnswerSet, evaluate, round_half_up
from services.stores import GuardViolation, ProgressStore, TelemetrySink, best_effort

logger = logging.getLogger(__name__)


class FlowConfig(BaseModel):
    """Locale and presentation settings passed in when a visit starts."""
    language: str = settings.DEFAULT_LANGUAGE
    country: str = settings.DEFAULT_COUNTRY
    theme: Dict[str, str] = {}


def clamp_score(score: Any) -> int:
    """Round a reported game score half-up and clamp it into 0..100."""
    try:
        value = float(score)
    except (TypeError, ValueError):
        return 0
    if math.isnan(value):
        return 0
    if math.isinf(value):
        return 100 if value > 0 else 0
    return max(0, min(100, round_half_up(value)))


class LessonFlowController:
    def __init__(self, lesson: Lesson, catalog: List[str], user_id: int,
                 progress_store: ProgressStore, telemetry: TelemetrySink,
                 game_adapter: MiniGameAdapter, config: Optional[FlowConfig] = None,
                 quiz_result_delay: float = settings.QUIZ_RESULT_DELAY_SECONDS,
                 game_complete_delay: float = settings.GAME_COMPLETE_DELAY_SECONDS,
                 clock: Callable[[], float] = time.monotonic):
        self.id = uuid.uuid4().hex
        self.lesson = lesson
        self.catalog = list(catalog)
        self.user_id = user_id
        self.progress_store = progress_store
        self.telemetry = telemetry
        self.game_adapter = game_adapter
        self.config = config or FlowConfig()
        self.quiz_result_delay = quiz_result_delay
        self.game_complete_delay = game_complete_delay
        self._clock = clock

        self.state = FlowState.LESSON
        self.answers = AnswerSet()
        self.current_question_index = 0
        self.quiz_result: Optional[QuizResult] = None
        self.game_session: Optional[GameSession] = None
        self.game_score: Optional[int] = None
        self.cancelled = False

        self._visit_started_at = self._clock()
        self._quiz_started_at = self._visit_started_at
        self._pending = set()
        self._telemetry_tail: Optional[asyncio.Task] = None
        self._transition: Optional[asyncio.Task] = None

    @property
    def questions(self):
        return self.lesson.quiz_questions

    # -- Lesson --------------------------------------------------------

    def start(self) -> None:
        """Enter the lesson stage: record the visit start."""
        self._visit_started_at = self._clock()
        logger.info(f"User {self.user_id} started lesson {self.lesson.id}")
        self._emit(ActivityType.LESSON_START, {
            "lesson_id": self.lesson.id,
            "lesson_title": self.lesson.title,
        })

    def continue_to_quiz(self) -> None:
        self._require(FlowState.LESSON)
        if not self.questions:
            logger.info(f"Lesson {self.lesson.id} has no quiz, going straight to the game")
            self._enter_game()
            return
        self.state = FlowState.QUIZ
        self._begin_attempt(retake=False)

    # -- Quiz ----------------------------------------------------------

    def select_answer(self, option_index: int) -> None:
        self._require_open_quiz()
        options = self.questions[self.current_question_index].options
        if not 0 <= option_index < len(options):
            raise GuardViolation(f"Option {option_index} is not one of the {len(options)} choices")
        self.answers.select(self.current_question_index, option_index)

    def next_question(self) -> None:
        """Advance to the next question, or submit the quiz on the last one."""
        self._require_open_quiz()
        if not self.answers.has_answer(self.current_question_index):
            raise GuardViolation("Select an answer before continuing")
        if self.current_question_index < len(self.questions) - 1:
            self.current_question_index += 1
            return
        self._submit_quiz()

    def back_to_lesson(self) -> None:
        self._require(FlowState.QUIZ)
        if self.quiz_result is not None and self.quiz_result.passed:
            raise GuardViolation("Quiz already passed")
        self.state = FlowState.LESSON

    def retake(self) -> None:
        self._require(FlowState.QUIZ)
        if self.quiz_result is None:
            raise GuardViolation("Quiz has not been submitted yet")
        if self.quiz_result.passed:
            raise GuardViolation("Quiz already passed")
        self._begin_attempt(retake=True)

    def _begin_attempt(self, retake: bool) -> None:
        self.answers.clear()
        self.current_question_index = 0
        self.quiz_result = None
        self._quiz_started_at = self._clock()
        details = {
            "lesson_id": self.lesson.id,
            "total_questions": len(self.questions),
        }
        if retake:
            details["retake"] = True
        self._emit(ActivityType.QUIZ_ATTEMPT, details)

    def _submit_quiz(self) -> None:
        result = evaluate(self.questions, self.answers)
        self.quiz_result = result
        quiz_seconds = int(self._clock() - self._quiz_started_at)
        logger.info(
            f"User {self.user_id} scored {result.score}% on lesson {self.lesson.id} "
            f"({result.correct_count}/{result.total_questions})"
        )

        self._spawn(best_effort(
            f"Progress write for lesson {self.lesson.id}",
            self.progress_store.upsert_progress(
                self.user_id, self.lesson.id, result.score, result.passed
            )
        ))
        self._emit(ActivityType.QUIZ_COMPLETE, {
            "lesson_id": self.lesson.id,
            "total_questions": result.total_questions,
            "correct_answers": result.correct_count,
            "answers": self.answers.as_dict(),
            "score": result.score,
            "duration_seconds": quiz_seconds,
        })

        if result.passed:
            self._schedule(self.quiz_result_delay, self._enter_game)

    # -- Game ----------------------------------------------------------

    def _enter_game(self) -> None:
        if self.cancelled:
            return
        session = self.game_adapter.start(
            self.lesson, self.config.language, self.config.country, self.config.theme
        )
        session.subscribe(self.on_game_complete)
        self.game_session = session
        self.state = FlowState.GAME

    def on_game_complete(self, score: Any) -> None:
        self._require(FlowState.GAME)
        if self.game_score is not None:
            raise GuardViolation("Game already completed")
        self.game_score = clamp_score(score)
        if self.game_score != score:
            logger.debug(f"Game score {score} stored as {self.game_score}")
        kind = self.game_session.kind.value if self.game_session else None
        self._emit(ActivityType.GAME_PLAY, {
            "lesson_id": self.lesson.id,
            "game_id": kind,
            "score": self.game_score,
        })
        self._schedule(self.game_complete_delay, self._enter_complete)

    # -- Complete ------------------------------------------------------

    def _enter_complete(self) -> None:
        if self.cancelled:
            return
        self.state = FlowState.COMPLETE

    def elapsed_seconds(self) -> int:
        return int(self._clock() - self._visit_started_at)

    def summary(self) -> CompletionSummary:
        return CompletionSummary(
            lesson_id=self.lesson.id,
            quiz_score=self.quiz_result.score if self.quiz_result else None,
            game_score=self.game_score,
            elapsed_seconds=self.elapsed_seconds()
        )

    def next_destination(self) -> Destination:
        """Next lesson in catalog order, or the dashboard after the last one."""
        try:
            index = self.catalog.index(self.lesson.id)
        except ValueError:
            return Destination(path=settings.DASHBOARD_PATH)
        if index < len(self.catalog) - 1:
            next_id = self.catalog[index + 1]
            return Destination(path=f"/lessons/{next_id}", lesson_id=next_id)
        return Destination(path=settings.DASHBOARD_PATH)

    def finish(self) -> Destination:
        self._require(FlowState.COMPLETE)
        self._emit(ActivityType.LESSON_COMPLETE, {
            "lesson_id": self.lesson.id,
            "lesson_title": self.lesson.title,
            "duration_seconds": self.elapsed_seconds(),
        })
        return self.next_destination()

    # -- Lifecycle -----------------------------------------------------

    def cancel(self) -> None:
        """Leave the lesson. Pending writes are left to finish on their own."""
        self.cancelled = True
        if self._transition is not None:
            self._transition.cancel()
            self._transition = None

    async def wait_for_transition(self) -> None:
        """Wait for a scheduled auto-transition, if any."""
        task = self._transition
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def drain(self) -> None:
        """Wait until every fire-and-forget write has settled."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def snapshot(self) -> FlowSnapshot:
        return FlowSnapshot(
            flow_id=self.id,
            lesson_id=self.lesson.id,
            state=self.state,
            current_question_index=self.current_question_index,
            total_questions=len(self.questions),
            answers=self.answers.as_dict(),
            quiz_result=self.quiz_result,
            game_kind=self.game_session.kind.value if self.game_session else None,
            game_score=self.game_score,
            summary=self.summary() if self.state == FlowState.COMPLETE else None
        )

    # -- Internals -----------------------------------------------------

    def _require(self, state: FlowState) -> None:
        if self.cancelled:
            raise GuardViolation("Lesson visit was cancelled")
        if self.state != state:
            raise GuardViolation(f"Action needs the {state.value} stage, flow is at {self.state.value}")

    def _require_open_quiz(self) -> None:
        self._require(FlowState.QUIZ)
        if self.quiz_result is not None:
            raise GuardViolation("Quiz already submitted")

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    def _emit(self, event_type: ActivityType, payload: Dict[str, Any]) -> None:
        # Each event waits for the previous one so the sink sees visit order
        previous = self._telemetry_tail

        async def record():
            if previous is not None:
                await previous
            await best_effort(
                f"Telemetry {event_type.value} for lesson {self.lesson.id}",
                self.telemetry.record(self.user_id, event_type, payload)
            )

        self._telemetry_tail = self._spawn(record())

    def _schedule(self, delay: float, transition: Callable[[], None]) -> None:
        if self._transition is not None:
            self._transition.cancel()

        async def later():
            await asyncio.sleep(delay)
            try:
                transition()
            except Exception as e:
                logger.error(f"Transition {transition.__name__} failed for lesson {self.lesson.id}: {e}")

        self._transition = asyncio.get_running_loop().create_task(later())
