import asyncio
import logging
import math

import pytest

from conftest import FailingProgressStore, FailingTelemetry, STUDENT, make_lesson
from models.activity import ActivityType
from models.progress import FlowState
from services.flow_controller import clamp_score
from services.game_adapter import GameKind
from services.stores import GuardViolation


def answer_all(controller, answers):
    controller.continue_to_quiz()
    for option in answers:
        controller.select_answer(option)
        controller.next_question()


def test_passing_quiz_moves_to_game(lesson, make_controller, progress_store, telemetry):
    async def scenario():
        controller = make_controller(lesson)
        controller.start()
        answer_all(controller, [1, 0, 2, 3])
        assert controller.state == FlowState.QUIZ
        assert controller.quiz_result.score == 100

        await controller.wait_for_transition()
        await controller.drain()
        return controller

    controller = asyncio.run(scenario())
    assert controller.state == FlowState.GAME
    assert controller.game_session.kind == GameKind.TRAFFIC_LIGHT
    assert progress_store.writes == [(STUDENT["user_id"], "l1", 100, True)]
    assert telemetry.types() == [
        ActivityType.LESSON_START, ActivityType.QUIZ_ATTEMPT, ActivityType.QUIZ_COMPLETE,
    ]


def test_seventy_five_percent_passes(lesson, make_controller, progress_store):
    async def scenario():
        controller = make_controller(lesson)
        answer_all(controller, [1, 1, 2, 3])
        await controller.wait_for_transition()
        await controller.drain()
        return controller

    controller = asyncio.run(scenario())
    assert controller.quiz_result.score == 75
    assert controller.state == FlowState.GAME
    assert progress_store.writes[-1][2:] == (75, True)


def test_failing_quiz_stays_and_retake_resets(lesson, make_controller, progress_store, telemetry):
    async def scenario():
        controller = make_controller(lesson)
        answer_all(controller, [0, 1, 1, 0])
        await controller.wait_for_transition()
        assert controller.state == FlowState.QUIZ
        assert not controller.quiz_result.passed

        controller.retake()
        await controller.drain()
        return controller

    controller = asyncio.run(scenario())
    assert controller.current_question_index == 0
    assert len(controller.answers) == 0
    assert controller.quiz_result is None
    assert progress_store.writes[-1][2:] == (0, False)
    _, last_type, last_payload = telemetry.events[-1]
    assert last_type == ActivityType.QUIZ_ATTEMPT
    assert last_payload["retake"] is True


def test_retake_does_not_leak_previous_answers(lesson, make_controller):
    async def scenario():
        controller = make_controller(lesson)
        answer_all(controller, [0, 1, 1, 0])
        controller.retake()
        for option in [1, 0, 2, 3]:
            controller.select_answer(option)
            controller.next_question()
        await controller.wait_for_transition()
        return controller

    controller = asyncio.run(scenario())
    assert controller.quiz_result.score == 100
    assert controller.state == FlowState.GAME


def test_quiz_complete_payload(lesson, make_controller, telemetry):
    async def scenario():
        controller = make_controller(lesson)
        answer_all(controller, [1, 1, 2, 3])
        await controller.drain()

    asyncio.run(scenario())
    payload = [p for _, t, p in telemetry.events if t == ActivityType.QUIZ_COMPLETE][0]
    assert payload["score"] == 75
    assert payload["correct_answers"] == 3
    assert payload["total_questions"] == 4
    assert payload["answers"] == {0: 1, 1: 1, 2: 2, 3: 3}
    assert "duration_seconds" in payload


def test_game_score_is_rounded_and_completes(lesson, make_controller, telemetry):
    async def scenario():
        controller = make_controller(lesson)
        answer_all(controller, [1, 0, 2, 3])
        await controller.wait_for_transition()
        controller.game_session.complete(92.7)
        await controller.wait_for_transition()
        await controller.drain()
        return controller

    controller = asyncio.run(scenario())
    assert controller.game_score == 93
    assert controller.state == FlowState.COMPLETE
    summary = controller.summary()
    assert summary.quiz_score == 100
    assert summary.game_score == 93
    _, event_type, payload = telemetry.events[-1]
    assert event_type == ActivityType.GAME_PLAY
    assert payload == {"lesson_id": "l1", "game_id": "traffic_light", "score": 93}


def test_game_score_is_clamped(lesson, make_controller):
    async def scenario():
        controller = make_controller(lesson)
        answer_all(controller, [1, 0, 2, 3])
        await controller.wait_for_transition()
        controller.game_session.complete(150)
        return controller

    assert asyncio.run(scenario()).game_score == 100


@pytest.mark.parametrize("raw,expected", [
    (137, 100), (-5, 0), (92.7, 93), (92.5, 93), (0, 0), (100, 100),
    (math.nan, 0), (math.inf, 100), (-math.inf, 0), ("n/a", 0), (None, 0),
])
def test_clamp_score(raw, expected):
    assert clamp_score(raw) == expected


def test_second_game_report_is_ignored(lesson, make_controller):
    async def scenario():
        controller = make_controller(lesson, game_complete_delay=60)
        answer_all(controller, [1, 0, 2, 3])
        await controller.wait_for_transition()
        controller.game_session.complete(40)
        controller.game_session.complete(90)
        score = controller.game_score
        controller.cancel()
        return score

    assert asyncio.run(scenario()) == 40


def test_finish_routes_to_next_lesson(catalog, make_controller, telemetry):
    async def scenario():
        controller = make_controller(catalog[0])
        answer_all(controller, [1, 0, 2, 3])
        await controller.wait_for_transition()
        controller.game_session.complete(80)
        await controller.wait_for_transition()
        destination = controller.finish()
        await controller.drain()
        return destination

    destination = asyncio.run(scenario())
    assert destination.path == "/lessons/l2"
    assert destination.lesson_id == "l2"
    assert telemetry.types()[-1] == ActivityType.LESSON_COMPLETE


def test_finish_on_last_lesson_routes_to_dashboard(catalog, make_controller):
    async def scenario():
        controller = make_controller(catalog[2])
        answer_all(controller, [1, 0, 2, 3])
        await controller.wait_for_transition()
        controller.game_session.complete(80)
        await controller.wait_for_transition()
        return controller.finish()

    destination = asyncio.run(scenario())
    assert destination.path == "/dashboard"
    assert destination.lesson_id is None


def test_lesson_missing_from_catalog_routes_to_dashboard(make_controller):
    orphan = make_lesson("l99", "Roundabouts")
    controller = make_controller(orphan)
    assert controller.next_destination().path == "/dashboard"


def test_store_failures_do_not_block_the_flow(lesson, make_controller, caplog):
    async def scenario():
        controller = make_controller(lesson, store=FailingProgressStore(), sink=FailingTelemetry())
        controller.start()
        answer_all(controller, [1, 0, 2, 3])
        await controller.wait_for_transition()
        controller.game_session.complete(70)
        await controller.wait_for_transition()
        destination = controller.finish()
        await controller.drain()
        return controller, destination

    with caplog.at_level(logging.ERROR):
        controller, destination = asyncio.run(scenario())
    assert controller.state == FlowState.COMPLETE
    assert destination.path == "/lessons/l2"
    assert "database is down" in caplog.text
    assert "activity log unavailable" in caplog.text


class BrokenGameAdapter:
    def start(self, lesson, language, country, theme):
        raise RuntimeError("game assets missing")


def test_game_start_failure_keeps_quiz_stage(lesson, make_controller, caplog):
    async def scenario():
        controller = make_controller(lesson, adapter=BrokenGameAdapter())
        answer_all(controller, [1, 0, 2, 3])
        await controller.wait_for_transition()
        return controller

    with caplog.at_level(logging.ERROR):
        controller = asyncio.run(scenario())
    assert controller.state == FlowState.QUIZ
    assert controller.game_session is None
    assert controller.quiz_result.passed
    assert "game assets missing" in caplog.text


def test_guards(lesson, make_controller):
    async def scenario():
        controller = make_controller(lesson, quiz_result_delay=60)
        with pytest.raises(GuardViolation):
            controller.select_answer(0)
        with pytest.raises(GuardViolation):
            controller.finish()

        controller.continue_to_quiz()
        with pytest.raises(GuardViolation):
            controller.continue_to_quiz()
        with pytest.raises(GuardViolation):
            controller.next_question()
        with pytest.raises(GuardViolation):
            controller.select_answer(4)
        with pytest.raises(GuardViolation):
            controller.retake()

        for option in [1, 0, 2, 3]:
            controller.select_answer(option)
            controller.next_question()
        # passed, waiting out the result delay
        with pytest.raises(GuardViolation):
            controller.select_answer(1)
        with pytest.raises(GuardViolation):
            controller.retake()
        with pytest.raises(GuardViolation):
            controller.back_to_lesson()
        controller.cancel()

    asyncio.run(scenario())


def test_back_to_lesson_keeps_answers(lesson, make_controller):
    async def scenario():
        controller = make_controller(lesson)
        controller.continue_to_quiz()
        controller.select_answer(1)
        controller.next_question()
        controller.back_to_lesson()
        return controller

    controller = asyncio.run(scenario())
    assert controller.state == FlowState.LESSON
    assert controller.answers.get(0) == 1


def test_lesson_without_questions_goes_to_game(make_controller):
    empty = make_lesson("l5", "Parking Lots", correct=())

    async def scenario():
        controller = make_controller(empty)
        controller.continue_to_quiz()
        return controller

    controller = asyncio.run(scenario())
    assert controller.state == FlowState.GAME
    assert controller.game_session.kind == GameKind.PARKING


def test_cancel_stops_pending_transition(lesson, make_controller, progress_store):
    async def scenario():
        controller = make_controller(lesson, quiz_result_delay=60)
        answer_all(controller, [1, 0, 2, 3])
        controller.cancel()
        await controller.wait_for_transition()
        await controller.drain()
        return controller

    controller = asyncio.run(scenario())
    assert controller.state == FlowState.QUIZ
    assert controller.cancelled
    # writes already issued are not rolled back
    assert progress_store.writes == [(STUDENT["user_id"], "l1", 100, True)]
    with pytest.raises(GuardViolation):
        controller.back_to_lesson()


def test_snapshot(lesson, make_controller):
    async def scenario():
        controller = make_controller(lesson)
        controller.continue_to_quiz()
        controller.select_answer(1)
        controller.next_question()
        return controller.snapshot()

    snapshot = asyncio.run(scenario())
    assert snapshot.state == FlowState.QUIZ
    assert snapshot.current_question_index == 1
    assert snapshot.total_questions == 4
    assert snapshot.answers == {0: 1}
    assert snapshot.summary is None
