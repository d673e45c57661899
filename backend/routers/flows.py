"""
Flows Router - user actions within one lesson visit
"""
from fastapi import APIRouter, HTTPException, Depends
import logging

from dependencies import get_flow_registry
from models.progress import AnswerSelection, GameCompletion
from services.flow_controller import LessonFlowController
from services.flow_registry import FlowRegistry
from services.game_adapter import describe_game
from services.stores import GuardViolation
from utils.jwt_handler import get_current_user

router = APIRouter()
logger = logging.getLogger(__name__)


def _flow(flow_id: str, current_user: dict, registry: FlowRegistry) -> LessonFlowController:
    controller = registry.get(flow_id, current_user["user_id"])
    if controller is None:
        raise HTTPException(status_code=404, detail="Lesson visit not found")
    return controller


def _view(controller: LessonFlowController) -> dict:
    view = controller.snapshot().model_dump(mode="json")
    if controller.quiz_result is not None:
        view["review"] = [
            {
                "question_id": q.id,
                "selected": controller.answers.get(i),
                "correct_answer": q.correct_answer,
                "explanation": q.explanation,
            }
            for i, q in enumerate(controller.questions)
        ]
    if controller.game_session is not None:
        view["game"] = describe_game(controller.game_session.kind)
    return view


def _act(controller: LessonFlowController, action, *args) -> dict:
    try:
        action(*args)
    except GuardViolation as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _view(controller)


@router.get("/{flow_id}")
async def get_flow(flow_id: str, current_user: dict = Depends(get_current_user),
                   registry: FlowRegistry = Depends(get_flow_registry)):
    """Current stage of the visit; clients poll this during timed transitions"""
    return _view(_flow(flow_id, current_user, registry))


@router.post("/{flow_id}/continue")
async def continue_to_quiz(flow_id: str, current_user: dict = Depends(get_current_user),
                           registry: FlowRegistry = Depends(get_flow_registry)):
    controller = _flow(flow_id, current_user, registry)
    return _act(controller, controller.continue_to_quiz)


@router.post("/{flow_id}/answer")
async def select_answer(flow_id: str, selection: AnswerSelection,
                        current_user: dict = Depends(get_current_user),
                        registry: FlowRegistry = Depends(get_flow_registry)):
    controller = _flow(flow_id, current_user, registry)
    return _act(controller, controller.select_answer, selection.option_index)


@router.post("/{flow_id}/next")
async def next_question(flow_id: str, current_user: dict = Depends(get_current_user),
                        registry: FlowRegistry = Depends(get_flow_registry)):
    """Advance, or submit the quiz from the last question"""
    controller = _flow(flow_id, current_user, registry)
    return _act(controller, controller.next_question)


@router.post("/{flow_id}/back")
async def back_to_lesson(flow_id: str, current_user: dict = Depends(get_current_user),
                         registry: FlowRegistry = Depends(get_flow_registry)):
    controller = _flow(flow_id, current_user, registry)
    return _act(controller, controller.back_to_lesson)


@router.post("/{flow_id}/retake")
async def retake_quiz(flow_id: str, current_user: dict = Depends(get_current_user),
                      registry: FlowRegistry = Depends(get_flow_registry)):
    controller = _flow(flow_id, current_user, registry)
    return _act(controller, controller.retake)


@router.post("/{flow_id}/game/complete")
async def complete_game(flow_id: str, completion: GameCompletion,
                        current_user: dict = Depends(get_current_user),
                        registry: FlowRegistry = Depends(get_flow_registry)):
    """Final score reported by the client-side mini-game"""
    controller = _flow(flow_id, current_user, registry)
    if controller.game_session is None:
        raise HTTPException(status_code=409, detail="No game is running for this visit")
    if controller.game_session.finished:
        raise HTTPException(status_code=409, detail="Game already completed")
    return _act(controller, controller.game_session.complete, completion.score)


@router.post("/{flow_id}/finish")
async def finish_lesson(flow_id: str, current_user: dict = Depends(get_current_user),
                        registry: FlowRegistry = Depends(get_flow_registry)):
    """Record completion and tell the client where to go next"""
    controller = _flow(flow_id, current_user, registry)
    try:
        destination = controller.finish()
    except GuardViolation as e:
        raise HTTPException(status_code=409, detail=str(e))
    summary = controller.summary()
    registry.close(flow_id)
    return {"summary": summary, "destination": destination}


@router.delete("/{flow_id}")
async def leave_lesson(flow_id: str, current_user: dict = Depends(get_current_user),
                       registry: FlowRegistry = Depends(get_flow_registry)):
    """Navigate away from the lesson; nothing already written is rolled back"""
    _flow(flow_id, current_user, registry)
    registry.close(flow_id)
    return {"success": True}
