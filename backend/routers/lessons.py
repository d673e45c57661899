"""
Lessons Router - lesson catalog, lesson detail and starting a lesson visit
"""
from fastapi import APIRouter, HTTPException, Depends, Query
from typing import Optional, List
import logging

from config import settings
from dependencies import get_content_store, get_progress_store, get_flow_registry
from models.lesson import Lesson, LessonSummary
from services.flow_controller import FlowConfig
from services.flow_registry import FlowRegistry
from services.game_adapter import describe_game, select_game_kind
from services.stores import ContentStore, LessonNotFound, ProgressStore, StoreError
from utils.jwt_handler import get_current_user

router = APIRouter()
logger = logging.getLogger(__name__)


def lesson_not_found(lesson_id: str) -> HTTPException:
    """404 telling the client to fall back to the dashboard"""
    return HTTPException(
        status_code=404,
        detail={"message": f"Lesson {lesson_id} not found", "redirect": settings.DASHBOARD_PATH}
    )


def resolve_locale(current_user: dict, language: Optional[str], country: Optional[str]):
    return (
        (language or current_user.get("language") or settings.DEFAULT_LANGUAGE).lower(),
        (country or current_user.get("country") or settings.DEFAULT_COUNTRY).upper(),
    )


def public_lesson(lesson: Lesson) -> dict:
    """Lesson payload without the answer key"""
    return {
        "id": lesson.id,
        "title": lesson.title,
        "description": lesson.description,
        "content": lesson.content,
        "level": lesson.level,
        "language": lesson.language,
        "country": lesson.country,
        "category": lesson.category,
        "questions_count": len(lesson.quiz_questions),
        "quiz_questions": [
            {"id": q.id, "question": q.question, "options": q.options}
            for q in lesson.quiz_questions
        ],
    }


async def load_catalog(content_store: ContentStore, language: str, country: str) -> List[Lesson]:
    try:
        return await content_store.list_lessons(language, country)
    except StoreError as e:
        logger.error(f"Catalog load failed for {country}/{language}: {e}")
        return []


@router.get("")
async def list_lessons(
    language: Optional[str] = Query(default=None),
    country: Optional[str] = Query(default=None),
    current_user: dict = Depends(get_current_user),
    content_store: ContentStore = Depends(get_content_store),
    progress_store: ProgressStore = Depends(get_progress_store)
):
    """Lesson catalog for the learner's locale, with their progress merged in"""
    language, country = resolve_locale(current_user, language, country)
    try:
        lessons = await content_store.list_lessons(language, country)
    except StoreError as e:
        logger.error(f"List lessons error: {e}")
        raise HTTPException(status_code=500, detail="Failed to load lessons")

    try:
        progress = {p.lesson_id: p for p in await progress_store.list_progress(current_user["user_id"])}
    except StoreError as e:
        logger.error(f"Progress lookup failed, listing lessons without it: {e}")
        progress = {}

    summaries = []
    for lesson in lessons:
        record = progress.get(lesson.id)
        summaries.append(LessonSummary(
            id=lesson.id,
            title=lesson.title,
            description=lesson.description,
            level=lesson.level,
            language=lesson.language,
            country=lesson.country,
            questions_count=len(lesson.quiz_questions),
            completed=record.completed if record else False,
            score=record.score if record else None,
            completed_at=record.completed_at if record else None
        ))
    return {"language": language, "country": country, "lessons": summaries}


@router.get("/{lesson_id}")
async def get_lesson(
    lesson_id: str,
    current_user: dict = Depends(get_current_user),
    content_store: ContentStore = Depends(get_content_store),
    progress_store: ProgressStore = Depends(get_progress_store)
):
    """Lesson content plus the learner's previous result"""
    try:
        lesson = await content_store.get_lesson(lesson_id)
    except LessonNotFound:
        raise lesson_not_found(lesson_id)
    except StoreError as e:
        logger.error(f"Get lesson error: {e}")
        raise HTTPException(status_code=500, detail="Failed to load lesson")

    try:
        record = await progress_store.get_progress(current_user["user_id"], lesson_id)
    except StoreError as e:
        logger.error(f"Progress lookup failed for lesson {lesson_id}: {e}")
        record = None

    return {
        **public_lesson(lesson),
        "game": describe_game(select_game_kind(lesson)),
        "progress": record.model_dump() if record else None
    }


@router.post("/{lesson_id}/flow")
async def start_lesson_flow(
    lesson_id: str,
    config: Optional[FlowConfig] = None,
    current_user: dict = Depends(get_current_user),
    content_store: ContentStore = Depends(get_content_store),
    registry: FlowRegistry = Depends(get_flow_registry)
):
    """Start a lesson visit; any earlier visit of this lesson is discarded"""
    try:
        lesson = await content_store.get_lesson(lesson_id)
    except LessonNotFound:
        raise lesson_not_found(lesson_id)
    except StoreError as e:
        logger.error(f"Start flow error: {e}")
        raise HTTPException(status_code=500, detail="Failed to load lesson")

    if config is None:
        language, country = resolve_locale(current_user, None, None)
        config = FlowConfig(language=language, country=country)
    catalog = await load_catalog(content_store, config.language, config.country)

    controller = registry.open(current_user["user_id"], lesson, [l.id for l in catalog], config)
    return {"lesson": public_lesson(lesson), "flow": controller.snapshot()}
