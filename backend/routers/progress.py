"""
Progress Router - learner dashboard, certificate and page-view tracking
"""
from fastapi import APIRouter, HTTPException, Depends, Response
import logging

from config import settings
from dependencies import get_content_store, get_progress_store, get_telemetry
from models.activity import ActivityType, PageView
from models.progress import LearnerDashboard
from services.certificate import NothingCompleted, certificate_filename, render_certificate
from services.learner_stats import build_dashboard
from services.stores import ContentStore, ProgressStore, StoreError, TelemetrySink, best_effort
from utils.jwt_handler import get_current_user

router = APIRouter()
logger = logging.getLogger(__name__)


async def _load_dashboard(current_user: dict, content_store: ContentStore,
                          progress_store: ProgressStore) -> LearnerDashboard:
    try:
        records = await progress_store.list_progress(current_user["user_id"])
        lessons = await content_store.list_lessons(
            current_user.get("language") or settings.DEFAULT_LANGUAGE,
            current_user.get("country") or settings.DEFAULT_COUNTRY
        )
    except StoreError as e:
        logger.error(f"Dashboard error: {e}")
        raise HTTPException(status_code=500, detail="Failed to load dashboard")

    return build_dashboard(current_user["user_id"], records, len(lessons))


@router.get("/dashboard", response_model=LearnerDashboard)
async def get_dashboard(
    current_user: dict = Depends(get_current_user),
    content_store: ContentStore = Depends(get_content_store),
    progress_store: ProgressStore = Depends(get_progress_store)
):
    """Scores, completion rate, streak and badges for the learner"""
    logger.info(f"Loading dashboard for user {current_user['user_id']}")
    return await _load_dashboard(current_user, content_store, progress_store)


@router.get("/certificate")
async def download_certificate(
    current_user: dict = Depends(get_current_user),
    content_store: ContentStore = Depends(get_content_store),
    progress_store: ProgressStore = Depends(get_progress_store)
):
    """
    Certificate of completion as a PDF.
    Available once the learner has completed at least one lesson.
    """
    dashboard = await _load_dashboard(current_user, content_store, progress_store)
    username = (
        current_user.get("username")
        or (current_user.get("email") or "").split("@")[0]
        or "Student"
    )

    try:
        pdf = render_certificate(username, dashboard, current_user.get("country"))
    except NothingCompleted:
        raise HTTPException(status_code=409, detail="Complete a lesson to earn your certificate")
    except Exception as e:
        logger.error(f"Certificate error: {e}")
        raise HTTPException(status_code=500, detail="Failed to generate certificate")

    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f"attachment; filename={certificate_filename(username)}"
        }
    )


@router.post("/page-view")
async def track_page_view(
    page: PageView,
    current_user: dict = Depends(get_current_user),
    telemetry: TelemetrySink = Depends(get_telemetry)
):
    """Record a page view; tracking failures never reach the client"""
    recorded = await best_effort(
        f"Page view {page.page_path}",
        telemetry.record(current_user["user_id"], ActivityType.PAGE_VIEW, {
            "page_url": page.page_path,
            "page_title": page.page_title,
            "duration_seconds": page.duration_seconds,
        })
    )
    return {"success": True, "recorded": recorded}
