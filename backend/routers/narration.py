"""
Narration Router - read lesson text aloud
"""
from fastapi import APIRouter, HTTPException, Depends, Response
import logging

from dependencies import get_narration_service
from services.narration_service import NarrationPlan, NarrationRequest, NarrationService
from utils.jwt_handler import get_current_user

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("", response_model=NarrationPlan)
async def plan_narration(
    request: NarrationRequest,
    current_user: dict = Depends(get_current_user),
    narration: NarrationService = Depends(get_narration_service)
):
    """Speech settings and voice for the client speech engine"""
    if not request.text.strip():
        raise HTTPException(status_code=400, detail="Nothing to narrate")
    if not request.language:
        request = request.model_copy(update={"language": current_user.get("language")})
    return narration.plan(request)


@router.post("/audio")
async def narration_audio(
    request: NarrationRequest,
    current_user: dict = Depends(get_current_user),
    narration: NarrationService = Depends(get_narration_service)
):
    """Server-side MP3 for clients without a speech engine"""
    if not narration.is_configured()["server_audio"]:
        raise HTTPException(status_code=503, detail="Server-side narration is not configured")
    if not request.text.strip():
        raise HTTPException(status_code=400, detail="Nothing to narrate")

    audio = await narration.synthesize(request.text)
    if audio is None:
        logger.error(f"Narration failed for user {current_user['user_id']}")
        raise HTTPException(status_code=502, detail="Speech synthesis failed")
    return Response(content=audio, media_type="audio/mpeg")
