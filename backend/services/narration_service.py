"""
Narration Service - voice settings for reading lesson text aloud
"""
from typing import Optional, Dict, Any, List
import logging

from pydantic import BaseModel

from config import settings
from services.openai_service import OpenAIService

logger = logging.getLogger(__name__)

LANGUAGE_TAGS = {
    "en": "en-US",
    "hi": "hi-IN",
    "te": "te-IN",
    "ta": "ta-IN",
    "bn": "bn-IN",
    "mr": "mr-IN",
    "gu": "gu-IN",
    "kn": "kn-IN",
    "ml": "ml-IN",
    "pa": "pa-IN",
    "es": "es-ES",
    "fr": "fr-FR",
    "de": "de-DE",
    "pt": "pt-BR",
    "zh": "zh-CN",
    "ja": "ja-JP",
}
DEFAULT_TAG = "en-US"


class Voice(BaseModel):
    """A voice as reported by the client's speech engine."""
    name: str
    lang: str
    default: bool = False
    local_service: bool = False


class NarrationRequest(BaseModel):
    text: str
    language: Optional[str] = None
    voices: List[Voice] = []


class NarrationPlan(BaseModel):
    text: str
    lang: str
    rate: float
    pitch: float
    volume: float
    voice: Optional[str] = None


def language_tag(language: Optional[str]) -> str:
    """Map an app language code to the BCP-47 tag used for speech."""
    if not language:
        return DEFAULT_TAG
    return LANGUAGE_TAGS.get(language.lower().split("-")[0], DEFAULT_TAG)


def _normalise(tag: str) -> str:
    return tag.replace("_", "-").lower()


def choose_voice(voices: List[Voice], tag: str) -> Optional[Voice]:
    """
    Pick the best available voice for a language tag.

    Exact tag matches win over same-language voices; within a tier, voices
    that run locally win, then the engine default. Returns None when no
    voice speaks the language, leaving the engine to decide.
    """
    wanted = _normalise(tag)
    primary = wanted.split("-")[0]

    def rank(voice: Voice):
        return (not voice.local_service, not voice.default, voice.name)

    exact = [v for v in voices if _normalise(v.lang) == wanted]
    if exact:
        return sorted(exact, key=rank)[0]
    same_language = [v for v in voices if _normalise(v.lang).split("-")[0] == primary]
    if same_language:
        return sorted(same_language, key=rank)[0]
    return None


class NarrationService:
    """
    Builds narration settings for the client speech engine and, when an
    OpenAI key is configured, synthesises audio server-side.
    """

    def __init__(self, openai_key: Optional[str] = None):
        self.openai_service = OpenAIService(openai_key) if openai_key else None

    def plan(self, request: NarrationRequest) -> NarrationPlan:
        tag = language_tag(request.language or settings.DEFAULT_LANGUAGE)
        voice = choose_voice(request.voices, tag)
        return NarrationPlan(
            text=request.text,
            lang=tag,
            rate=settings.NARRATION_RATE,
            pitch=settings.NARRATION_PITCH,
            volume=settings.NARRATION_VOLUME,
            voice=voice.name if voice else None
        )

    async def synthesize(self, text: str) -> Optional[bytes]:
        """Return MP3 audio, or None when synthesis is unavailable or failed"""
        if not self.openai_service:
            return None
        return await self.openai_service.generate_text_to_speech(
            text, voice=settings.TTS_VOICE, speed=settings.NARRATION_RATE
        )

    def is_configured(self) -> Dict[str, Any]:
        return {"server_audio": self.openai_service is not None}
