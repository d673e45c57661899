"""
OpenAI Service - text-to-speech for lesson narration
"""
import openai
from typing import Optional
import logging

logger = logging.getLogger(__name__)

TTS_MODEL = "tts-1"
TTS_VOICES = ["alloy", "echo", "fable", "onyx", "nova", "shimmer"]


class OpenAIService:
    """Service for OpenAI speech synthesis"""

    def __init__(self, api_key: str):
        self.client = openai.OpenAI(api_key=api_key)
        self.tts_model = TTS_MODEL

    async def generate_text_to_speech(self, text: str, voice: str = "alloy",
                                      speed: float = 1.0) -> Optional[bytes]:
        """
        Generate speech audio from text

        Args:
            text: Text to convert to speech
            voice: One of TTS_VOICES
            speed: Playback speed, 0.25 to 4.0

        Returns:
            MP3 bytes or None
        """
        if voice not in TTS_VOICES:
            logger.warning(f"Unknown TTS voice '{voice}', using alloy")
            voice = "alloy"
        try:
            response = self.client.audio.speech.create(
                model=self.tts_model,
                voice=voice,
                input=text,
                speed=max(0.25, min(speed, 4.0))
            )
            return response.content
        except Exception as e:
            logger.error(f"TTS generation error: {e}")
            return None
