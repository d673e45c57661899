import asyncio

from services.narration_service import (
    NarrationRequest, NarrationService, Voice, choose_voice, language_tag,
)


def test_language_tags():
    assert language_tag("hi") == "hi-IN"
    assert language_tag("EN") == "en-US"
    assert language_tag("pt-PT") == "pt-BR"
    assert language_tag(None) == "en-US"
    assert language_tag("xx") == "en-US"


def test_exact_tag_preferred_then_local_then_default():
    voices = [
        Voice(name="British", lang="en-GB", local_service=True),
        Voice(name="Cloud US", lang="en-US", default=True),
        Voice(name="Local US", lang="en_US", local_service=True),
    ]
    assert choose_voice(voices, "en-US").name == "Local US"


def test_same_language_fallback():
    voices = [Voice(name="British", lang="en-GB"), Voice(name="Hindi", lang="hi-IN")]
    assert choose_voice(voices, "en-US").name == "British"


def test_no_voice_for_language():
    assert choose_voice([Voice(name="British", lang="en-GB")], "ta-IN") is None
    assert choose_voice([], "en-US") is None


def test_plan_uses_configured_speech_settings():
    plan = NarrationService().plan(NarrationRequest(
        text="Look both ways before crossing.",
        language="te",
        voices=[Voice(name="Telugu", lang="te-IN")]
    ))
    assert plan.lang == "te-IN"
    assert plan.voice == "Telugu"
    assert (plan.rate, plan.pitch, plan.volume) == (0.8, 1.0, 0.8)


def test_synthesis_unavailable_without_key():
    service = NarrationService(None)
    assert service.is_configured() == {"server_audio": False}
    assert asyncio.run(service.synthesize("Stop at red lights.")) is None
