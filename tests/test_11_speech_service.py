"""Tests for SpeechService through a Gateway wired with fakes."""
from __future__ import annotations

import asyncio
import base64

import pytest

from conftest import FakeSpeechProvider, make_config, make_gateway
from translate_ms.core.errors import ConfigurationError, FallbackExhaustedError, InvalidInputError
from translate_ms.providers.base import ProviderError
from translate_ms.services.speech_service import SpeakRequest


class TestSpeak:
    """Single-shot synthesis."""

    async def test_short_text_uses_primary(self):
        """Auto mode sends short text to Google."""
        google, openai = FakeSpeechProvider("google"), FakeSpeechProvider("openai")
        gateway = make_gateway(primary=google, secondary=openai)
        result = await gateway.speech.speak(SpeakRequest("Xin chào", language="Vietnamese"))

        assert result.provider == "google"
        assert result.audio == "mp3:google:Xin chào".encode("utf-8")
        assert google.calls[0]["voice_config"].locale == "vi-VN"
        assert google.calls[0]["api_key"] == "g-system"
        assert openai.calls == []
        await gateway.aclose()

    async def test_mode_secondary(self):
        """Explicit secondary mode goes to OpenAI first."""
        google, openai = FakeSpeechProvider("google"), FakeSpeechProvider("openai")
        gateway = make_gateway(primary=google, secondary=openai)
        result = await gateway.speech.speak(SpeakRequest("Xin chào", mode="secondary"))
        assert result.provider == "openai"
        assert openai.calls[0]["api_key"] == "sk-system"
        await gateway.aclose()

    async def test_fallback(self):
        """A failing primary falls back to OpenAI."""
        google = FakeSpeechProvider("google", [ProviderError("503", "google", 503, retryable=True)])
        openai = FakeSpeechProvider("openai")
        gateway = make_gateway(primary=google, secondary=openai)
        result = await gateway.speech.speak(SpeakRequest("Xin chào"))
        assert result.provider == "openai"
        assert result.fell_back is True
        assert len(google.calls) == 1
        await gateway.aclose()

    async def test_both_fail(self):
        """Both failing raises FALLBACK_EXHAUSTED and caches nothing."""
        google = FakeSpeechProvider("google", [ProviderError("bad", "google", 400)])
        openai = FakeSpeechProvider("openai", [ProviderError("bad", "openai", 400)])
        gateway = make_gateway(primary=google, secondary=openai)
        with pytest.raises(FallbackExhaustedError):
            await gateway.speech.speak(SpeakRequest("Xin chào"))
        assert len(gateway.speech.cache) == 0
        await gateway.aclose()

    async def test_no_keys(self):
        """No speech keys at all is CONFIGURATION_ERROR."""
        gateway = make_gateway(make_config(openai_key=None, google_key=None))
        with pytest.raises(ConfigurationError):
            await gateway.speech.speak(SpeakRequest("Xin chào"))
        await gateway.aclose()

    async def test_invalid_mode(self):
        """Unknown modes are INVALID_INPUT."""
        gateway = make_gateway()
        with pytest.raises(InvalidInputError) as exc_info:
            await gateway.speech.speak(SpeakRequest("Xin chào", mode="loud"))
        assert exc_info.value.details["reason"] == "MODE_INVALID"
        await gateway.aclose()

    async def test_empty_text(self):
        """Blank text is INVALID_INPUT with no provider call."""
        google = FakeSpeechProvider("google")
        gateway = make_gateway(primary=google)
        with pytest.raises(InvalidInputError):
            await gateway.speech.speak(SpeakRequest(""))
        assert google.calls == []
        await gateway.aclose()


class TestSpeechCache:
    """Audio cache and deduplication."""

    async def test_replay_served_from_cache(self):
        """The same phrase twice reaches the provider once."""
        google = FakeSpeechProvider("google")
        gateway = make_gateway(primary=google)
        first = await gateway.speech.speak(SpeakRequest("Xin chào"))
        second = await gateway.speech.speak(SpeakRequest("Xin chào"))
        assert first.audio == second.audio
        assert len(google.calls) == 1
        await gateway.aclose()

    async def test_voice_separates_entries(self):
        """A different voice is a different cache entry."""
        google = FakeSpeechProvider("google")
        gateway = make_gateway(primary=google)
        await gateway.speech.speak(SpeakRequest("Xin chào"))
        await gateway.speech.speak(SpeakRequest("Xin chào", voice="vi-VN-Standard-B"))
        assert len(google.calls) == 2
        await gateway.aclose()

    async def test_cache_served_before_credentials(self):
        """A cached phrase is served even when no key resolves for the caller."""
        google = FakeSpeechProvider("google")
        gateway = make_gateway(
            make_config(openai_key=None, google_key=None),
            primary=google,
            user_keys={"u1": {"google": "g-user"}},
        )
        await gateway.speech.speak(SpeakRequest("Xin chào", user_id="u1"))
        result = await gateway.speech.speak(SpeakRequest("Xin chào"))
        assert result.provider == "google"
        assert len(google.calls) == 1
        await gateway.aclose()

    async def test_concurrent_identical_requests(self):
        """Concurrent identical requests share one synthesis."""
        google = FakeSpeechProvider("google", delay=0.02)
        gateway = make_gateway(primary=google)
        await asyncio.gather(*(gateway.speech.speak(SpeakRequest("Xin chào")) for _ in range(4)))
        assert len(google.calls) == 1
        await gateway.aclose()

    async def test_usage_recorded_with_provider(self, usage_sink):
        """Usage names the provider that actually served."""
        gateway = make_gateway(usage_sink=usage_sink)
        await gateway.speech.speak(SpeakRequest("Xin chào", user_id="u1"))
        await gateway.usage.drain()
        event = usage_sink.events[0]
        assert (event.kind, event.volume, event.provider) == ("tts", 8, "google")
        await gateway.aclose()


class TestSpeakChunk:
    """Progressive per-segment synthesis."""

    async def test_segments(self):
        """Each chunk is one sentence segment with base64 audio."""
        config = make_config()
        config.translation.segment_max_chars = 15
        gateway = make_gateway(config)
        request = SpeakRequest("Hello there. How are you?", language="English")

        first = await gateway.speech.speak_chunk(request, 0)
        assert first["completed"] is False
        assert first["chunk_index"] == 0
        assert first["total_chunks"] == 2
        assert first["text"] == "Hello there."
        assert base64.b64decode(first["audio"]) == b"mp3:google:Hello there."

        second = await gateway.speech.speak_chunk(request, 1)
        assert second["text"] == "How are you?"

        done = await gateway.speech.speak_chunk(request, 2)
        assert done == {"completed": True, "total_chunks": 2}
        await gateway.aclose()

    async def test_negative_index(self):
        """Negative chunk indexes are INVALID_INPUT."""
        gateway = make_gateway()
        with pytest.raises(InvalidInputError):
            await gateway.speech.speak_chunk(SpeakRequest("Hello."), -1)
        await gateway.aclose()


class TestGatewayHealth:
    """Health snapshot."""

    async def test_health_info(self):
        """Reports providers, caches and version."""
        gateway = make_gateway(make_config(google_key=None))
        info = gateway.get_health_info()
        assert info["ok"] is True
        assert info["providers"] == {"openai": True, "google": False}
        assert info["speech_mode"] == "auto"
        assert info["shared_cache"] == "memory"
        assert set(info["caches"]) == {"translation", "audio"}
        await gateway.aclose()
