"""
SpeechService - text-to-speech with provider fallback.

Architecture:
    Request → Validate → Audio cache → Dedupe → SpeechFallbackChain → Response

Synthesized audio (MP3) is kept in a TTL cache keyed on text, locale,
voice and mode, so replaying a phrase never reaches a provider. Cache hits
are served before credentials are resolved.

``speak_chunk`` supports progressive playback of long text: the input is
split into sentence segments and one segment is synthesized per call.
"""
from __future__ import annotations

import base64
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Optional

from translate_ms.core.config import Defaults, SpeechConfig
from translate_ms.core.logging import get_logger, info, verbose
from translate_ms.providers.base import VoiceConfig
from translate_ms.runtime.cache import TTLCache, make_cache_key
from translate_ms.runtime.fallback import SpeechFallbackChain, SpeechMode, SpeechResult
from translate_ms.runtime.inflight import InFlightDeduplicator
from translate_ms.core.errors import InvalidInputError
from translate_ms.services.usage import UsageRecorder
from translate_ms.services.validators import validate_chunk_index, validate_text
from translate_ms.utils.text import language_to_locale, preview, split_into_sentences

if TYPE_CHECKING:
    from translate_ms.core.metrics import GatewayMetrics

_LOG = get_logger("translate-ms.speech")


@dataclass
class SpeakRequest:
    """
    Request for speech synthesis.

    Attributes:
        text: Text to speak.
        language: Language name or code; mapped to a locale (default vi-VN).
        voice: Provider voice name. None picks the provider default.
        mode: "auto", "primary" or "secondary". None uses the configured mode.
        user_id: Signed-in user, if any.
    """
    text: str
    language: Optional[str] = None
    voice: Optional[str] = None
    mode: Optional[str] = None
    user_id: Optional[str] = None


class SpeechService:
    """Speech synthesis over the fallback chain, with an audio cache."""

    def __init__(
        self,
        config: SpeechConfig,
        chain: SpeechFallbackChain,
        cache: TTLCache[SpeechResult],
        inflight: InFlightDeduplicator,
        usage: UsageRecorder,
        metrics: Optional["GatewayMetrics"] = None,
        max_input_chars: int = Defaults.TRANSLATION_MAX_INPUT_CHARS,
        segment_max_chars: int = Defaults.TRANSLATION_SEGMENT_MAX_CHARS,
        text_preview_chars: int = 50,
    ):
        self._config = config
        self._chain = chain
        self._cache = cache
        self._inflight = inflight
        self._usage = usage
        self._metrics = metrics
        self._max_input_chars = max_input_chars
        self._segment_max_chars = segment_max_chars
        self._preview = text_preview_chars

    @property
    def cache(self) -> TTLCache[SpeechResult]:
        return self._cache

    def resolve_mode(self, mode: Optional[str]) -> SpeechMode:
        if mode is None or not str(mode).strip():
            return SpeechMode(self._config.default_mode)
        try:
            return SpeechMode(str(mode).strip().lower())
        except ValueError:
            raise InvalidInputError(
                f"Invalid speech mode: {mode!r}",
                {"reason": "MODE_INVALID", "choices": [m.value for m in SpeechMode]},
            )

    async def speak(self, request: SpeakRequest) -> SpeechResult:
        """
        Synthesize ``request.text``.

        Raises:
            InvalidInputError: Bad text or mode.
            ConfigurationError: No key for either speech provider.
            FallbackExhaustedError: Both providers failed.
        """
        t0 = time.perf_counter()
        status = "error"
        try:
            result = await self._speak(request)
            status = "ok"
            return result
        finally:
            if self._metrics is not None:
                self._metrics.record_request("speak", status, time.perf_counter() - t0)

    async def _speak(self, request: SpeakRequest) -> SpeechResult:
        validate_text(request.text, self._max_input_chars)
        mode = self.resolve_mode(request.mode)
        voice_config = VoiceConfig(locale=language_to_locale(request.language), voice=request.voice)

        key = make_cache_key("speak", {
            "text": request.text,
            "locale": voice_config.locale,
            "voice": voice_config.voice or "",
            "mode": mode.value,
        })

        cached = self._cache.get(key)
        if cached is not None:
            self._record_cache("hit")
            verbose(_LOG, "cache_hit", tier="audio", key=key[-12:], provider=cached.provider)
            return cached
        self._record_cache("miss")

        info(_LOG, "speak", chars=len(request.text), text=preview(request.text, self._preview),
             locale=voice_config.locale, mode=mode.value)

        async def _synthesize() -> SpeechResult:
            result = await self._chain.synthesize(request.text, voice_config, mode, request.user_id)
            self._cache.set(key, result)
            if self._metrics is not None:
                self._metrics.record_speech_bytes(result.provider, result.byte_length)
            self._usage.record(request.user_id, "tts", len(request.text), result.provider)
            return result

        return await self._inflight.dedupe(key, _synthesize)

    async def speak_chunk(self, request: SpeakRequest, chunk_index: int) -> Dict[str, Any]:
        """
        Synthesize one sentence segment of ``request.text``.

        Returns:
            ``{"audio", "chunk_index", "total_chunks", "text", "completed": False}``
            with base64 MP3 audio, or ``{"completed": True, "total_chunks"}``
            once ``chunk_index`` is past the last segment.
        """
        validate_text(request.text, self._max_input_chars)
        validate_chunk_index(chunk_index)

        segments = split_into_sentences(request.text, self._segment_max_chars)
        if chunk_index >= len(segments):
            return {"completed": True, "total_chunks": len(segments)}

        segment = segments[chunk_index]
        result = await self.speak(SpeakRequest(
            text=segment,
            language=request.language,
            voice=request.voice,
            mode=request.mode,
            user_id=request.user_id,
        ))
        return {
            "audio": base64.b64encode(result.audio).decode("ascii"),
            "chunk_index": chunk_index,
            "total_chunks": len(segments),
            "text": segment,
            "completed": False,
            "provider": result.provider,
        }

    def _record_cache(self, result: str) -> None:
        if self._metrics is not None:
            self._metrics.record_cache(result, "audio")
