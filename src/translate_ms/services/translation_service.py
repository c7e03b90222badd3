"""
TranslationService - LLM translation pipeline.

Architecture:
    Request → Validate → Credential → Ephemeral cache → Shared cache
            → Dedupe → Retry(OpenAI) → Store → Response

Cache tiers:
    - ephemeral: per-process TTLCache keyed on every request field
    - shared: durable store keyed on (normalized text, target language),
      consulted only for requests without a contextual prompt

Identical concurrent misses share one upstream call through the
InFlightDeduplicator. Upstream failures are retried with exponential
backoff; once retries are exhausted the caller gets ProviderFailedError.

Example:
    >>> gateway = Gateway.from_settings(settings)
    >>> result = await gateway.translation.translate(
    ...     TranslateRequest(text="안녕하세요", target_lang="Vietnamese")
    ... )
    >>> result.translation, result.cached
    ('Xin chào', 'miss')
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Dict, List, Optional

import httpx

from translate_ms.core.config import TranslationConfig, RetryConfig
from translate_ms.core.logging import fail, get_logger, info, success, verbose
from translate_ms.providers.base import (
    ModelConfig,
    ProviderError,
    TranslationPayload,
    TranslationProvider,
    normalize_translation,
)
from translate_ms.runtime.cache import TTLCache, make_cache_key
from translate_ms.runtime.credentials import CredentialResolver, CredentialScope, Provider
from translate_ms.runtime.inflight import InFlightDeduplicator
from translate_ms.runtime.retry import RetryExecutor
from translate_ms.runtime.shared_cache import SharedTranslationCache
from translate_ms.core.errors import ProviderFailedError
from translate_ms.services.prompts import build_translation_prompt
from translate_ms.services.usage import UsageRecorder
from translate_ms.services.validators import validate_language, validate_text
from translate_ms.utils.text import preview, split_into_sentences

if TYPE_CHECKING:
    from translate_ms.core.metrics import GatewayMetrics

_LOG = get_logger("translate-ms.translation")


@dataclass
class TranslateRequest:
    """
    Request for a translation.

    Attributes:
        text: Source text (required, at most 6000 characters).
        target_lang: Target language name or code ("Vietnamese", "ko").
        quality: Quality tier 1-5. None or unknown uses the default tier.
        pronunciation: Ask for a Hangul pronunciation of the result.
        context_prompt: Caller instructions replacing the default user
            message. Contextual requests bypass the shared cache.
        user_id: Signed-in user, if any. Selects the user's own API key
            and enables usage recording.
    """
    text: str
    target_lang: str
    quality: Optional[int] = None
    pronunciation: bool = True
    context_prompt: Optional[str] = None
    user_id: Optional[str] = None


@dataclass
class TranslateResult:
    """
    Result of a translation.

    Attributes:
        translation: Translated text.
        pronunciation: Hangul pronunciation ("" when not requested).
        segments: The translation split into speakable segments.
        cached: "ephemeral", "shared" or "miss".
        quality: Quality tier actually used.
        used_user_key: True if the user's own key was selected.
        seconds: Wall time spent in the service.
    """
    translation: str
    pronunciation: str
    segments: List[str] = field(default_factory=list)
    cached: str = "miss"
    quality: int = 3
    used_user_key: bool = False
    seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "translation": self.translation,
            "pronunciation": self.pronunciation,
            "segments": list(self.segments),
            "cached": self.cached,
            "quality": self.quality,
            "used_user_key": self.used_user_key,
        }


class TranslationService:
    """
    Translation with two cache tiers, deduplication and retry.

    All collaborators are injected; see services/gateway.py for the
    production wiring.
    """

    def __init__(
        self,
        config: TranslationConfig,
        retry_config: RetryConfig,
        provider: TranslationProvider,
        resolver: CredentialResolver,
        cache: TTLCache[TranslationPayload],
        inflight: InFlightDeduplicator,
        retry: RetryExecutor,
        usage: UsageRecorder,
        shared_cache: Optional[SharedTranslationCache] = None,
        metrics: Optional["GatewayMetrics"] = None,
        text_preview_chars: int = 50,
    ):
        self._config = config
        self._retry_config = retry_config
        self._provider = provider
        self._resolver = resolver
        self._cache = cache
        self._inflight = inflight
        self._retry = retry
        self._usage = usage
        self._shared = shared_cache
        self._metrics = metrics
        self._preview = text_preview_chars

    @property
    def cache(self) -> TTLCache[TranslationPayload]:
        return self._cache

    def resolve_quality(self, quality: Optional[int]) -> int:
        """Map a requested tier onto one present in the tier table."""
        if quality is not None and quality in self._config.quality_tiers:
            return quality
        return self._config.default_quality

    def model_config(self, quality: int) -> ModelConfig:
        return ModelConfig.from_tier(self._config.quality_tiers[quality])

    def cache_key(self, request: TranslateRequest, quality: int) -> str:
        """Ephemeral cache key over every field that shapes the output."""
        return make_cache_key("translate", {
            "text": request.text,
            "target_lang": request.target_lang,
            "quality": quality,
            "pronunciation": bool(request.pronunciation),
            "context_prompt": request.context_prompt or "",
        })

    async def translate(self, request: TranslateRequest) -> TranslateResult:
        """
        Translate ``request.text``.

        Raises:
            InvalidInputError: Bad text or language.
            ConfigurationError: No OpenAI key for this user or the system.
            ProviderFailedError: Upstream kept failing after retries.
        """
        t0 = time.perf_counter()
        status = "error"
        try:
            result = await self._translate(request)
            status = "ok"
            result.seconds = time.perf_counter() - t0
            return result
        finally:
            if self._metrics is not None:
                self._metrics.record_request("translate", status, time.perf_counter() - t0)

    async def _translate(self, request: TranslateRequest) -> TranslateResult:
        validate_text(request.text, self._config.max_input_chars)
        request = replace(request, target_lang=validate_language(request.target_lang))
        quality = self.resolve_quality(request.quality)

        credential = await self._resolver.resolve(request.user_id, Provider.OPENAI)
        used_user_key = credential.scope == CredentialScope.USER
        contextual = bool(request.context_prompt and request.context_prompt.strip())

        info(_LOG, "translate", lang=request.target_lang, quality=quality,
             chars=len(request.text), text=preview(request.text, self._preview),
             user_key=used_user_key, contextual=contextual)

        key = self.cache_key(request, quality)

        # Tier 1: ephemeral
        payload = self._cache.get(key)
        if payload is not None:
            self._record_cache("hit", "ephemeral")
            verbose(_LOG, "cache_hit", tier="ephemeral", key=key[-12:])
            return self._result(payload, "ephemeral", quality, used_user_key)
        self._record_cache("miss", "ephemeral")

        # Tier 2: shared
        if self._shared is not None and not contextual:
            record = await self._shared.lookup(request.text, request.target_lang)
            # a record without pronunciation cannot answer a request that wants one
            if record is not None and record.translation and (
                record.pronunciation or not request.pronunciation
            ):
                self._record_cache("hit", "shared")
                payload = TranslationPayload(
                    translation=record.translation,
                    pronunciation=record.pronunciation if request.pronunciation else "",
                )
                self._cache.set(key, payload)
                return self._result(payload, "shared", quality, used_user_key)
            self._record_cache("miss", "shared")

        async def _fetch() -> TranslationPayload:
            return await self._fetch(request, quality, key, credential.secret, used_user_key, contextual)

        # Callers on their own key never share a call with other users.
        flight_key = f"{key}:user:{request.user_id}" if used_user_key else key
        payload = await self._inflight.dedupe(flight_key, _fetch)
        return self._result(payload, "miss", quality, used_user_key)

    async def _fetch(
        self,
        request: TranslateRequest,
        quality: int,
        key: str,
        api_key: str,
        used_user_key: bool,
        contextual: bool,
    ) -> TranslationPayload:
        prompt = build_translation_prompt(
            request.text, request.target_lang, quality,
            pronunciation=request.pronunciation,
            context_prompt=request.context_prompt,
        )
        model_config = self.model_config(quality)

        async def _attempt() -> TranslationPayload:
            raw = await self._provider.complete(prompt, model_config, api_key, user_key=used_user_key)
            payload = normalize_translation(raw)
            if not payload.translation.strip():
                raise ProviderError("Empty translation", "openai", retryable=True)
            if not request.pronunciation:
                payload = TranslationPayload(translation=payload.translation)
            return payload

        t0 = time.perf_counter()
        try:
            payload = await self._retry.run(
                _attempt,
                max_attempts=self._retry_config.translation_attempts,
                base_delay=self._retry_config.translation_base_delay_s,
                name="translate.openai",
            )
        except ProviderError as e:
            fail(_LOG, "translate_failed", provider=e.provider, status=e.status, error=str(e))
            details: Dict[str, Any] = {"provider": e.provider}
            if e.status is not None:
                details["status"] = e.status
            raise ProviderFailedError(str(e), details) from e
        except (httpx.TimeoutException, httpx.TransportError) as e:
            fail(_LOG, "translate_failed", provider="openai", error=str(e))
            raise ProviderFailedError(f"Translation request failed: {e}", {"provider": "openai"}) from e

        success(_LOG, "translated", model=model_config.model, chars=len(payload.translation),
                seconds=time.perf_counter() - t0)

        self._cache.set(key, payload)
        if self._shared is not None and not contextual and request.pronunciation:
            await self._shared.store(
                request.text, request.target_lang, payload.translation, payload.pronunciation,
            )
        self._usage.record(request.user_id, "translation", len(request.text), "openai")
        return payload

    def _result(self, payload: TranslationPayload, cached: str, quality: int,
                used_user_key: bool) -> TranslateResult:
        return TranslateResult(
            translation=payload.translation,
            pronunciation=payload.pronunciation,
            segments=split_into_sentences(payload.translation, self._config.segment_max_chars),
            cached=cached,
            quality=quality,
            used_user_key=used_user_key,
        )

    def _record_cache(self, result: str, tier: str) -> None:
        if self._metrics is not None:
            self._metrics.record_cache(result, tier)


__all__ = [
    "TranslateRequest",
    "TranslateResult",
    "TranslationService",
]
