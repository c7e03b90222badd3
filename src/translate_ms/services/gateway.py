"""
Gateway - composition root for the orchestration layer.

One Gateway is built per application (see main.create_app) and stored on
``app.state``. It owns every stateful component: the shared HTTP client,
caches, the in-flight maps and the usage recorder. Nothing in the package
is a module-level singleton, so tests can build as many gateways as they
like, each with its own fakes.

Example:
    >>> gateway = Gateway.from_settings(load_settings("config/settings.yaml"))
    >>> result = await gateway.translation.translate(
    ...     TranslateRequest(text="hello", target_lang="Vietnamese")
    ... )
    >>> await gateway.aclose()
"""
from __future__ import annotations

import time
from typing import Any, Dict, Optional

import httpx

from translate_ms import __version__
from translate_ms.core.config import GatewayConfig, Settings
from translate_ms.core.logging import get_logger, info, success
from translate_ms.core.metrics import GatewayMetrics
from translate_ms.providers.base import SpeechProvider, TranslationProvider, is_transient
from translate_ms.providers.google_tts import GoogleSpeechProvider
from translate_ms.providers.openai_provider import OpenAISpeechProvider, OpenAITranslationProvider
from translate_ms.runtime.cache import TTLCache
from translate_ms.runtime.credentials import (
    CredentialResolver,
    CredentialStore,
    InMemoryCredentialStore,
    Provider,
)
from translate_ms.runtime.fallback import ProviderSlot, SpeechFallbackChain
from translate_ms.runtime.inflight import InFlightDeduplicator
from translate_ms.runtime.retry import RetryExecutor
from translate_ms.runtime.shared_cache import (
    FileTranslationStore,
    InMemoryTranslationStore,
    SharedTranslationCache,
    TranslationStore,
)
from translate_ms.services.speech_service import SpeechService
from translate_ms.services.translation_service import TranslationService
from translate_ms.services.usage import LoggingUsageSink, UsageRecorder, UsageSink

_LOG = get_logger("translate-ms.gateway")


class Gateway:
    """
    Container wiring providers, caches and services together.

    Every collaborator can be overridden, which is how tests swap in fake
    providers and in-memory stores.

    Attributes:
        config: Validated configuration.
        metrics: Prometheus metrics for this gateway.
        translation: TranslationService.
        speech: SpeechService.
    """

    def __init__(
        self,
        config: Optional[GatewayConfig] = None,
        *,
        credential_store: Optional[CredentialStore] = None,
        translation_store: Optional[TranslationStore] = None,
        usage_sink: Optional[UsageSink] = None,
        translation_provider: Optional[TranslationProvider] = None,
        primary_speech: Optional[SpeechProvider] = None,
        secondary_speech: Optional[SpeechProvider] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        retry: Optional[RetryExecutor] = None,
        metrics: Optional[GatewayMetrics] = None,
    ):
        self.config = config or GatewayConfig()
        cfg = self.config
        self.metrics = metrics or GatewayMetrics()
        self._started = time.time()

        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=cfg.providers.timeout_s)

        # ─────────────────────────────────────────────────────────────────────
        # Providers
        # ─────────────────────────────────────────────────────────────────────
        translation_provider = translation_provider or OpenAITranslationProvider(
            self._client, cfg.providers.openai_base_url,
        )
        primary_speech = primary_speech or GoogleSpeechProvider(
            self._client, cfg.providers.google_tts_url,
        )
        secondary_speech = secondary_speech or OpenAISpeechProvider(
            self._client,
            cfg.providers.openai_base_url,
            model=cfg.speech.openai_model,
            default_voice=cfg.speech.openai_voice,
            max_chars=cfg.speech.openai_max_chars,
        )

        # ─────────────────────────────────────────────────────────────────────
        # Credentials
        # ─────────────────────────────────────────────────────────────────────
        self.resolver = CredentialResolver(
            credential_store or InMemoryCredentialStore(),
            {
                Provider.OPENAI: cfg.providers.openai_api_key,
                Provider.GOOGLE: cfg.providers.google_api_key,
            },
        )

        # ─────────────────────────────────────────────────────────────────────
        # Shared cache
        # ─────────────────────────────────────────────────────────────────────
        self.shared_cache: Optional[SharedTranslationCache] = None
        if cfg.shared_cache.enabled:
            if translation_store is None:
                if cfg.shared_cache.backend == "file":
                    translation_store = FileTranslationStore(cfg.shared_cache.base_dir)
                else:
                    translation_store = InMemoryTranslationStore()
            self.shared_cache = SharedTranslationCache(translation_store)

        self.retry = retry or RetryExecutor(
            jitter_s=cfg.retry.jitter_s,
            should_retry=is_transient,
            metrics=self.metrics,
        )
        self.usage = UsageRecorder(usage_sink or LoggingUsageSink(), cfg.usage.cost_per_char)

        self.translation = TranslationService(
            config=cfg.translation,
            retry_config=cfg.retry,
            provider=translation_provider,
            resolver=self.resolver,
            cache=TTLCache(cfg.cache.max_items, cfg.cache.ttl_seconds, name="translation"),
            inflight=InFlightDeduplicator("translation", metrics=self.metrics),
            retry=self.retry,
            usage=self.usage,
            shared_cache=self.shared_cache,
            metrics=self.metrics,
            text_preview_chars=cfg.logging.text_preview_chars,
        )

        chain = SpeechFallbackChain(
            primary=ProviderSlot(
                primary_speech, Provider.GOOGLE,
                max_attempts=cfg.retry.speech_primary_attempts,
            ),
            secondary=ProviderSlot(
                secondary_speech, Provider.OPENAI,
                max_attempts=cfg.retry.speech_secondary_attempts,
                base_delay=cfg.retry.speech_secondary_base_delay_s,
            ),
            resolver=self.resolver,
            retry=self.retry,
            auto_threshold_chars=cfg.speech.auto_threshold_chars,
            metrics=self.metrics,
        )
        self.speech = SpeechService(
            config=cfg.speech,
            chain=chain,
            cache=TTLCache(
                cfg.speech.audio_cache_max_items,
                cfg.speech.audio_cache_ttl_seconds,
                name="audio",
            ),
            inflight=InFlightDeduplicator("speech", metrics=self.metrics),
            usage=self.usage,
            metrics=self.metrics,
            max_input_chars=cfg.translation.max_input_chars,
            segment_max_chars=cfg.translation.segment_max_chars,
            text_preview_chars=cfg.logging.text_preview_chars,
        )

        info(_LOG, "gateway_ready",
             shared_cache=cfg.shared_cache.backend if self.shared_cache else "off",
             speech_mode=cfg.speech.default_mode,
             openai_key=bool(cfg.providers.openai_api_key),
             google_key=bool(cfg.providers.google_api_key))

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: Any) -> "Gateway":
        """
        Build a gateway from settings.

        Per-user keys under ``credentials.users`` seed the credential store
        unless a ``credential_store`` override is given.

        Raises:
            ConfigValidationError: If the settings fail validation.
        """
        overrides.setdefault("credential_store", InMemoryCredentialStore(settings.seeded_user_keys))
        return cls(settings.get_gateway_config(), **overrides)

    def get_health_info(self) -> Dict[str, Any]:
        """Snapshot for GET /health."""
        cfg = self.config
        return {
            "ok": True,
            "version": __version__,
            "uptime_seconds": round(time.time() - self._started, 1),
            "providers": {
                "openai": bool(cfg.providers.openai_api_key),
                "google": bool(cfg.providers.google_api_key),
            },
            "speech_mode": cfg.speech.default_mode,
            "shared_cache": cfg.shared_cache.backend if self.shared_cache else None,
            "caches": {
                "translation": self.translation.cache.stats(),
                "audio": self.speech.cache.stats(),
            },
            "usage_pending": self.usage.pending,
        }

    async def aclose(self) -> None:
        """Wait for outstanding usage records and close the HTTP client."""
        await self.usage.drain()
        if self._owns_client:
            await self._client.aclose()
        success(_LOG, "gateway_closed")
