"""
Async client for the translate-ms HTTP API.

Mirrors what a UI needs on its side of the wire:

    - translate(): client-side LRU cache (50 entries) + in-flight dedupe
    - speak(): in-flight dedupe only (audio is large; the server caches it)
    - prefetch_translation(): warms the cache through a batching queue so a
      page that asks for many phrases at once sends them 5 at a time

Errors returned by the server are raised as the matching GatewayError
subclass, so callers can branch on ``error.code``.

Usage:
    async with GatewayClient("http://localhost:8000", user_id="u-42") as client:
        result = await client.translate("안녕하세요", "Vietnamese")
        audio = await client.speak(result["translation"], language="Vietnamese")
"""
from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from translate_ms.core.config import Defaults, Settings
from translate_ms.core.errors import (
    ConfigurationError,
    ErrorCode,
    FallbackExhaustedError,
    GatewayError,
    InvalidInputError,
    ProviderFailedError,
)
from translate_ms.core.logging import get_logger, verbose, warn
from translate_ms.core.metrics import GatewayMetrics
from translate_ms.runtime.batcher import RequestBatchingQueue
from translate_ms.runtime.cache import BoundedCache, make_cache_key
from translate_ms.runtime.inflight import InFlightDeduplicator

_LOG = get_logger("translate-ms.client")

_ERROR_TYPES = {
    ErrorCode.INVALID_INPUT: InvalidInputError,
    ErrorCode.CONFIGURATION_ERROR: ConfigurationError,
    ErrorCode.PROVIDER_FAILED: ProviderFailedError,
    ErrorCode.FALLBACK_EXHAUSTED: FallbackExhaustedError,
}


def _raise_for_error(response: httpx.Response) -> None:
    if response.status_code < 400:
        return
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    code = body.get("error", ErrorCode.INTERNAL_ERROR)
    message = body.get("message") or f"HTTP {response.status_code}"
    details = body.get("details")
    error_type = _ERROR_TYPES.get(code)
    if error_type is None:
        raise GatewayError(message, code, details)
    raise error_type(message, details)


class GatewayClient:
    """
    Client-side orchestration over the gateway API.

    Args:
        base_url: Server root, e.g. "http://localhost:8000".
        user_id: Sent as X-User-Id on every request.
        http_client: Preconfigured httpx.AsyncClient (tests pass one with a
            MockTransport). Created and owned by the client otherwise.
        batch_size: Prefetch batch size.
        batch_delay: Pause between prefetch batches, in seconds.
        cache_max_items: Translation cache capacity.
        metrics: Optional metrics sink ("client" cache tier, queue depth).
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        user_id: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        batch_size: int = Defaults.BATCHING_BATCH_SIZE,
        batch_delay: float = Defaults.BATCHING_BATCH_DELAY_S,
        cache_max_items: int = Defaults.CLIENT_CACHE_MAX_ITEMS,
        timeout: float = Defaults.PROVIDERS_TIMEOUT_S,
        metrics: Optional[GatewayMetrics] = None,
    ):
        headers = {"X-User-Id": user_id} if user_id else {}
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self._headers = headers
        self._metrics = metrics

        self._cache: BoundedCache[Dict[str, Any]] = BoundedCache(cache_max_items, name="client")
        self._translate_inflight = InFlightDeduplicator("client.translate", metrics=metrics)
        self._speak_inflight = InFlightDeduplicator("client.speak", metrics=metrics)
        self._queue = RequestBatchingQueue(batch_size, batch_delay, metrics=metrics)

    @classmethod
    def from_settings(cls, settings: Settings, base_url: str = "http://localhost:8000",
                      **overrides: Any) -> "GatewayClient":
        """
        Build a client sized by the ``batching`` and ``providers`` sections.

        Keyword overrides win over settings.

        Raises:
            ConfigValidationError: If the settings fail validation.
        """
        config = settings.get_gateway_config()
        overrides.setdefault("batch_size", config.batching.batch_size)
        overrides.setdefault("batch_delay", config.batching.batch_delay_s)
        overrides.setdefault("cache_max_items", config.batching.client_cache_max_items)
        overrides.setdefault("timeout", config.providers.timeout_s)
        return cls(base_url, **overrides)

    @property
    def cache(self) -> BoundedCache[Dict[str, Any]]:
        return self._cache

    @property
    def queue(self) -> RequestBatchingQueue:
        return self._queue

    async def translate(
        self,
        text: str,
        target_lang: str,
        quality: Optional[int] = None,
        pronunciation: bool = True,
        context_prompt: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        POST /v1/translate, served from the client cache when possible.

        Raises:
            GatewayError: The server returned an error.
        """
        body = {
            "text": text,
            "target_lang": target_lang,
            "quality": quality,
            "pronunciation": pronunciation,
            "context_prompt": context_prompt,
        }
        key = make_cache_key("client.translate", body)

        cached = self._cache.get(key)
        if cached is not None:
            self._record_cache("hit")
            verbose(_LOG, "cache_hit", tier="client", key=key[-12:])
            return cached
        self._record_cache("miss")

        async def _fetch() -> Dict[str, Any]:
            response = await self._http.post("/v1/translate", json=body, headers=self._headers)
            _raise_for_error(response)
            result = response.json()
            self._cache.set(key, result)
            return result

        return await self._translate_inflight.dedupe(key, _fetch)

    async def speak(
        self,
        text: str,
        language: Optional[str] = None,
        voice: Optional[str] = None,
        mode: Optional[str] = None,
    ) -> bytes:
        """
        POST /v1/speak and return the MP3 bytes.

        Raises:
            GatewayError: The server returned an error.
        """
        body = {"text": text, "language": language, "voice": voice, "mode": mode}
        key = make_cache_key("client.speak", body)

        async def _fetch() -> bytes:
            response = await self._http.post("/v1/speak", json=body, headers=self._headers)
            _raise_for_error(response)
            return response.content

        return await self._speak_inflight.dedupe(key, _fetch)

    async def speak_chunk(
        self,
        text: str,
        chunk_index: int,
        language: Optional[str] = None,
        voice: Optional[str] = None,
        mode: Optional[str] = None,
    ) -> Dict[str, Any]:
        """POST /v1/speak/chunk. Iterate chunk_index until ``completed``."""
        body = {
            "text": text,
            "chunk_index": chunk_index,
            "language": language,
            "voice": voice,
            "mode": mode,
        }
        response = await self._http.post("/v1/speak/chunk", json=body, headers=self._headers)
        _raise_for_error(response)
        return response.json()

    async def prefetch_translation(self, text: str, target_lang: str, **options: Any) -> None:
        """
        Warm the translation cache through the batching queue.

        Failures are logged and swallowed; a prefetch never breaks the page.
        """
        try:
            await self._queue.submit(lambda: self.translate(text, target_lang, **options))
        except Exception as e:
            warn(_LOG, "prefetch_failed", lang=target_lang, error=str(e))

    def _record_cache(self, result: str) -> None:
        if self._metrics is not None:
            self._metrics.record_cache(result, "client")

    async def aclose(self) -> None:
        await self._queue.close()
        if self._owns_client:
            await self._http.aclose()

    async def __aenter__(self) -> "GatewayClient":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()
