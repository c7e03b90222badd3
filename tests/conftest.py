"""Shared fakes and fixtures for the gateway tests."""
from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

import pytest

from translate_ms.core.config import GatewayConfig, ProvidersConfig, SharedCacheConfig
from translate_ms.providers.base import ModelConfig, TranslationPrompt, VoiceConfig
from translate_ms.runtime.credentials import InMemoryCredentialStore
from translate_ms.runtime.retry import RetryExecutor
from translate_ms.runtime.shared_cache import InMemoryTranslationStore
from translate_ms.services.gateway import Gateway
from translate_ms.services.usage import InMemoryUsageSink


class FakeTranslationProvider:
    """Scripted chat-completion provider. Items may be dicts or exceptions."""

    name = "openai"

    def __init__(self, responses: Optional[List[Any]] = None, delay: float = 0.0):
        self.responses = list(responses or [])
        self.delay = delay
        self.calls: List[Dict[str, Any]] = []

    async def complete(self, prompt: TranslationPrompt, model_config: ModelConfig, api_key: str,
                       user_key: bool = False) -> Dict[str, Any]:
        self.calls.append({
            "prompt": prompt,
            "model_config": model_config,
            "api_key": api_key,
            "user_key": user_key,
        })
        if self.delay:
            await asyncio.sleep(self.delay)
        item = self.responses.pop(0) if self.responses else {
            "translation": "Xin chào",
            "pronunciation_hangul": "신짜오",
        }
        if isinstance(item, BaseException):
            raise item
        return item


class FakeSpeechProvider:
    """Scripted speech provider. Items may be bytes or exceptions."""

    def __init__(self, name: str, responses: Optional[List[Any]] = None, delay: float = 0.0):
        self.name = name
        self.responses = list(responses or [])
        self.delay = delay
        self.calls: List[Dict[str, Any]] = []

    async def synthesize(self, text: str, voice_config: VoiceConfig, api_key: str,
                         user_key: bool = False) -> bytes:
        self.calls.append({"text": text, "voice_config": voice_config, "api_key": api_key,
                           "user_key": user_key})
        if self.delay:
            await asyncio.sleep(self.delay)
        item = self.responses.pop(0) if self.responses else f"mp3:{self.name}:{text}".encode("utf-8")
        if isinstance(item, BaseException):
            raise item
        return item


async def no_sleep(_: float) -> None:
    return None


def make_config(openai_key: Optional[str] = "sk-system", google_key: Optional[str] = "g-system",
                shared: bool = True) -> GatewayConfig:
    return GatewayConfig(
        shared_cache=SharedCacheConfig(enabled=shared, backend="memory"),
        providers=ProvidersConfig(openai_api_key=openai_key, google_api_key=google_key),
    )


def make_gateway(
    config: Optional[GatewayConfig] = None,
    translation_provider: Optional[FakeTranslationProvider] = None,
    primary: Optional[FakeSpeechProvider] = None,
    secondary: Optional[FakeSpeechProvider] = None,
    user_keys: Optional[Dict[str, Dict[str, str]]] = None,
    usage_sink: Optional[InMemoryUsageSink] = None,
    store: Optional[InMemoryTranslationStore] = None,
) -> Gateway:
    """Gateway wired with fakes and a retry executor that never sleeps."""
    from translate_ms.providers.base import is_transient

    return Gateway(
        config or make_config(),
        credential_store=InMemoryCredentialStore(user_keys or {}),
        translation_store=store if store is not None else InMemoryTranslationStore(),
        usage_sink=usage_sink or InMemoryUsageSink(),
        translation_provider=translation_provider or FakeTranslationProvider(),
        primary_speech=primary or FakeSpeechProvider("google"),
        secondary_speech=secondary or FakeSpeechProvider("openai"),
        retry=RetryExecutor(jitter_s=0.0, should_retry=is_transient, sleep=no_sleep),
    )


@pytest.fixture
def translation_provider() -> FakeTranslationProvider:
    return FakeTranslationProvider()


@pytest.fixture
def usage_sink() -> InMemoryUsageSink:
    return InMemoryUsageSink()


@pytest.fixture
def store() -> InMemoryTranslationStore:
    return InMemoryTranslationStore()
