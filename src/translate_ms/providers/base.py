"""
Provider contracts and the adapter boundary.

Everything upstream-specific stops here. Providers raise ProviderError
with an HTTP status and a ``retryable`` flag; raw translation payloads
are normalized onto one canonical shape before business logic sees them.

Upstream field names accepted for the same value:
    translation    <- "translation" | "translated_text"
    pronunciation  <- "pronunciation_hangul" | "pronunciation" | "pron"
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Protocol

import httpx

_TRANSLATION_FIELDS = ("translation", "translated_text")
_PRONUNCIATION_FIELDS = ("pronunciation_hangul", "pronunciation", "pron")


class ProviderError(Exception):
    """
    An upstream call failed.

    Attributes:
        provider: Provider name ("openai", "google").
        status: HTTP status, or None when no response was received or the
            body was unusable.
        retryable: Whether another attempt might succeed.
    """

    def __init__(self, message: str, provider: str, status: Optional[int] = None, retryable: bool = False):
        self.provider = provider
        self.status = status
        self.retryable = retryable
        super().__init__(message)

    @classmethod
    def from_status(cls, provider: str, status: int, user_key: bool = False) -> "ProviderError":
        """Map a non-2xx status onto a message and retry policy."""
        if status == 401 and user_key:
            return cls("User API key is invalid; check your settings", provider, status, retryable=False)
        if status == 429:
            return cls("Provider rate limit exceeded; try again shortly", provider, status, retryable=True)
        if status >= 500:
            return cls(f"Provider unavailable (HTTP {status})", provider, status, retryable=True)
        return cls(f"Provider rejected the request (HTTP {status})", provider, status, retryable=False)


def is_transient(error: BaseException) -> bool:
    """
    Retry predicate for RetryExecutor.

    Transient: ProviderError flagged retryable, httpx timeouts and
    transport errors. Everything else fails fast.
    """
    if isinstance(error, ProviderError):
        return error.retryable
    return isinstance(error, (httpx.TimeoutException, httpx.TransportError))


@dataclass(frozen=True)
class ModelConfig:
    """One row of the quality tier table."""
    model: str
    temperature: float
    max_tokens: int

    @classmethod
    def from_tier(cls, tier: Mapping[str, Any]) -> "ModelConfig":
        return cls(
            model=str(tier["model"]),
            temperature=float(tier["temperature"]),
            max_tokens=int(tier["max_tokens"]),
        )


@dataclass(frozen=True)
class TranslationPrompt:
    system: str
    user: str


@dataclass(frozen=True)
class TranslationPayload:
    """Canonical translation result."""
    translation: str
    pronunciation: str = ""


@dataclass(frozen=True)
class VoiceConfig:
    """
    Voice selection for one synthesis call.

    Attributes:
        locale: BCP-47 locale ("vi-VN", "ko-KR", "en-US").
        voice: Provider voice name. Google expects e.g. "vi-VN-Standard-A";
            OpenAI expects e.g. "nova". None picks the provider default.
        speaking_rate: Google speaking rate (1.0 = normal).
    """
    locale: str = "vi-VN"
    voice: Optional[str] = None
    speaking_rate: float = 1.0


def normalize_translation(raw: Mapping[str, Any]) -> TranslationPayload:
    """
    Map any accepted upstream field names onto TranslationPayload.

    Missing values become empty strings; non-string values are coerced.

    >>> normalize_translation({"translated_text": "xin chào", "pron": "신짜오"})
    TranslationPayload(translation='xin chào', pronunciation='신짜오')
    """
    def first(names: tuple) -> str:
        for name in names:
            value = raw.get(name)
            if value:
                return str(value)
        return ""

    return TranslationPayload(
        translation=first(_TRANSLATION_FIELDS),
        pronunciation=first(_PRONUNCIATION_FIELDS),
    )


class TranslationProvider(Protocol):
    name: str

    async def complete(self, prompt: TranslationPrompt, model_config: ModelConfig, api_key: str,
                       user_key: bool = False) -> Dict[str, Any]:
        """Return the parsed JSON object produced by the model."""
        ...


class SpeechProvider(Protocol):
    name: str

    async def synthesize(self, text: str, voice_config: VoiceConfig, api_key: str,
                         user_key: bool = False) -> bytes:
        """Return encoded audio (MP3). Raises ProviderError on failure or empty audio."""
        ...
