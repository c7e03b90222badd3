"""
Speech provider fallback chain.

Two providers, three entry modes:

    mode        first choice                         then
    primary     primary (Google)                     secondary
    secondary   secondary (OpenAI)                   primary
    auto        primary if len(text) < threshold,    the other one
                else secondary

The chosen provider runs under its own retry budget (Google: 1 attempt,
OpenAI: 3). If it still fails, the chain falls back exactly once. When the
fallback also fails the caller gets FallbackExhaustedError ("both
providers failed"). A zero-byte response counts as a failure.

A provider without a resolvable credential counts as failed without any
network call. If neither provider has one, ConfigurationError is raised
up front.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

from translate_ms.core.config import Defaults
from translate_ms.core.logging import fail, get_logger, info, warn
from translate_ms.providers.base import ProviderError, SpeechProvider, VoiceConfig
from translate_ms.runtime.credentials import Credential, CredentialResolver, CredentialScope, Provider
from translate_ms.runtime.retry import RetryExecutor
from translate_ms.core.errors import ConfigurationError, FallbackExhaustedError

if TYPE_CHECKING:
    from translate_ms.core.metrics import GatewayMetrics

_LOG = get_logger("translate-ms.fallback")


class SpeechMode(str, Enum):
    AUTO = "auto"
    PRIMARY = "primary"
    SECONDARY = "secondary"


@dataclass(frozen=True)
class SpeechResult:
    """Encoded audio (MP3) and which provider produced it."""
    audio: bytes
    provider: str
    fell_back: bool = False

    @property
    def byte_length(self) -> int:
        return len(self.audio)


@dataclass(frozen=True)
class ProviderSlot:
    """
    A speech provider plus its credential kind and retry budget.

    Attributes:
        provider: The adapter.
        credential: Which credential the adapter needs.
        max_attempts: Attempts before the slot counts as failed.
        base_delay: Backoff base delay in seconds.
    """
    provider: SpeechProvider
    credential: Provider
    max_attempts: int = 1
    base_delay: float = 0.0

    @property
    def name(self) -> str:
        return self.provider.name


class SpeechFallbackChain:
    """Synthesizes speech with one fallback between two providers."""

    def __init__(
        self,
        primary: ProviderSlot,
        secondary: ProviderSlot,
        resolver: CredentialResolver,
        retry: RetryExecutor,
        auto_threshold_chars: int = Defaults.SPEECH_AUTO_THRESHOLD_CHARS,
        metrics: Optional["GatewayMetrics"] = None,
    ):
        self._primary = primary
        self._secondary = secondary
        self._resolver = resolver
        self._retry = retry
        self._threshold = auto_threshold_chars
        self._metrics = metrics

    def order(self, text: str, mode: SpeechMode) -> Tuple[ProviderSlot, ProviderSlot]:
        """(selected, fallback) for this text and mode."""
        if mode == SpeechMode.PRIMARY:
            use_primary = True
        elif mode == SpeechMode.SECONDARY:
            use_primary = False
        else:
            use_primary = len(text) < self._threshold
        if use_primary:
            return self._primary, self._secondary
        return self._secondary, self._primary

    async def synthesize(
        self,
        text: str,
        voice_config: VoiceConfig,
        mode: SpeechMode = SpeechMode.AUTO,
        user_id: Optional[str] = None,
    ) -> SpeechResult:
        """
        Produce audio for ``text``.

        Raises:
            ConfigurationError: No credential for either provider.
            FallbackExhaustedError: Both providers failed.
        """
        slots = self.order(text, mode)

        # one resolution per provider per request
        credentials: Dict[str, Optional[Credential]] = {}
        for slot in slots:
            credentials[slot.name] = await self._resolver.try_resolve(user_id, slot.credential)
        if not any(credentials.values()):
            raise ConfigurationError(
                "No API key configured for any speech provider",
                details={"providers": [slot.name for slot in slots]},
            )

        failures: List[Dict[str, str]] = []
        for index, slot in enumerate(slots):
            if index == 1:
                warn(_LOG, "speech_fallback", from_provider=slots[0].name, provider=slot.name)
                if self._metrics is not None:
                    self._metrics.record_fallback(slots[0].name, slot.name)

            credential = credentials[slot.name]
            if credential is None:
                failures.append({"provider": slot.name, "error": "no credential"})
                continue

            try:
                audio = await self._retry.run(
                    lambda: self._call(slot, text, voice_config, credential),
                    max_attempts=slot.max_attempts,
                    base_delay=slot.base_delay,
                    name=f"speech.{slot.name}",
                )
            except Exception as e:
                fail(_LOG, "speech_provider_failed", provider=slot.name, error=str(e))
                failures.append({"provider": slot.name, "error": str(e)})
                continue

            info(_LOG, "speech_ok", provider=slot.name, bytes=len(audio), fallback=index == 1)
            return SpeechResult(audio=audio, provider=slot.name, fell_back=index == 1)

        raise FallbackExhaustedError(
            "both providers failed",
            details={"providers": [f["provider"] for f in failures]},
        )

    @staticmethod
    async def _call(slot: ProviderSlot, text: str, voice_config: VoiceConfig, credential: Credential) -> bytes:
        audio = await slot.provider.synthesize(
            text, voice_config, credential.secret,
            user_key=credential.scope == CredentialScope.USER,
        )
        if not audio:
            raise ProviderError(f"{slot.name} returned empty audio", slot.name)
        return audio
