"""Tests for CredentialResolver and SpeechFallbackChain."""
from __future__ import annotations

import pytest

from conftest import FakeSpeechProvider, no_sleep
from translate_ms.core.errors import ConfigurationError, FallbackExhaustedError
from translate_ms.core.metrics import GatewayMetrics
from translate_ms.providers.base import ProviderError, VoiceConfig, is_transient
from translate_ms.runtime.credentials import (
    CredentialResolver,
    CredentialScope,
    InMemoryCredentialStore,
    Provider,
    is_well_formed,
)
from translate_ms.runtime.fallback import ProviderSlot, SpeechFallbackChain, SpeechMode
from translate_ms.runtime.retry import RetryExecutor


class FailingCredentialStore:
    async def read_credential(self, user_id, provider):
        raise ConnectionError("db down")


class TestCredentialResolver:
    """User key first, system default second."""

    async def test_user_key_wins(self):
        """A well-formed user key beats the system default."""
        store = InMemoryCredentialStore({"u1": {"openai": "sk-user"}})
        resolver = CredentialResolver(store, {Provider.OPENAI: "sk-system"})
        cred = await resolver.resolve("u1", Provider.OPENAI)
        assert cred.secret == "sk-user"
        assert cred.scope == CredentialScope.USER

    async def test_user_key_without_system_default(self):
        """User key works even with no system key."""
        store = InMemoryCredentialStore({"u1": {"google": "g-user"}})
        resolver = CredentialResolver(store, {Provider.GOOGLE: None})
        cred = await resolver.resolve("u1", Provider.GOOGLE)
        assert cred.secret == "g-user"

    async def test_falls_back_to_system(self):
        """No user key: system default."""
        resolver = CredentialResolver(InMemoryCredentialStore(), {Provider.OPENAI: "sk-system"})
        cred = await resolver.resolve("u1", Provider.OPENAI)
        assert cred.secret == "sk-system"
        assert cred.scope == CredentialScope.SYSTEM

    async def test_anonymous_uses_system(self):
        """No user id: system default."""
        store = InMemoryCredentialStore({"u1": {"openai": "sk-user"}})
        resolver = CredentialResolver(store, {Provider.OPENAI: "sk-system"})
        cred = await resolver.resolve(None, Provider.OPENAI)
        assert cred.scope == CredentialScope.SYSTEM

    async def test_malformed_user_key_ignored(self):
        """A user key with whitespace is not used."""
        store = InMemoryCredentialStore({"u1": {"openai": "sk user"}})
        resolver = CredentialResolver(store, {Provider.OPENAI: "sk-system"})
        cred = await resolver.resolve("u1", Provider.OPENAI)
        assert cred.secret == "sk-system"

    async def test_store_error_treated_as_missing(self):
        """An unreadable store falls back to the system key."""
        resolver = CredentialResolver(FailingCredentialStore(), {Provider.OPENAI: "sk-system"})
        cred = await resolver.resolve("u1", Provider.OPENAI)
        assert cred.scope == CredentialScope.SYSTEM

    async def test_nothing_configured(self):
        """No key anywhere is a ConfigurationError."""
        resolver = CredentialResolver(InMemoryCredentialStore(), {})
        with pytest.raises(ConfigurationError) as exc_info:
            await resolver.resolve("u1", Provider.OPENAI)
        assert exc_info.value.details == {"provider": "openai"}
        assert await resolver.try_resolve("u1", Provider.OPENAI) is None

    def test_secret_hidden_in_repr(self):
        """repr never shows the secret."""
        from translate_ms.runtime.credentials import Credential
        cred = Credential(Provider.OPENAI, CredentialScope.USER, "sk-very-secret")
        assert "sk-very-secret" not in repr(cred)

    def test_is_well_formed(self):
        """Empty, None and whitespace-containing secrets are rejected."""
        assert is_well_formed("sk-abc")
        assert not is_well_formed("")
        assert not is_well_formed(None)
        assert not is_well_formed("sk abc")


def make_chain(primary, secondary, system_keys=None, user_keys=None, metrics=None, threshold=50):
    resolver = CredentialResolver(
        InMemoryCredentialStore(user_keys or {}),
        system_keys if system_keys is not None else {Provider.GOOGLE: "g-sys", Provider.OPENAI: "sk-sys"},
    )
    return SpeechFallbackChain(
        primary=ProviderSlot(primary, Provider.GOOGLE, max_attempts=1),
        secondary=ProviderSlot(secondary, Provider.OPENAI, max_attempts=3, base_delay=0.4),
        resolver=resolver,
        retry=RetryExecutor(jitter_s=0.0, should_retry=is_transient, sleep=no_sleep),
        auto_threshold_chars=threshold,
        metrics=metrics,
    )


VOICE = VoiceConfig(locale="vi-VN")


class TestSpeechFallbackChain:
    """Provider ordering, retry budgets and fallback."""

    async def test_auto_short_text_uses_primary(self):
        """Short text goes to Google."""
        google, openai = FakeSpeechProvider("google"), FakeSpeechProvider("openai")
        result = await make_chain(google, openai).synthesize("Xin chào", VOICE)
        assert result.provider == "google"
        assert result.fell_back is False
        assert openai.calls == []

    async def test_auto_long_text_uses_secondary(self):
        """Text at or above the threshold goes to OpenAI."""
        google, openai = FakeSpeechProvider("google"), FakeSpeechProvider("openai")
        result = await make_chain(google, openai, threshold=10).synthesize("x" * 10, VOICE)
        assert result.provider == "openai"
        assert google.calls == []

    async def test_primary_fails_secondary_serves(self):
        """Primary failure: secondary's output, primary attempted once."""
        google = FakeSpeechProvider("google", [ProviderError("503", "google", 503, retryable=True)])
        openai = FakeSpeechProvider("openai", [b"openai-audio"])
        metrics = GatewayMetrics()
        result = await make_chain(google, openai, metrics=metrics).synthesize(
            "Xin chào", VOICE, SpeechMode.PRIMARY,
        )
        assert result.audio == b"openai-audio"
        assert result.provider == "openai"
        assert result.fell_back is True
        assert len(google.calls) == 1
        assert metrics.registry.get_sample_value(
            "gateway_fallbacks_total", {"from_provider": "google", "to_provider": "openai"},
        ) == 1.0

    async def test_secondary_retries_before_falling_back(self):
        """OpenAI gets its full retry budget before Google is tried."""
        transient = ProviderError("429", "openai", 429, retryable=True)
        openai = FakeSpeechProvider("openai", [transient, transient, b"third-time"])
        google = FakeSpeechProvider("google")
        result = await make_chain(google, openai).synthesize("hello", VOICE, SpeechMode.SECONDARY)
        assert result.audio == b"third-time"
        assert len(openai.calls) == 3
        assert google.calls == []

    async def test_empty_audio_counts_as_failure(self):
        """Zero bytes triggers the fallback."""
        google = FakeSpeechProvider("google", [b""])
        openai = FakeSpeechProvider("openai", [b"real"])
        result = await make_chain(google, openai).synthesize("hi", VOICE, SpeechMode.PRIMARY)
        assert result.provider == "openai"

    async def test_both_fail(self):
        """Both providers failing raises FallbackExhaustedError."""
        google = FakeSpeechProvider("google", [ProviderError("bad", "google", 400)])
        openai = FakeSpeechProvider("openai", [ProviderError("bad", "openai", 400)])
        with pytest.raises(FallbackExhaustedError) as exc_info:
            await make_chain(google, openai).synthesize("hi", VOICE, SpeechMode.PRIMARY)
        assert exc_info.value.message == "both providers failed"
        assert exc_info.value.details["providers"] == ["google", "openai"]

    async def test_missing_credential_skips_provider(self):
        """A provider with no key fails over without a network call."""
        google, openai = FakeSpeechProvider("google"), FakeSpeechProvider("openai")
        chain = make_chain(google, openai, system_keys={Provider.OPENAI: "sk-sys"})
        result = await chain.synthesize("hi", VOICE, SpeechMode.PRIMARY)
        assert result.provider == "openai"
        assert google.calls == []

    async def test_no_credentials_at_all(self):
        """No key for either provider is a ConfigurationError."""
        google, openai = FakeSpeechProvider("google"), FakeSpeechProvider("openai")
        with pytest.raises(ConfigurationError):
            await make_chain(google, openai, system_keys={}).synthesize("hi", VOICE)
        assert google.calls == [] and openai.calls == []

    async def test_user_key_flag_passed(self):
        """Providers learn whether the key belongs to the user."""
        google, openai = FakeSpeechProvider("google"), FakeSpeechProvider("openai")
        chain = make_chain(google, openai, user_keys={"u1": {"google": "g-user"}})
        await chain.synthesize("hi", VOICE, SpeechMode.PRIMARY, user_id="u1")
        assert google.calls[0]["api_key"] == "g-user"
        assert google.calls[0]["user_key"] is True

    def test_order(self):
        """order() honours mode and threshold."""
        google, openai = FakeSpeechProvider("google"), FakeSpeechProvider("openai")
        chain = make_chain(google, openai, threshold=5)
        assert [s.name for s in chain.order("abc", SpeechMode.AUTO)] == ["google", "openai"]
        assert [s.name for s in chain.order("abcdef", SpeechMode.AUTO)] == ["openai", "google"]
        assert [s.name for s in chain.order("abcdef", SpeechMode.PRIMARY)] == ["google", "openai"]
        assert [s.name for s in chain.order("abc", SpeechMode.SECONDARY)] == ["openai", "google"]
