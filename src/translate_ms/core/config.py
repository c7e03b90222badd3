"""
Configuration Management for translate-ms.

This module provides centralized configuration handling with:
    - Default values (Defaults class)
    - Dataclass-based configuration sections
    - YAML file loading with environment variable overrides
    - Validation with meaningful error messages

Configuration Hierarchy (highest priority first):
    1. Environment variables (OPENAI_API_KEY, GOOGLE_TTS_API_KEY, ...)
    2. YAML config file (config/settings.yaml)
    3. Defaults class values

Example settings.yaml:
    cache:
      max_items: 100
      ttl_seconds: 3600

    speech:
      auto_threshold_chars: 50

    quality_tiers:
      1: {model: gpt-4o-mini, temperature: 0.3, max_tokens: 1000}
      3: {model: gpt-4o, temperature: 0.0, max_tokens: 1500}
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


class ConfigValidationError(ValueError):
    """Raised when a configuration value is out of bounds or malformed."""
    pass


class Defaults:
    """
    Centralized default configuration values.

    Used whenever neither YAML nor the environment supplies a value.
    """

    # ─────────────────────────────────────────────────────────────────────────
    # Ephemeral result cache (per process)
    # ─────────────────────────────────────────────────────────────────────────
    CACHE_MAX_ITEMS = 100
    CACHE_TTL_SECONDS = 3600

    # ─────────────────────────────────────────────────────────────────────────
    # Shared durable translation cache
    # ─────────────────────────────────────────────────────────────────────────
    SHARED_CACHE_ENABLED = True
    SHARED_CACHE_BACKEND = "file"           # file | memory
    SHARED_CACHE_BASE_DIR = "./storage/translations"

    # ─────────────────────────────────────────────────────────────────────────
    # Retry / backoff
    # ─────────────────────────────────────────────────────────────────────────
    RETRY_TRANSLATION_ATTEMPTS = 3
    RETRY_TRANSLATION_BASE_DELAY_S = 0.3
    RETRY_SPEECH_PRIMARY_ATTEMPTS = 1       # Google: no retry of its own
    RETRY_SPEECH_SECONDARY_ATTEMPTS = 3
    RETRY_SPEECH_SECONDARY_BASE_DELAY_S = 0.4
    RETRY_JITTER_S = 0.2

    # ─────────────────────────────────────────────────────────────────────────
    # Speech synthesis
    # ─────────────────────────────────────────────────────────────────────────
    SPEECH_DEFAULT_MODE = "auto"            # auto | primary | secondary
    SPEECH_AUTO_THRESHOLD_CHARS = 50
    SPEECH_OPENAI_MODEL = "tts-1-hd"
    SPEECH_OPENAI_VOICE = "nova"
    SPEECH_OPENAI_MAX_CHARS = 4000
    SPEECH_AUDIO_CACHE_MAX_ITEMS = 64
    SPEECH_AUDIO_CACHE_TTL_SECONDS = 3600

    # ─────────────────────────────────────────────────────────────────────────
    # Translation
    # ─────────────────────────────────────────────────────────────────────────
    TRANSLATION_MAX_INPUT_CHARS = 6000
    TRANSLATION_DEFAULT_QUALITY = 3
    TRANSLATION_SEGMENT_MAX_CHARS = 200

    # ─────────────────────────────────────────────────────────────────────────
    # Client-side batching
    # ─────────────────────────────────────────────────────────────────────────
    BATCHING_BATCH_SIZE = 5
    BATCHING_BATCH_DELAY_S = 0.05
    CLIENT_CACHE_MAX_ITEMS = 50

    # ─────────────────────────────────────────────────────────────────────────
    # Providers
    # ─────────────────────────────────────────────────────────────────────────
    PROVIDERS_OPENAI_BASE_URL = "https://api.openai.com/v1"
    PROVIDERS_GOOGLE_TTS_URL = "https://texttospeech.googleapis.com/v1/text:synthesize"
    PROVIDERS_TIMEOUT_S = 30.0

    # ─────────────────────────────────────────────────────────────────────────
    # Usage accounting
    # ─────────────────────────────────────────────────────────────────────────
    USAGE_COST_PER_CHAR = 0.000015

    # ─────────────────────────────────────────────────────────────────────────
    # Logging
    # ─────────────────────────────────────────────────────────────────────────
    LOGGING_TEXT_PREVIEW_CHARS = 50
    LOGGING_LEVEL = 2

    # Model / temperature / token budget per quality level
    QUALITY_TIERS: Dict[int, Dict[str, Any]] = {
        1: {"model": "gpt-4o-mini", "temperature": 0.3, "max_tokens": 1000},
        2: {"model": "gpt-4o-mini", "temperature": 0.1, "max_tokens": 1200},
        3: {"model": "gpt-4o", "temperature": 0.0, "max_tokens": 1500},
        4: {"model": "gpt-4o", "temperature": 0.0, "max_tokens": 2000},
        5: {"model": "gpt-4o", "temperature": 0.0, "max_tokens": 2500},
    }


@dataclass
class CacheConfig:
    """Per-process translation result cache (LRU with TTL)."""
    max_items: int = Defaults.CACHE_MAX_ITEMS
    ttl_seconds: int = Defaults.CACHE_TTL_SECONDS


@dataclass
class SharedCacheConfig:
    """
    Shared durable translation cache.

    Only requests without a contextual prompt are read from or written
    to this tier.
    """
    enabled: bool = Defaults.SHARED_CACHE_ENABLED
    backend: str = Defaults.SHARED_CACHE_BACKEND
    base_dir: str = Defaults.SHARED_CACHE_BASE_DIR


@dataclass
class RetryConfig:
    """Attempt budgets and backoff base delays per outbound call type."""
    translation_attempts: int = Defaults.RETRY_TRANSLATION_ATTEMPTS
    translation_base_delay_s: float = Defaults.RETRY_TRANSLATION_BASE_DELAY_S
    speech_primary_attempts: int = Defaults.RETRY_SPEECH_PRIMARY_ATTEMPTS
    speech_secondary_attempts: int = Defaults.RETRY_SPEECH_SECONDARY_ATTEMPTS
    speech_secondary_base_delay_s: float = Defaults.RETRY_SPEECH_SECONDARY_BASE_DELAY_S
    jitter_s: float = Defaults.RETRY_JITTER_S


@dataclass
class SpeechConfig:
    """Speech synthesis and provider fallback."""
    default_mode: str = Defaults.SPEECH_DEFAULT_MODE
    auto_threshold_chars: int = Defaults.SPEECH_AUTO_THRESHOLD_CHARS
    openai_model: str = Defaults.SPEECH_OPENAI_MODEL
    openai_voice: str = Defaults.SPEECH_OPENAI_VOICE
    openai_max_chars: int = Defaults.SPEECH_OPENAI_MAX_CHARS
    audio_cache_max_items: int = Defaults.SPEECH_AUDIO_CACHE_MAX_ITEMS
    audio_cache_ttl_seconds: int = Defaults.SPEECH_AUDIO_CACHE_TTL_SECONDS


@dataclass
class TranslationConfig:
    """Translation limits, default quality and pluggable quality tiers."""
    max_input_chars: int = Defaults.TRANSLATION_MAX_INPUT_CHARS
    default_quality: int = Defaults.TRANSLATION_DEFAULT_QUALITY
    segment_max_chars: int = Defaults.TRANSLATION_SEGMENT_MAX_CHARS
    quality_tiers: Dict[int, Dict[str, Any]] = field(
        default_factory=lambda: {k: dict(v) for k, v in Defaults.QUALITY_TIERS.items()}
    )


@dataclass
class BatchingConfig:
    """Client-side request batching queue."""
    batch_size: int = Defaults.BATCHING_BATCH_SIZE
    batch_delay_s: float = Defaults.BATCHING_BATCH_DELAY_S
    client_cache_max_items: int = Defaults.CLIENT_CACHE_MAX_ITEMS


@dataclass
class ProvidersConfig:
    """
    Upstream provider endpoints and system default credentials.

    System keys normally come from the environment (OPENAI_API_KEY,
    GOOGLE_TTS_API_KEY) rather than the YAML file.
    """
    openai_base_url: str = Defaults.PROVIDERS_OPENAI_BASE_URL
    google_tts_url: str = Defaults.PROVIDERS_GOOGLE_TTS_URL
    timeout_s: float = Defaults.PROVIDERS_TIMEOUT_S
    openai_api_key: Optional[str] = None
    google_api_key: Optional[str] = None


@dataclass
class UsageConfig:
    cost_per_char: float = Defaults.USAGE_COST_PER_CHAR


@dataclass
class LoggingConfig:
    """
    Logging configuration.

    Log levels:
        1 = MINIMAL, 2 = NORMAL (default), 3 = VERBOSE, 4 = DEBUG
    """
    text_preview_chars: int = Defaults.LOGGING_TEXT_PREVIEW_CHARS
    level: int = Defaults.LOGGING_LEVEL


_SPEECH_MODES = ("auto", "primary", "secondary")
_SHARED_BACKENDS = ("file", "memory")


@dataclass
class GatewayConfig:
    """
    Validated configuration for the gateway.

    Usage:
        settings = load_settings("config/settings.yaml")
        config = GatewayConfig.from_settings(settings)
        print(config.retry.translation_attempts)
    """
    cache: CacheConfig = field(default_factory=CacheConfig)
    shared_cache: SharedCacheConfig = field(default_factory=SharedCacheConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    speech: SpeechConfig = field(default_factory=SpeechConfig)
    translation: TranslationConfig = field(default_factory=TranslationConfig)
    batching: BatchingConfig = field(default_factory=BatchingConfig)
    providers: ProvidersConfig = field(default_factory=ProvidersConfig)
    usage: UsageConfig = field(default_factory=UsageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "GatewayConfig":
        """
        Build a GatewayConfig from raw settings, applying defaults.

        Raises:
            ConfigValidationError: If any value fails validation.
        """
        raw = settings.raw

        # ─────────────────────────────────────────────────────────────────────
        # Ephemeral cache
        # ─────────────────────────────────────────────────────────────────────
        cache_raw = raw.get("cache", {}) or {}
        cache = CacheConfig(
            max_items=int(cache_raw.get("max_items", Defaults.CACHE_MAX_ITEMS)),
            ttl_seconds=int(cache_raw.get("ttl_seconds", Defaults.CACHE_TTL_SECONDS)),
        )
        cls._validate_positive("cache.max_items", cache.max_items)
        cls._validate_positive("cache.ttl_seconds", cache.ttl_seconds)

        # ─────────────────────────────────────────────────────────────────────
        # Shared cache
        # ─────────────────────────────────────────────────────────────────────
        shared_raw = raw.get("shared_cache", {}) or {}
        shared_cache = SharedCacheConfig(
            enabled=bool(shared_raw.get("enabled", Defaults.SHARED_CACHE_ENABLED)),
            backend=str(shared_raw.get("backend", Defaults.SHARED_CACHE_BACKEND)),
            base_dir=str(shared_raw.get("base_dir", Defaults.SHARED_CACHE_BASE_DIR)),
        )
        cls._validate_choice("shared_cache.backend", shared_cache.backend, _SHARED_BACKENDS)

        # ─────────────────────────────────────────────────────────────────────
        # Retry
        # ─────────────────────────────────────────────────────────────────────
        retry_raw = raw.get("retry", {}) or {}
        retry = RetryConfig(
            translation_attempts=int(retry_raw.get(
                "translation_attempts", Defaults.RETRY_TRANSLATION_ATTEMPTS)),
            translation_base_delay_s=float(retry_raw.get(
                "translation_base_delay_s", Defaults.RETRY_TRANSLATION_BASE_DELAY_S)),
            speech_primary_attempts=int(retry_raw.get(
                "speech_primary_attempts", Defaults.RETRY_SPEECH_PRIMARY_ATTEMPTS)),
            speech_secondary_attempts=int(retry_raw.get(
                "speech_secondary_attempts", Defaults.RETRY_SPEECH_SECONDARY_ATTEMPTS)),
            speech_secondary_base_delay_s=float(retry_raw.get(
                "speech_secondary_base_delay_s", Defaults.RETRY_SPEECH_SECONDARY_BASE_DELAY_S)),
            jitter_s=float(retry_raw.get("jitter_s", Defaults.RETRY_JITTER_S)),
        )
        cls._validate_positive("retry.translation_attempts", retry.translation_attempts)
        cls._validate_non_negative("retry.translation_base_delay_s", retry.translation_base_delay_s)
        cls._validate_positive("retry.speech_primary_attempts", retry.speech_primary_attempts)
        cls._validate_positive("retry.speech_secondary_attempts", retry.speech_secondary_attempts)
        cls._validate_non_negative("retry.speech_secondary_base_delay_s", retry.speech_secondary_base_delay_s)
        cls._validate_range("retry.jitter_s", retry.jitter_s, 0.0, 0.2)

        # ─────────────────────────────────────────────────────────────────────
        # Speech
        # ─────────────────────────────────────────────────────────────────────
        speech_raw = raw.get("speech", {}) or {}
        speech = SpeechConfig(
            default_mode=str(speech_raw.get("default_mode", Defaults.SPEECH_DEFAULT_MODE)),
            auto_threshold_chars=int(speech_raw.get(
                "auto_threshold_chars", Defaults.SPEECH_AUTO_THRESHOLD_CHARS)),
            openai_model=str(speech_raw.get("openai_model", Defaults.SPEECH_OPENAI_MODEL)),
            openai_voice=str(speech_raw.get("openai_voice", Defaults.SPEECH_OPENAI_VOICE)),
            openai_max_chars=int(speech_raw.get("openai_max_chars", Defaults.SPEECH_OPENAI_MAX_CHARS)),
            audio_cache_max_items=int(speech_raw.get(
                "audio_cache_max_items", Defaults.SPEECH_AUDIO_CACHE_MAX_ITEMS)),
            audio_cache_ttl_seconds=int(speech_raw.get(
                "audio_cache_ttl_seconds", Defaults.SPEECH_AUDIO_CACHE_TTL_SECONDS)),
        )
        cls._validate_choice("speech.default_mode", speech.default_mode, _SPEECH_MODES)
        cls._validate_positive("speech.auto_threshold_chars", speech.auto_threshold_chars)
        cls._validate_positive("speech.openai_max_chars", speech.openai_max_chars)
        cls._validate_positive("speech.audio_cache_max_items", speech.audio_cache_max_items)
        cls._validate_positive("speech.audio_cache_ttl_seconds", speech.audio_cache_ttl_seconds)

        # ─────────────────────────────────────────────────────────────────────
        # Translation (quality tiers are merged over the defaults)
        # ─────────────────────────────────────────────────────────────────────
        translation_raw = raw.get("translation", {}) or {}
        tiers = {k: dict(v) for k, v in Defaults.QUALITY_TIERS.items()}
        for level, tier in (raw.get("quality_tiers", {}) or {}).items():
            tiers[int(level)] = cls._parse_tier(int(level), tier)
        translation = TranslationConfig(
            max_input_chars=int(translation_raw.get(
                "max_input_chars", Defaults.TRANSLATION_MAX_INPUT_CHARS)),
            default_quality=int(translation_raw.get(
                "default_quality", Defaults.TRANSLATION_DEFAULT_QUALITY)),
            segment_max_chars=int(translation_raw.get(
                "segment_max_chars", Defaults.TRANSLATION_SEGMENT_MAX_CHARS)),
            quality_tiers=tiers,
        )
        cls._validate_positive("translation.max_input_chars", translation.max_input_chars)
        cls._validate_positive("translation.segment_max_chars", translation.segment_max_chars)
        if translation.default_quality not in tiers:
            raise ConfigValidationError(
                f"translation.default_quality must be one of {sorted(tiers)}, "
                f"got {translation.default_quality}"
            )

        # ─────────────────────────────────────────────────────────────────────
        # Client batching
        # ─────────────────────────────────────────────────────────────────────
        batching_raw = raw.get("batching", {}) or {}
        batching = BatchingConfig(
            batch_size=int(batching_raw.get("batch_size", Defaults.BATCHING_BATCH_SIZE)),
            batch_delay_s=float(batching_raw.get("batch_delay_s", Defaults.BATCHING_BATCH_DELAY_S)),
            client_cache_max_items=int(batching_raw.get(
                "client_cache_max_items", Defaults.CLIENT_CACHE_MAX_ITEMS)),
        )
        cls._validate_positive("batching.batch_size", batching.batch_size)
        cls._validate_non_negative("batching.batch_delay_s", batching.batch_delay_s)
        cls._validate_positive("batching.client_cache_max_items", batching.client_cache_max_items)

        # ─────────────────────────────────────────────────────────────────────
        # Providers (environment wins for secrets)
        # ─────────────────────────────────────────────────────────────────────
        providers_raw = raw.get("providers", {}) or {}
        providers = ProvidersConfig(
            openai_base_url=str(providers_raw.get(
                "openai_base_url", Defaults.PROVIDERS_OPENAI_BASE_URL)).rstrip("/"),
            google_tts_url=str(providers_raw.get("google_tts_url", Defaults.PROVIDERS_GOOGLE_TTS_URL)),
            timeout_s=float(providers_raw.get("timeout_s", Defaults.PROVIDERS_TIMEOUT_S)),
            openai_api_key=os.getenv("OPENAI_API_KEY") or providers_raw.get("openai_api_key"),
            google_api_key=os.getenv("GOOGLE_TTS_API_KEY") or providers_raw.get("google_api_key"),
        )
        cls._validate_positive("providers.timeout_s", providers.timeout_s)

        usage_raw = raw.get("usage", {}) or {}
        usage = UsageConfig(
            cost_per_char=float(usage_raw.get("cost_per_char", Defaults.USAGE_COST_PER_CHAR)),
        )
        cls._validate_non_negative("usage.cost_per_char", usage.cost_per_char)

        # ─────────────────────────────────────────────────────────────────────
        # Logging
        # ─────────────────────────────────────────────────────────────────────
        logging_raw = raw.get("logging", {}) or {}
        log_level_raw = logging_raw.get("level", Defaults.LOGGING_LEVEL)
        if isinstance(log_level_raw, str):
            level_map = {
                "MINIMAL": 1, "1": 1,
                "NORMAL": 2, "INFO": 2, "2": 2,
                "VERBOSE": 3, "3": 3,
                "DEBUG": 4, "TRACE": 4, "4": 4,
            }
            log_level = level_map.get(log_level_raw.upper(), Defaults.LOGGING_LEVEL)
        else:
            log_level = int(log_level_raw)
        logging_cfg = LoggingConfig(
            text_preview_chars=int(logging_raw.get(
                "text_preview_chars", Defaults.LOGGING_TEXT_PREVIEW_CHARS)),
            level=log_level,
        )
        cls._validate_non_negative("logging.text_preview_chars", logging_cfg.text_preview_chars)
        cls._validate_range("logging.level", logging_cfg.level, 1, 4)

        return cls(
            cache=cache,
            shared_cache=shared_cache,
            retry=retry,
            speech=speech,
            translation=translation,
            batching=batching,
            providers=providers,
            usage=usage,
            logging=logging_cfg,
        )

    @classmethod
    def _parse_tier(cls, level: int, tier: Any) -> Dict[str, Any]:
        if not isinstance(tier, dict) or "model" not in tier:
            raise ConfigValidationError(f"quality_tiers.{level} must be a mapping with a 'model' key")
        parsed = {
            "model": str(tier["model"]),
            "temperature": float(tier.get("temperature", 0.0)),
            "max_tokens": int(tier.get("max_tokens", 1500)),
        }
        cls._validate_range(f"quality_tiers.{level}.temperature", parsed["temperature"], 0.0, 2.0)
        cls._validate_positive(f"quality_tiers.{level}.max_tokens", parsed["max_tokens"])
        return parsed

    @staticmethod
    def _validate_positive(name: str, value: int | float) -> None:
        """Validate that a value is positive (> 0)."""
        if value <= 0:
            raise ConfigValidationError(f"{name} must be positive, got {value}")

    @staticmethod
    def _validate_non_negative(name: str, value: int | float) -> None:
        """Validate that a value is non-negative (>= 0)."""
        if value < 0:
            raise ConfigValidationError(f"{name} must be non-negative, got {value}")

    @staticmethod
    def _validate_range(name: str, value: int | float, min_val: int | float, max_val: int | float) -> None:
        """Validate that a value is within [min_val, max_val]."""
        if not (min_val <= value <= max_val):
            raise ConfigValidationError(f"{name} must be between {min_val} and {max_val}, got {value}")

    @staticmethod
    def _validate_choice(name: str, value: str, choices: tuple) -> None:
        if value not in choices:
            raise ConfigValidationError(f"{name} must be one of {', '.join(choices)}, got {value!r}")


@dataclass(frozen=True)
class Settings:
    """
    Immutable settings container loaded from YAML.

    Use get_gateway_config() for the validated, typed view.
    """
    raw: Dict[str, Any]

    @property
    def seeded_user_keys(self) -> Dict[str, Dict[str, str]]:
        """
        Per-user credentials declared in YAML (``credentials.users``).

        Intended for local development; production deployments plug a
        real credential store in instead.
        """
        users = (self.raw.get("credentials", {}) or {}).get("users", {}) or {}
        return {str(uid): dict(keys or {}) for uid, keys in users.items()}

    def get_gateway_config(self) -> GatewayConfig:
        """
        Get validated GatewayConfig from these settings.

        Raises:
            ConfigValidationError: If validation fails.
        """
        return GatewayConfig.from_settings(self)


def load_settings(path: str = "config/settings.yaml") -> Settings:
    """
    Load settings from a YAML configuration file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        Settings object with loaded configuration.

    Raises:
        FileNotFoundError: If the settings file doesn't exist.
        ConfigValidationError: If the file is not valid YAML or not a mapping.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"settings file not found: {p.resolve()}")

    with p.open("r", encoding="utf-8") as f:
        try:
            raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigValidationError(f"invalid YAML in {p}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigValidationError(f"settings root must be a mapping, got {type(raw).__name__}")

    return Settings(raw=raw)
