"""
Services layer.

    - translation_service.py: TranslationService
    - speech_service.py: SpeechService (with chunked playback)
    - gateway.py: Gateway container wiring everything together
    - prompts.py, validators.py, usage.py: helpers used by the services
"""
from translate_ms.core.errors import (
    ConfigurationError,
    ErrorCode,
    FallbackExhaustedError,
    GatewayError,
    InvalidInputError,
    ProviderFailedError,
)
from .gateway import Gateway
from .speech_service import SpeakRequest, SpeechService
from .translation_service import TranslateRequest, TranslateResult, TranslationService

__all__ = [
    "ConfigurationError",
    "ErrorCode",
    "FallbackExhaustedError",
    "Gateway",
    "GatewayError",
    "InvalidInputError",
    "ProviderFailedError",
    "SpeakRequest",
    "SpeechService",
    "TranslateRequest",
    "TranslateResult",
    "TranslationService",
]
