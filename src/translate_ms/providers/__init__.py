"""
Upstream provider adapters.

    - base.py: contracts, ProviderError, response normalization
    - openai_provider.py: translation (chat completions) and OpenAI TTS
    - google_tts.py: Google Cloud Text-to-Speech
"""
from .base import (
    ModelConfig,
    ProviderError,
    SpeechProvider,
    TranslationPayload,
    TranslationPrompt,
    TranslationProvider,
    VoiceConfig,
    is_transient,
    normalize_translation,
)

__all__ = [
    "ModelConfig",
    "ProviderError",
    "SpeechProvider",
    "TranslationPayload",
    "TranslationPrompt",
    "TranslationProvider",
    "VoiceConfig",
    "is_transient",
    "normalize_translation",
]
