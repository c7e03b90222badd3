"""
Input Validation for the gateway.

Validation runs before any cache lookup or network call, so a bad
request never touches a provider or pollutes a cache.

Rules:
    - Text: required (non-blank), at most 6000 characters for translation
    - Target language: required, at most 32 characters, letters/spaces/hyphens
    - Chunk index: non-negative

All functions raise InvalidInputError carrying a machine-readable reason in
``details["reason"]`` (TEXT_REQUIRED, TEXT_TOO_LONG, ...).
"""
from __future__ import annotations

import re
from typing import Optional

from translate_ms.core.config import Defaults
from translate_ms.core.errors import InvalidInputError

_LANG_RE = re.compile(r"^[A-Za-z][A-Za-z \-]*$")


def validate_text(text: Optional[str], max_length: int = Defaults.TRANSLATION_MAX_INPUT_CHARS) -> str:
    """
    Validate text input.

    Returns:
        The text unchanged (surrounding whitespace is meaningful to
        speech pacing, so it is not stripped here).

    Raises:
        InvalidInputError: If text is blank or too long.
    """
    if not text or not text.strip():
        raise InvalidInputError("Text is required", {"reason": "TEXT_REQUIRED"})

    if len(text) > max_length:
        raise InvalidInputError(
            f"Text exceeds maximum length ({len(text)} > {max_length})",
            {"reason": "TEXT_TOO_LONG", "max_length": max_length},
        )

    return text


def validate_language(language: Optional[str], max_length: int = 32) -> str:
    """
    Validate a target language name or code ("Vietnamese", "ko", "en-US").

    Raises:
        InvalidInputError: If missing, too long or oddly formed.
    """
    if not language or not language.strip():
        raise InvalidInputError("Target language is required", {"reason": "LANGUAGE_REQUIRED"})

    language = language.strip()
    if len(language) > max_length:
        raise InvalidInputError(
            f"Language exceeds maximum length ({len(language)} > {max_length})",
            {"reason": "LANGUAGE_TOO_LONG"},
        )
    if not _LANG_RE.match(language):
        raise InvalidInputError(f"Invalid language: {language!r}", {"reason": "LANGUAGE_INVALID"})

    return language


def validate_chunk_index(index: int) -> int:
    if index < 0:
        raise InvalidInputError("chunk_index must be non-negative", {"reason": "CHUNK_INDEX_INVALID"})
    return index
