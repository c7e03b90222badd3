"""
Text helpers for the translation and speech pipelines.

    - detect_source_language(): Korean / Vietnamese / English by script
    - split_into_sentences(): sentence segments capped by length
    - normalize_for_key(): canonical text used in cache keys
    - language_to_locale(): "Korean" -> "ko-KR" etc.
    - extract_json_object(): tolerant JSON parsing of LLM output
    - preview(): shortened text for log lines
"""
from __future__ import annotations

import json
import re
from typing import Any, Dict, List

_HANGUL_RE = re.compile(r"[가-힣]")
_VIETNAMESE_RE = re.compile(
    r"[àáạảãâầấậẩẫăằắặẳẵèéẹẻẽêềếệểễìíịỉĩòóọỏõôồốộổỗơờớợởỡùúụủũưừứựửữỳýỵỷỹđ]",
    re.IGNORECASE,
)
# Sentence = run of non-terminators followed by terminators; a trailing
# unterminated run counts as a sentence too.
_SENTENCE_RE = re.compile(r"[^.!?]+[.!?]+|[^.!?]+$")
_WS_RE = re.compile(r"\s+")

_LOCALES = {
    "korean": "ko-KR",
    "ko": "ko-KR",
    "ko-kr": "ko-KR",
    "english": "en-US",
    "en": "en-US",
    "en-us": "en-US",
    "vietnamese": "vi-VN",
    "vi": "vi-VN",
    "vi-vn": "vi-VN",
}


def detect_source_language(text: str) -> str:
    """
    Guess the source language from the script used.

    Hangul wins over Vietnamese diacritics; anything else is English.

    >>> detect_source_language("안녕하세요")
    'Korean'
    >>> detect_source_language("Xin chào")
    'Vietnamese'
    """
    if _HANGUL_RE.search(text):
        return "Korean"
    if _VIETNAMESE_RE.search(text):
        return "Vietnamese"
    return "English"


def split_into_sentences(text: str, max_length: int = 200) -> List[str]:
    """
    Split text into sentence groups of at most ``max_length`` characters.

    Consecutive sentences are packed together while they fit. A single
    sentence longer than ``max_length`` becomes its own segment rather
    than being cut mid-sentence.

    >>> split_into_sentences("Hi. How are you? Fine", max_length=10)
    ['Hi.', 'How are you?', 'Fine']
    """
    if not text or not text.strip():
        return []

    sentences = _SENTENCE_RE.findall(text) or [text]
    chunks: List[str] = []
    current = ""
    for sentence in sentences:
        if len(current + sentence) <= max_length:
            current += sentence
        else:
            if current.strip():
                chunks.append(current.strip())
            current = sentence
    if current.strip():
        chunks.append(current.strip())
    return chunks


def normalize_for_key(text: str) -> str:
    """Strip and collapse internal whitespace."""
    return _WS_RE.sub(" ", text.strip())


def language_to_locale(language: str | None) -> str:
    """
    Map a language name or code to a BCP-47 locale.

    Unknown or empty input maps to Vietnamese, the app's primary target.
    """
    if not language:
        return "vi-VN"
    return _LOCALES.get(language.strip().lower(), "vi-VN")


def extract_json_object(content: str) -> Dict[str, Any]:
    """
    Parse an LLM reply that should be a JSON object.

    Models sometimes wrap the object in prose or markdown fences; in that
    case the text between the first ``{`` and the last ``}`` is parsed.

    Raises:
        ValueError: If no JSON object can be recovered.
    """
    try:
        parsed = json.loads(content)
    except json.JSONDecodeError:
        start, end = content.find("{"), content.rfind("}")
        if start == -1 or end <= start:
            raise ValueError("response is not a JSON object")
        try:
            parsed = json.loads(content[start:end + 1])
        except json.JSONDecodeError as e:
            raise ValueError(f"response is not a JSON object: {e}") from e

    if not isinstance(parsed, dict):
        raise ValueError("response is not a JSON object")
    return parsed


def preview(text: str, limit: int = 50) -> str:
    """Single-line preview for logs."""
    flat = _WS_RE.sub(" ", text).strip()
    if len(flat) <= limit:
        return flat
    return flat[:limit] + "..."
