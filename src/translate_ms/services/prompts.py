"""
Prompt construction for LLM translation.

The model is always asked for a bare JSON object with two keys,
``translation`` and ``pronunciation_hangul`` (a Hangul transcription of
the translated text, for Korean-speaking learners). Higher quality tiers
get extra instructions. A caller-supplied contextual prompt replaces the
default user message.
"""
from __future__ import annotations

from typing import List, Optional

from translate_ms.providers.base import TranslationPrompt
from translate_ms.utils.text import detect_source_language


def build_translation_prompt(
    text: str,
    target_lang: str,
    quality: int,
    pronunciation: bool = True,
    context_prompt: Optional[str] = None,
) -> TranslationPrompt:
    source_lang = detect_source_language(text)

    lines: List[str] = [
        "You are a professional translator with deep cultural and linguistic knowledge.",
        "Return ONLY a valid JSON object: no markdown, no commentary.",
        'The object must have exactly two string keys: "translation" and "pronunciation_hangul".',
        "",
        "Rules:",
        f"- Source language: {source_lang}. Target language: {target_lang}.",
        "- Keep named entities, proper nouns, product codes, emails and URLs unchanged.",
        "- Match the formality of the input; otherwise use a neutral tone.",
        "- Keep the translation natural and concise.",
    ]

    if quality >= 4:
        lines += [
            "- Account for cultural nuance, idioms and regional variation.",
            "- Grammar and flow must read as written by a native speaker.",
        ]
    elif quality >= 3:
        lines.append("- Favor accuracy and consistent terminology.")

    if pronunciation:
        lines += [
            f'- Set "pronunciation_hangul" to a Korean (Hangul) phonetic transcription '
            f"of the translated {target_lang} text.",
        ]
    else:
        lines.append('- Set "pronunciation_hangul" to an empty string.')

    if context_prompt and context_prompt.strip():
        user = f"{context_prompt.strip()}\n\nText: \"\"\"{text}\"\"\""
    else:
        user = f"Translate this {source_lang} text to {target_lang}: \"\"\"{text}\"\"\""

    return TranslationPrompt(system="\n".join(lines), user=user)
