"""
API Request/Response Schemas.

Pydantic models for the gateway endpoints. Length limits on text are
enforced by the services (so the error uses the gateway's error format);
the schemas only check types and cheap structural constraints.

Models:
    TranslateBody: Input for POST /v1/translate
    TranslateResponse: Output of POST /v1/translate
    SpeakBody: Input for POST /v1/speak
    SpeakChunkBody: Input for POST /v1/speak/chunk

Example Request:
    {
        "text": "안녕하세요",
        "target_lang": "Vietnamese",
        "quality": 3,
        "pronunciation": true
    }
"""
from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field


class TranslateBody(BaseModel):
    """
    Translation request.

    Attributes:
        text: Source text (max 6000 characters, checked by the service).
        target_lang: Target language name or code.
        quality: Quality tier. Unknown tiers fall back to the default.
        pronunciation: Include a Hangul pronunciation.
        context_prompt: Caller-supplied instructions. Results for
            contextual requests are never shared across users.
    """
    text: str = Field(..., description="Text to translate")
    target_lang: str = Field(..., description="Target language, e.g. 'Vietnamese' or 'ko'")
    quality: int | None = Field(default=None, ge=1, le=10, description="Quality tier")
    pronunciation: bool = Field(default=True, description="Return Hangul pronunciation")
    context_prompt: str | None = Field(default=None, max_length=4000, description="Contextual prompt")


class TranslateResponse(BaseModel):
    ok: bool = True
    translation: str
    pronunciation: str = ""
    segments: List[str] = Field(default_factory=list)
    cached: str = Field(..., description="'ephemeral', 'shared' or 'miss'")
    quality: int
    used_user_key: bool = False


class SpeakBody(BaseModel):
    """
    Speech request.

    Attributes:
        text: Text to speak.
        language: Language name or code (default Vietnamese).
        voice: Provider voice name (Google "vi-VN-Standard-A" or OpenAI "nova").
        mode: "auto", "primary" (Google first) or "secondary" (OpenAI first).
    """
    text: str = Field(..., description="Text to synthesize")
    language: str | None = Field(default=None, description="Language name or code")
    voice: str | None = Field(default=None, description="Provider voice name")
    mode: str | None = Field(default=None, description="auto | primary | secondary")


class SpeakChunkBody(SpeakBody):
    chunk_index: int = Field(default=0, ge=0, description="0-based segment index")
