"""
Gateway API Routes.

Endpoints:
    POST /v1/translate     - Translate text (JSON)
    POST /v1/speak         - Synthesize speech (audio/mpeg)
    POST /v1/speak/chunk   - Synthesize one sentence segment (JSON, base64 audio)
    GET  /health           - Health check and cache stats
    GET  /metrics          - Prometheus metrics

Request Flow:
    1. Generate a request ID for tracing (12-char UUID prefix)
    2. Resolve the user from the X-User-Id header
    3. Call the TranslationService or SpeechService on the app's Gateway
    4. Return the result with metadata headers

Error Handling:
    All errors are returned as JSON:
    {
        "ok": false,
        "error": "<ERROR_CODE>",
        "message": "<human readable message>"
    }

    HTTP status codes come from the error code:
        - INVALID_INPUT -> 400
        - CONFIGURATION_ERROR -> 500
        - PROVIDER_FAILED, FALLBACK_EXHAUSTED -> 502
        - anything else -> 500 INTERNAL_ERROR (details stay in the logs)

Example Usage:
    >>> import httpx
    >>> r = httpx.post(
    ...     "http://localhost:8000/v1/translate",
    ...     json={"text": "안녕하세요", "target_lang": "Vietnamese"},
    ...     headers={"X-User-Id": "u-42"},
    ... )
    >>> r.json()["translation"]
"""
from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse

from translate_ms.api.dependencies import get_gateway, get_user_id
from translate_ms.api.schemas import SpeakBody, SpeakChunkBody, TranslateBody, TranslateResponse
from translate_ms.core.errors import ErrorCode, GatewayError
from translate_ms.core.logging import error, get_logger, set_request_id, set_user
from translate_ms.services.gateway import Gateway
from translate_ms.services.speech_service import SpeakRequest
from translate_ms.services.translation_service import TranslateRequest

router = APIRouter()

_LOG = get_logger("translate-ms.api")


def _new_request_id(user_id: Optional[str] = None) -> str:
    rid = str(uuid.uuid4())[:12]
    set_request_id(rid)
    set_user(user_id)
    return rid


def _error_response(e: GatewayError, rid: str) -> JSONResponse:
    content = e.to_dict()
    content["request_id"] = rid
    return JSONResponse(status_code=e.http_status, content=content, headers={"X-Request-Id": rid})


def _internal_error(e: Exception, rid: str) -> JSONResponse:
    # Log internally but don't expose details
    error(_LOG, "unhandled_error", error_type=type(e).__name__, error=str(e))
    return JSONResponse(
        status_code=500,
        content={
            "ok": False,
            "error": ErrorCode.INTERNAL_ERROR,
            "message": "Internal server error",
            "request_id": rid,
        },
        headers={"X-Request-Id": rid},
    )


@router.post("/v1/translate", response_model=TranslateResponse)
async def translate(
    req: TranslateBody,
    gateway: Gateway = Depends(get_gateway),
    user_id: Optional[str] = Depends(get_user_id),
):
    """
    Translate text with a Hangul pronunciation.

    Returns:
        TranslateResponse. ``cached`` tells which tier served the result.

    Example:
        curl -X POST http://localhost:8000/v1/translate \\
            -H "Content-Type: application/json" \\
            -d '{"text": "안녕하세요", "target_lang": "Vietnamese"}'
    """
    rid = _new_request_id(user_id)
    try:
        result = await gateway.translation.translate(TranslateRequest(
            text=req.text,
            target_lang=req.target_lang,
            quality=req.quality,
            pronunciation=req.pronunciation,
            context_prompt=req.context_prompt,
            user_id=user_id,
        ))
    except GatewayError as e:
        return _error_response(e, rid)
    except Exception as e:
        return _internal_error(e, rid)

    return JSONResponse(
        content=TranslateResponse(ok=True, **result.to_dict()).model_dump(),
        headers={"X-Request-Id": rid, "X-Cache": result.cached},
    )


@router.post("/v1/speak", response_class=Response)
async def speak(
    req: SpeakBody,
    gateway: Gateway = Depends(get_gateway),
    user_id: Optional[str] = Depends(get_user_id),
):
    """
    Synthesize speech.

    Returns:
        Response: MP3 audio with headers:
            - X-Request-Id: Unique request identifier for tracing
            - X-Provider: Backend that produced the audio (google/openai)
            - X-Bytes: Size of audio data in bytes

    Example:
        curl -X POST http://localhost:8000/v1/speak \\
            -H "Content-Type: application/json" \\
            -d '{"text": "Xin chào", "language": "Vietnamese"}' \\
            --output speech.mp3
    """
    rid = _new_request_id(user_id)
    try:
        result = await gateway.speech.speak(SpeakRequest(
            text=req.text,
            language=req.language,
            voice=req.voice,
            mode=req.mode,
            user_id=user_id,
        ))
    except GatewayError as e:
        return _error_response(e, rid)
    except Exception as e:
        return _internal_error(e, rid)

    headers = {
        "X-Request-Id": rid,
        "X-Provider": result.provider,
        "X-Bytes": str(result.byte_length),
    }
    return Response(content=result.audio, media_type="audio/mpeg", headers=headers)


@router.post("/v1/speak/chunk")
async def speak_chunk(
    req: SpeakChunkBody,
    gateway: Gateway = Depends(get_gateway),
    user_id: Optional[str] = Depends(get_user_id),
):
    """
    Synthesize segment ``chunk_index`` of the text for progressive playback.

    The client starts at 0 and increments until ``completed`` is true.
    """
    rid = _new_request_id(user_id)
    try:
        payload = await gateway.speech.speak_chunk(
            SpeakRequest(
                text=req.text,
                language=req.language,
                voice=req.voice,
                mode=req.mode,
                user_id=user_id,
            ),
            req.chunk_index,
        )
    except GatewayError as e:
        return _error_response(e, rid)
    except Exception as e:
        return _internal_error(e, rid)

    return JSONResponse(content={"ok": True, **payload}, headers={"X-Request-Id": rid})


@router.get("/health")
def health(gateway: Gateway = Depends(get_gateway)):
    """Health check: provider key presence, uptime and cache stats."""
    return gateway.get_health_info()


@router.get("/metrics")
def prometheus_metrics(gateway: Gateway = Depends(get_gateway)):
    """Prometheus metrics for this gateway, in text exposition format."""
    content, content_type = gateway.metrics.get_metrics_response()
    return Response(content=content, media_type=content_type)
