"""
Google Cloud Text-to-Speech adapter (primary speech provider).

Low latency for short utterances. Authenticates with an API key passed as
the ``key`` query parameter and returns MP3 decoded from the base64
``audioContent`` field.

Voice handling:
    - no voice given: the locale's default voice
    - voice for another locale (e.g. "ko-KR-Standard-C" with vi-VN):
      replaced by a same-gender voice of the requested locale
"""
from __future__ import annotations

import base64
import binascii
from typing import Dict, Optional

import httpx

from translate_ms.core.config import Defaults
from translate_ms.core.logging import debug, get_logger, warn
from translate_ms.providers.base import ProviderError, VoiceConfig

_LOG = get_logger("translate-ms.provider.google")

DEFAULT_VOICES: Dict[str, str] = {
    "vi-VN": "vi-VN-Standard-A",
    "ko-KR": "ko-KR-Standard-A",
    "en-US": "en-US-Standard-C",
}

# Voice suffixes that select the alternate (male) voice per locale.
_ALTERNATE_VOICES: Dict[str, tuple] = {
    "vi-VN": (("-B", "-D"), "vi-VN-Standard-B"),
    "ko-KR": (("-C", "-D"), "ko-KR-Standard-C"),
}


def select_voice(locale: str, voice: Optional[str]) -> str:
    """
    Pick a Google voice name valid for ``locale``.

    >>> select_voice("vi-VN", None)
    'vi-VN-Standard-A'
    >>> select_voice("vi-VN", "ko-KR-Standard-D")
    'vi-VN-Standard-B'
    """
    if not voice:
        return DEFAULT_VOICES.get(locale[:5], DEFAULT_VOICES["en-US"])

    if voice[:5] == locale[:5]:
        return voice

    alternate = _ALTERNATE_VOICES.get(locale[:5])
    if alternate is not None:
        suffixes, alt_voice = alternate
        if any(s in voice for s in suffixes):
            return alt_voice
    return DEFAULT_VOICES.get(locale[:5], voice)


class GoogleSpeechProvider:
    name = "google"

    def __init__(self, client: httpx.AsyncClient, url: str = Defaults.PROVIDERS_GOOGLE_TTS_URL):
        self._client = client
        self._url = url

    async def synthesize(self, text: str, voice_config: VoiceConfig, api_key: str,
                         user_key: bool = False) -> bytes:
        voice = select_voice(voice_config.locale, voice_config.voice)
        body = {
            "input": {"text": text},
            "voice": {"languageCode": voice_config.locale, "name": voice},
            "audioConfig": {
                "audioEncoding": "MP3",
                "speakingRate": voice_config.speaking_rate or 1.0,
                "pitch": 0.0,
                "volumeGainDb": 10.0,
            },
        }
        resp = await self._client.post(self._url, params={"key": api_key}, json=body)
        if resp.status_code >= 400:
            warn(_LOG, "google_http_error", status=resp.status_code, body=resp.text[:200])
            raise ProviderError.from_status("google", resp.status_code, user_key=user_key)

        try:
            content = resp.json().get("audioContent")
        except ValueError:
            content = None
        if not content:
            raise ProviderError("Google returned no audioContent", "google", resp.status_code)

        try:
            audio = base64.b64decode(content, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ProviderError(f"Google audioContent is not base64: {e}", "google", resp.status_code) from e
        if not audio:
            raise ProviderError("Google returned empty audio", "google", resp.status_code)

        debug(_LOG, "google_synthesized", voice=voice, bytes=len(audio))
        return audio
