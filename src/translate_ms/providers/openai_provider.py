"""
OpenAI adapters: chat-completions translation and text-to-speech.

Both share one ``httpx.AsyncClient`` owned by the Gateway. Timeouts are
the client's. A call makes exactly one HTTP request; retries belong to
RetryExecutor.

Endpoints:
    POST {base_url}/chat/completions
    POST {base_url}/audio/speech
"""
from __future__ import annotations

from typing import Any, Dict

import httpx

from translate_ms.core.config import Defaults
from translate_ms.core.logging import debug, get_logger, warn
from translate_ms.providers.base import ModelConfig, ProviderError, TranslationPrompt, VoiceConfig
from translate_ms.utils.text import extract_json_object

_LOG = get_logger("translate-ms.provider.openai")


def _headers(api_key: str) -> Dict[str, str]:
    return {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }


async def _post(client: httpx.AsyncClient, url: str, api_key: str, body: Dict[str, Any],
                user_key: bool) -> httpx.Response:
    # httpx timeouts/transport errors propagate as-is; is_transient() knows them
    resp = await client.post(url, headers=_headers(api_key), json=body)
    if resp.status_code >= 400:
        warn(_LOG, "openai_http_error", status=resp.status_code, body=resp.text[:200])
        raise ProviderError.from_status("openai", resp.status_code, user_key=user_key)
    return resp


class OpenAITranslationProvider:
    """Translation through chat completions, expecting a JSON object reply."""

    name = "openai"

    def __init__(self, client: httpx.AsyncClient, base_url: str = Defaults.PROVIDERS_OPENAI_BASE_URL):
        self._client = client
        self._url = f"{base_url.rstrip('/')}/chat/completions"

    async def complete(self, prompt: TranslationPrompt, model_config: ModelConfig, api_key: str,
                       user_key: bool = False) -> Dict[str, Any]:
        body = {
            "model": model_config.model,
            "messages": [
                {"role": "system", "content": prompt.system},
                {"role": "user", "content": prompt.user},
            ],
            "temperature": model_config.temperature,
            "max_tokens": model_config.max_tokens,
        }
        resp = await _post(self._client, self._url, api_key, body, user_key)

        try:
            content = resp.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError):
            content = None
        if not content:
            raise ProviderError("Empty translation response", "openai", resp.status_code, retryable=True)

        try:
            parsed = extract_json_object(content)
        except ValueError as e:
            # models occasionally drift from the format; another sample usually parses
            raise ProviderError(f"Unparseable translation response: {e}", "openai",
                                resp.status_code, retryable=True) from e

        debug(_LOG, "openai_completion", model=model_config.model, keys=sorted(parsed))
        return parsed


class OpenAISpeechProvider:
    """
    OpenAI text-to-speech (secondary speech provider).

    Input longer than ``max_chars`` is truncated; the endpoint caps input
    at 4096 characters.
    """

    name = "openai"

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str = Defaults.PROVIDERS_OPENAI_BASE_URL,
        model: str = Defaults.SPEECH_OPENAI_MODEL,
        default_voice: str = Defaults.SPEECH_OPENAI_VOICE,
        max_chars: int = Defaults.SPEECH_OPENAI_MAX_CHARS,
    ):
        self._client = client
        self._url = f"{base_url.rstrip('/')}/audio/speech"
        self._model = model
        self._default_voice = default_voice
        self._max_chars = max_chars

    def _voice(self, voice_config: VoiceConfig) -> str:
        # Google-style names ("vi-VN-Standard-A") mean nothing to OpenAI
        voice = voice_config.voice
        if not voice or "-" in voice:
            return self._default_voice
        return voice

    async def synthesize(self, text: str, voice_config: VoiceConfig, api_key: str,
                         user_key: bool = False) -> bytes:
        body = {
            "model": self._model,
            "input": text[: self._max_chars],
            "voice": self._voice(voice_config),
        }
        resp = await _post(self._client, self._url, api_key, body, user_key)
        audio = resp.content
        if not audio:
            raise ProviderError("OpenAI returned empty audio", "openai", resp.status_code)
        return audio
