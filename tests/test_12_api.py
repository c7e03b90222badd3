"""Tests for the HTTP API (FastAPI TestClient over a Gateway wired with fakes)."""
from __future__ import annotations

import base64

from fastapi.testclient import TestClient

from conftest import FakeSpeechProvider, FakeTranslationProvider, make_config, make_gateway
from translate_ms.main import create_app
from translate_ms.providers.base import ProviderError


def client_for(gateway) -> TestClient:
    return TestClient(create_app(gateway=gateway))


class TestTranslateEndpoint:
    """POST /v1/translate."""

    def test_translate_ok(self):
        """200 with the translation body and cache header."""
        with client_for(make_gateway()) as client:
            r = client.post("/v1/translate", json={"text": "안녕하세요", "target_lang": "Vietnamese"})

        assert r.status_code == 200
        body = r.json()
        assert body["ok"] is True
        assert body["translation"] == "Xin chào"
        assert body["pronunciation"] == "신짜오"
        assert body["segments"] == ["Xin chào"]
        assert body["cached"] == "miss"
        assert body["quality"] == 3
        assert body["used_user_key"] is False
        assert r.headers["X-Cache"] == "miss"
        assert len(r.headers["X-Request-Id"]) == 12

    def test_second_call_cached(self):
        """The same request again is an ephemeral hit."""
        with client_for(make_gateway()) as client:
            client.post("/v1/translate", json={"text": "Hello", "target_lang": "Vietnamese"})
            r = client.post("/v1/translate", json={"text": "Hello", "target_lang": "Vietnamese"})
        assert r.json()["cached"] == "ephemeral"

    def test_user_header_selects_user_key(self):
        """X-User-Id picks the user's own key."""
        provider = FakeTranslationProvider()
        gateway = make_gateway(translation_provider=provider, user_keys={"u-42": {"openai": "sk-user"}})
        with client_for(gateway) as client:
            r = client.post(
                "/v1/translate",
                json={"text": "Hello", "target_lang": "Vietnamese"},
                headers={"X-User-Id": "u-42"},
            )
        assert r.json()["used_user_key"] is True
        assert provider.calls[0]["api_key"] == "sk-user"

    def test_empty_text(self):
        """Blank text is 400 INVALID_INPUT."""
        with client_for(make_gateway()) as client:
            r = client.post("/v1/translate", json={"text": "  ", "target_lang": "Vietnamese"})
        assert r.status_code == 400
        body = r.json()
        assert body["ok"] is False
        assert body["error"] == "INVALID_INPUT"
        assert body["details"]["reason"] == "TEXT_REQUIRED"
        assert "request_id" in body

    def test_text_too_long(self):
        """6001 characters is 400 INVALID_INPUT."""
        with client_for(make_gateway()) as client:
            r = client.post("/v1/translate", json={"text": "x" * 6001, "target_lang": "Vietnamese"})
        assert r.status_code == 400
        assert r.json()["details"]["reason"] == "TEXT_TOO_LONG"

    def test_schema_error(self):
        """A missing field is 400 in the gateway's error format."""
        with client_for(make_gateway()) as client:
            r = client.post("/v1/translate", json={"text": "Hello"})
        assert r.status_code == 400
        body = r.json()
        assert body["error"] == "INVALID_INPUT"
        assert body["details"]["reason"] == "SCHEMA_INVALID"
        assert "target_lang" in body["details"]["fields"]

    def test_no_key_configured(self):
        """No OpenAI key is 500 CONFIGURATION_ERROR."""
        with client_for(make_gateway(make_config(openai_key=None))) as client:
            r = client.post("/v1/translate", json={"text": "Hello", "target_lang": "Vietnamese"})
        assert r.status_code == 500
        assert r.json()["error"] == "CONFIGURATION_ERROR"

    def test_provider_failed(self):
        """Exhausted retries are 502 PROVIDER_FAILED."""
        errors = [ProviderError("down", "openai", 503, retryable=True) for _ in range(3)]
        gateway = make_gateway(translation_provider=FakeTranslationProvider(errors))
        with client_for(gateway) as client:
            r = client.post("/v1/translate", json={"text": "Hello", "target_lang": "Vietnamese"})
        assert r.status_code == 502
        assert r.json()["error"] == "PROVIDER_FAILED"

    def test_unexpected_error_hidden(self):
        """Unexpected exceptions are 500 INTERNAL_ERROR without details."""
        gateway = make_gateway(translation_provider=FakeTranslationProvider([RuntimeError("secret stack")]))
        with client_for(gateway) as client:
            r = client.post("/v1/translate", json={"text": "Hello", "target_lang": "Vietnamese"})
        assert r.status_code == 500
        body = r.json()
        assert body["error"] == "INTERNAL_ERROR"
        assert "secret stack" not in r.text


class TestSpeakEndpoints:
    """POST /v1/speak and /v1/speak/chunk."""

    def test_speak(self):
        """200 audio/mpeg with provider and size headers."""
        with client_for(make_gateway()) as client:
            r = client.post("/v1/speak", json={"text": "Xin chào", "language": "Vietnamese"})

        assert r.status_code == 200
        assert r.headers["content-type"] == "audio/mpeg"
        assert r.headers["X-Provider"] == "google"
        assert r.headers["X-Bytes"] == str(len(r.content))
        assert r.content == "mp3:google:Xin chào".encode("utf-8")

    def test_speak_fallback_exhausted(self):
        """Both providers failing is 502 FALLBACK_EXHAUSTED."""
        gateway = make_gateway(
            primary=FakeSpeechProvider("google", [ProviderError("bad", "google", 400)]),
            secondary=FakeSpeechProvider("openai", [ProviderError("bad", "openai", 400)]),
        )
        with client_for(gateway) as client:
            r = client.post("/v1/speak", json={"text": "Xin chào"})
        assert r.status_code == 502
        body = r.json()
        assert body["error"] == "FALLBACK_EXHAUSTED"
        assert body["message"] == "both providers failed"

    def test_speak_invalid_mode(self):
        """Unknown mode is 400."""
        with client_for(make_gateway()) as client:
            r = client.post("/v1/speak", json={"text": "Xin chào", "mode": "loud"})
        assert r.status_code == 400

    def test_speak_chunk(self):
        """Chunks walk the segments, then report completion."""
        config = make_config()
        config.translation.segment_max_chars = 15
        with client_for(make_gateway(config)) as client:
            body = {"text": "Hello there. How are you?", "language": "English"}
            first = client.post("/v1/speak/chunk", json={**body, "chunk_index": 0}).json()
            done = client.post("/v1/speak/chunk", json={**body, "chunk_index": 2}).json()

        assert first["ok"] is True
        assert first["completed"] is False
        assert first["total_chunks"] == 2
        assert base64.b64decode(first["audio"]) == b"mp3:google:Hello there."
        assert done == {"ok": True, "completed": True, "total_chunks": 2}

    def test_speak_chunk_negative_index(self):
        """A negative index fails schema validation."""
        with client_for(make_gateway()) as client:
            r = client.post("/v1/speak/chunk", json={"text": "Hi.", "chunk_index": -1})
        assert r.status_code == 400


class TestOpsEndpoints:
    """GET /health and /metrics."""

    def test_health(self):
        """Health reports providers and caches."""
        with client_for(make_gateway()) as client:
            r = client.get("/health")
        assert r.status_code == 200
        body = r.json()
        assert body["ok"] is True
        assert body["providers"] == {"openai": True, "google": True}
        assert "translation" in body["caches"]

    def test_metrics(self):
        """Prometheus exposition includes request counters."""
        with client_for(make_gateway()) as client:
            client.post("/v1/translate", json={"text": "Hello", "target_lang": "Vietnamese"})
            r = client.get("/metrics")
        assert r.status_code == 200
        assert "gateway_requests_total" in r.text
        assert 'operation="translate"' in r.text
