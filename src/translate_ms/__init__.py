"""
translate-ms: translation and speech gateway.

Sits between a bilingual study UI and third-party translation (LLM) and
text-to-speech providers. Requests are served from cache where possible,
concurrent identical calls are collapsed, credentials are resolved per
request, transient provider failures are retried with backoff, and speech
synthesis falls back between providers.
"""

__version__ = "0.1.0"
