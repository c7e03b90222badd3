"""
FastAPI Dependency Injection Providers.

Route handlers never build their own collaborators. The Gateway is
created once by ``create_app()`` and kept on ``app.state``; handlers get
it through ``Depends(get_gateway)``.

Lifecycle:
    1. create_app() calls get_settings() and Gateway.from_settings()
    2. The gateway is stored on app.state.gateway
    3. Each request resolves get_gateway() -> the same instance
    4. Lifespan shutdown awaits gateway.aclose()

Settings path: ``$TRANSLATE_MS_SETTINGS`` or ``config/settings.yaml``.
A missing file means "all defaults".
"""
from __future__ import annotations

import os
from functools import lru_cache
from typing import Optional

from fastapi import Header, Request

from translate_ms.core.config import Settings, load_settings
from translate_ms.core.logging import get_logger, warn
from translate_ms.services.gateway import Gateway

_LOG = get_logger("translate-ms.api")

DEFAULT_SETTINGS_PATH = "config/settings.yaml"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Load and cache application settings.

    Returns:
        Settings loaded from YAML, or empty settings (all defaults) when
        the file does not exist.
    """
    path = os.getenv("TRANSLATE_MS_SETTINGS", DEFAULT_SETTINGS_PATH)
    try:
        return load_settings(path)
    except FileNotFoundError:
        warn(_LOG, "settings_missing", path=path)
        return Settings(raw={})


def get_gateway(request: Request) -> Gateway:
    """The application's Gateway (set up by create_app)."""
    return request.app.state.gateway


def get_user_id(x_user_id: Optional[str] = Header(default=None)) -> Optional[str]:
    """
    Signed-in user from the ``X-User-Id`` header.

    Authentication happens upstream of this service; the header only
    selects whose API keys and usage records apply.
    """
    if x_user_id is None or not x_user_id.strip():
        return None
    return x_user_id.strip()
