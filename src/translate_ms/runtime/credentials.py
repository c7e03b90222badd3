"""
Per-request credential resolution.

For each provider the resolver picks, in order:
    1. the user's own key, if a user id is known and the stored key is
       well-formed
    2. the system default key from configuration
    3. nothing: ConfigurationError, before any network call

Resolution is not cached. A key a user rotates takes effect on their
very next request.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Mapping, Optional, Protocol

from translate_ms.core.logging import debug, get_logger, warn
from translate_ms.core.errors import ConfigurationError

_LOG = get_logger("translate-ms.credentials")


class Provider(str, Enum):
    OPENAI = "openai"
    GOOGLE = "google"


class CredentialScope(str, Enum):
    USER = "user"
    SYSTEM = "system"


@dataclass(frozen=True)
class Credential:
    """An API secret and where it came from. Never persisted by the gateway."""
    provider: Provider
    scope: CredentialScope
    secret: str

    def __repr__(self) -> str:
        return f"Credential(provider={self.provider.value}, scope={self.scope.value}, secret=***)"


class CredentialStore(Protocol):
    """Where user keys live (decryption is the store's job)."""

    async def read_credential(self, user_id: str, provider: Provider) -> Optional[str]:
        ...


class InMemoryCredentialStore:
    """
    Dict-backed store: ``{user_id: {"openai": "sk-...", "google": "..."}}``.

    Also used to seed development users from settings.yaml.
    """

    def __init__(self, keys: Optional[Mapping[str, Mapping[str, str]]] = None):
        self._keys: Dict[str, Dict[str, str]] = {
            uid: dict(per_provider) for uid, per_provider in (keys or {}).items()
        }

    def put(self, user_id: str, provider: Provider, secret: str) -> None:
        self._keys.setdefault(user_id, {})[provider.value] = secret

    def remove(self, user_id: str, provider: Provider) -> None:
        self._keys.get(user_id, {}).pop(provider.value, None)

    async def read_credential(self, user_id: str, provider: Provider) -> Optional[str]:
        return self._keys.get(user_id, {}).get(provider.value)


def is_well_formed(secret: Optional[str]) -> bool:
    """A usable secret is a non-empty string without whitespace."""
    return isinstance(secret, str) and bool(secret) and not any(c.isspace() for c in secret)


class CredentialResolver:
    """
    Chooses the credential for one provider for one request.

    Args:
        store: User credential store.
        system_keys: System default secret per provider (may be missing).
    """

    def __init__(self, store: CredentialStore, system_keys: Mapping[Provider, Optional[str]]):
        self._store = store
        self._system_keys = dict(system_keys)

    async def try_resolve(self, user_id: Optional[str], provider: Provider) -> Optional[Credential]:
        """Like resolve() but returns None instead of raising."""
        if user_id:
            try:
                secret = await self._store.read_credential(user_id, provider)
            except Exception as e:
                # an unreadable user key is treated like a missing one
                warn(_LOG, "user_credential_read_error", provider=provider.value, error=str(e))
                secret = None
            if is_well_formed(secret):
                debug(_LOG, "credential_resolved", provider=provider.value, scope="user")
                return Credential(provider, CredentialScope.USER, secret)
            if secret is not None:
                warn(_LOG, "user_credential_malformed", provider=provider.value)

        system_secret = self._system_keys.get(provider)
        if is_well_formed(system_secret):
            debug(_LOG, "credential_resolved", provider=provider.value, scope="system")
            return Credential(provider, CredentialScope.SYSTEM, system_secret)
        return None

    async def resolve(self, user_id: Optional[str], provider: Provider) -> Credential:
        """
        Resolve the credential for ``provider``.

        Raises:
            ConfigurationError: If neither a user nor a system key exists.
        """
        credential = await self.try_resolve(user_id, provider)
        if credential is None:
            raise ConfigurationError(
                f"No API key configured for provider '{provider.value}'",
                details={"provider": provider.value},
            )
        return credential
