"""Credentials, built-in credential providers and the caching resolver."""

from __future__ import annotations

import asyncio
import configparser
import inspect
import logging
import os
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable, Mapping, Optional

from .exceptions import CredentialsError

logger = logging.getLogger(__name__)

ENV_KEY = "CLOUDSTORAGE_KEY"
ENV_SECRET = "CLOUDSTORAGE_SECRET"
ENV_PROFILE = "CLOUDSTORAGE_PROFILE"
ENV_CREDENTIALS_FILE = "CLOUDSTORAGE_SHARED_CREDENTIALS_FILE"

CredentialSource = Callable[[], Awaitable[Optional["Credentials"]]]


def _as_utc(value: Any) -> datetime:
    """Accepts aware or naive datetimes (naive taken as UTC), epoch seconds and ISO 8601 strings."""
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, timezone.utc)
    if isinstance(value, str):
        try:
            return _as_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
        except ValueError as exc:
            raise CredentialsError(f"Invalid credential expiration {value!r}") from exc
    raise CredentialsError(f"Unsupported credential expiration type {type(value).__name__}")


@dataclass(frozen=True)
class Credentials:
    key: str
    secret: str
    expiration: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.expiration is not None:
            object.__setattr__(self, "expiration", _as_utc(self.expiration))

    @classmethod
    def anonymous(cls) -> "Credentials":
        return cls(key="", secret="")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Credentials":
        if "key" not in data or "secret" not in data:
            raise CredentialsError("Credential mappings must contain 'key' and 'secret'")
        return cls(key=str(data["key"]), secret=str(data["secret"]), expiration=data.get("expiration"))

    def is_anonymous(self) -> bool:
        return not self.key and not self.secret

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expiration is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now >= self.expiration

    def __repr__(self) -> str:
        return f"Credentials(key={self.key!r}, secret='***', expiration={self.expiration!r})"


class CredentialProvider:
    """Factories for provider callables.

    A provider is an async callable returning :class:`Credentials` or
    ``None`` when it has nothing to offer.
    """

    @staticmethod
    def static(credentials: Credentials) -> CredentialSource:
        async def provider() -> Optional[Credentials]:
            return credentials

        return provider

    @staticmethod
    def env() -> CredentialSource:
        async def provider() -> Optional[Credentials]:
            key = os.environ.get(ENV_KEY)
            secret = os.environ.get(ENV_SECRET)
            if key and secret:
                return Credentials(key=key, secret=secret)
            return None

        return provider

    @staticmethod
    def ini(profile: Optional[str] = None, path: Optional[str] = None) -> CredentialSource:
        """Reads ``key``/``secret`` from a section of an INI credentials file."""

        async def provider() -> Optional[Credentials]:
            name = profile or os.environ.get(ENV_PROFILE) or "default"
            filename = Path(path or os.environ.get(ENV_CREDENTIALS_FILE) or Path.home() / ".cloudstorage" / "credentials")
            if not filename.exists():
                if profile:
                    raise CredentialsError(f"Credentials file not found: {filename}")
                return None
            parser = configparser.ConfigParser()
            parser.read(filename, encoding="utf-8")
            if not parser.has_section(name):
                if profile:
                    raise CredentialsError(f"Profile '{name}' not found in {filename}")
                return None
            section = parser[name]
            if not section.get("key") or not section.get("secret"):
                raise CredentialsError(f"Profile '{name}' in {filename} is missing key or secret")
            return Credentials(key=section["key"], secret=section["secret"])

        return provider

    @staticmethod
    def chain(*providers: Callable[[], Any]) -> CredentialSource:
        if not providers:
            raise ValueError("A credential provider chain needs at least one provider")

        async def provider() -> Optional[Credentials]:
            for candidate in providers:
                credentials = await _call_provider(candidate)
                if credentials is not None:
                    return credentials
            return None

        return provider

    @staticmethod
    def default_chain() -> CredentialSource:
        return CredentialProvider.chain(CredentialProvider.env(), CredentialProvider.ini())


async def _call_provider(provider: Callable[[], Any]) -> Optional[Credentials]:
    value = provider()
    if inspect.isawaitable(value):
        value = await value
    if value is None or isinstance(value, Credentials):
        return value
    if isinstance(value, Mapping):
        return Credentials.from_mapping(value)
    raise CredentialsError(f"Credential provider returned unsupported value {type(value).__name__}")


class CredentialResolver:
    """Caches the last credentials a provider produced.

    Concurrent callers that find the cache empty or expired share a single
    in-flight refresh, whichever thread or event loop they run on. The first
    caller runs the provider on its own loop; the others wait on the shared
    ``concurrent.futures.Future``.
    """

    def __init__(self, provider: Callable[[], Any]) -> None:
        self._provider = provider
        self._lock = threading.Lock()
        self._cached: Optional[Credentials] = None
        self._inflight: Optional[Future] = None
        self._refresh_task: Optional[asyncio.Task] = None

    @classmethod
    def from_value(cls, value: Any) -> "CredentialResolver":
        if isinstance(value, CredentialResolver):
            return value
        if value is False:
            return cls(CredentialProvider.static(Credentials.anonymous()))
        if isinstance(value, Credentials):
            return cls(CredentialProvider.static(value))
        if isinstance(value, Mapping):
            return cls(CredentialProvider.static(Credentials.from_mapping(value)))
        if callable(value):
            return cls(value)
        raise CredentialsError(f"Unsupported credentials value {type(value).__name__}")

    async def resolve(self) -> Credentials:
        loop = asyncio.get_running_loop()
        with self._lock:
            cached = self._cached
            if cached is not None and not cached.is_expired():
                return cached
            future = self._inflight
            if future is None:
                future = Future()
                self._inflight = future
                self._refresh_task = loop.create_task(self._refresh(future))
        # Cancelling one caller leaves the shared refresh running.
        return await asyncio.shield(asyncio.wrap_future(future))

    def invalidate(self) -> None:
        with self._lock:
            self._cached = None

    async def _refresh(self, future: Future) -> None:
        logger.debug("Refreshing credentials")
        try:
            credentials = await _call_provider(self._provider)
            if credentials is None:
                raise CredentialsError(
                    "Could not resolve credentials from the provider chain. "
                    f"Set {ENV_KEY}/{ENV_SECRET}, a profile, or pass credentials explicitly."
                )
        except asyncio.CancelledError:
            self._settle(future, error=CredentialsError("Credential refresh was cancelled"))
            raise
        except Exception as exc:
            self._settle(future, error=exc)
        else:
            self._settle(future, credentials=credentials)

    def _settle(
        self,
        future: Future,
        credentials: Optional[Credentials] = None,
        error: Optional[BaseException] = None,
    ) -> None:
        with self._lock:
            if credentials is not None:
                self._cached = credentials
            if self._inflight is future:
                self._inflight = None
            self._refresh_task = None
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(credentials)


__all__ = [
    "CredentialProvider",
    "CredentialResolver",
    "Credentials",
    "ENV_CREDENTIALS_FILE",
    "ENV_KEY",
    "ENV_PROFILE",
    "ENV_SECRET",
]
