from __future__ import annotations

import asyncio
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from cloudstorage.credentials import CredentialProvider, CredentialResolver, Credentials
from cloudstorage.exceptions import CredentialsError


def write_credentials(path: Path) -> Path:
    path.write_text(
        "[default]\nkey = default-key\nsecret = default-secret\n\n"
        "[backup]\nkey = backup-key\nsecret = backup-secret\n",
        encoding="utf-8",
    )
    return path


def test_env_provider(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CLOUDSTORAGE_KEY", "env-key")
    monkeypatch.setenv("CLOUDSTORAGE_SECRET", "env-secret")

    credentials = asyncio.run(CredentialProvider.env()())

    assert credentials == Credentials(key="env-key", secret="env-secret")


def test_env_provider_returns_none_when_unset(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("CLOUDSTORAGE_KEY", raising=False)
    monkeypatch.delenv("CLOUDSTORAGE_SECRET", raising=False)

    assert asyncio.run(CredentialProvider.env()()) is None


def test_ini_provider_reads_named_profile(tmp_path: Path) -> None:
    path = write_credentials(tmp_path / "credentials")

    credentials = asyncio.run(CredentialProvider.ini("backup", str(path))())

    assert credentials.key == "backup-key"
    assert credentials.secret == "backup-secret"


def test_ini_provider_uses_profile_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = write_credentials(tmp_path / "credentials")
    monkeypatch.setenv("CLOUDSTORAGE_SHARED_CREDENTIALS_FILE", str(path))
    monkeypatch.setenv("CLOUDSTORAGE_PROFILE", "backup")

    credentials = asyncio.run(CredentialProvider.ini()())

    assert credentials.key == "backup-key"


def test_ini_provider_missing_explicit_profile_fails(tmp_path: Path) -> None:
    path = write_credentials(tmp_path / "credentials")

    with pytest.raises(CredentialsError):
        asyncio.run(CredentialProvider.ini("nope", str(path))())


def test_chain_returns_first_match() -> None:
    calls: list[str] = []

    async def empty():
        calls.append("empty")
        return None

    def sync_mapping():
        calls.append("mapping")
        return {"key": "k", "secret": "s"}

    async def never():
        calls.append("never")
        return Credentials(key="x", secret="y")

    credentials = asyncio.run(CredentialProvider.chain(empty, sync_mapping, never)())

    assert credentials == Credentials(key="k", secret="s")
    assert calls == ["empty", "mapping"]


def test_resolver_from_values() -> None:
    anonymous = asyncio.run(CredentialResolver.from_value(False).resolve())
    mapped = asyncio.run(CredentialResolver.from_value({"key": "a", "secret": "b"}).resolve())

    assert anonymous.is_anonymous()
    assert mapped.key == "a"
    with pytest.raises(CredentialsError):
        CredentialResolver.from_value(42)


def test_resolver_caches_until_expired() -> None:
    calls = {"count": 0}
    now = datetime.now(timezone.utc)

    async def provider():
        calls["count"] += 1
        if calls["count"] == 1:
            return Credentials(key="old", secret="s", expiration=now - timedelta(seconds=1))
        return Credentials(key="new", secret="s", expiration=now + timedelta(hours=1))

    resolver = CredentialResolver(provider)

    first = asyncio.run(resolver.resolve())
    second = asyncio.run(resolver.resolve())
    third = asyncio.run(resolver.resolve())

    assert first.key == "old"
    assert second.key == "new"
    assert third is second
    assert calls["count"] == 2


def test_resolver_fails_when_chain_is_exhausted() -> None:
    async def nothing():
        return None

    with pytest.raises(CredentialsError):
        asyncio.run(CredentialResolver(nothing).resolve())


@pytest.mark.asyncio
async def test_concurrent_resolution_is_coalesced() -> None:
    calls = {"count": 0}
    now = datetime.now(timezone.utc)

    async def provider():
        calls["count"] += 1
        await asyncio.sleep(0.01)
        return Credentials(key=f"k{calls['count']}", secret="s", expiration=now + timedelta(hours=1))

    resolver = CredentialResolver(provider)
    results = await asyncio.gather(*(resolver.resolve() for _ in range(10)))

    assert calls["count"] == 1
    assert all(result is results[0] for result in results)


@pytest.mark.asyncio
async def test_expired_cache_refreshes_once_for_concurrent_callers() -> None:
    calls = {"count": 0}
    now = datetime.now(timezone.utc)

    async def provider():
        calls["count"] += 1
        await asyncio.sleep(0.01)
        if calls["count"] == 1:
            return Credentials(key="stale", secret="s", expiration=now - timedelta(seconds=1))
        return Credentials(key="fresh", secret="s", expiration=now + timedelta(hours=1))

    resolver = CredentialResolver(provider)
    await resolver.resolve()

    results = await asyncio.gather(*(resolver.resolve() for _ in range(5)))

    assert calls["count"] == 2
    assert {result.key for result in results} == {"fresh"}


def test_credentials_repr_hides_secret() -> None:
    assert "hunter2" not in repr(Credentials(key="k", secret="hunter2"))


def test_refresh_is_shared_across_threads_and_loops() -> None:
    calls = {"count": 0}
    barrier = threading.Barrier(4)
    results: list[Credentials] = []

    async def provider():
        calls["count"] += 1
        await asyncio.sleep(0.2)
        return Credentials(key="shared", secret="s")

    resolver = CredentialResolver(provider)

    def worker() -> None:
        barrier.wait()
        results.append(asyncio.run(resolver.resolve()))

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert calls["count"] == 1
    assert [result.key for result in results] == ["shared"] * 4


@pytest.mark.asyncio
async def test_cancelled_caller_does_not_cancel_shared_refresh() -> None:
    async def provider():
        await asyncio.sleep(0.05)
        return Credentials(key="k", secret="s")

    resolver = CredentialResolver(provider)
    first = asyncio.ensure_future(resolver.resolve())
    second = asyncio.ensure_future(resolver.resolve())
    await asyncio.sleep(0)
    second.cancel()

    assert (await first).key == "k"
    with pytest.raises(asyncio.CancelledError):
        await second


@pytest.mark.parametrize(
    "expiration",
    [
        datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(hours=1),
        int(datetime.now(timezone.utc).timestamp()) + 3600,
        (datetime.now(timezone.utc) + timedelta(hours=1)).isoformat().replace("+00:00", "Z"),
    ],
)
def test_expiration_is_normalized_to_utc(expiration) -> None:
    credentials = Credentials.from_mapping({"key": "k", "secret": "s", "expiration": expiration})

    assert credentials.expiration.tzinfo is not None
    assert not credentials.is_expired()


def test_naive_expiration_survives_repeated_resolution() -> None:
    resolver = CredentialResolver.from_value(
        {"key": "k", "secret": "s", "expiration": datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(hours=1)}
    )

    async def resolve_twice():
        await resolver.resolve()
        return await resolver.resolve()

    assert asyncio.run(resolve_twice()).key == "k"


def test_invalid_expiration_is_rejected() -> None:
    with pytest.raises(CredentialsError):
        Credentials.from_mapping({"key": "k", "secret": "s", "expiration": "tomorrow"})
    with pytest.raises(CredentialsError):
        Credentials(key="k", secret="s", expiration=[2030])
