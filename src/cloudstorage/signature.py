"""Request signers and the provider chain that selects one."""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
from email.utils import formatdate
from typing import Callable, Dict, Iterable, Optional, Protocol, Union, runtime_checkable
from urllib.parse import parse_qsl, quote

import httpx

from .credentials import Credentials
from .exceptions import UnresolvedSignatureError

logger = logging.getLogger(__name__)

AUTHORIZATION = "Authorization"


@runtime_checkable
class Signer(Protocol):
    def sign_request(self, request: httpx.Request, credentials: Credentials) -> httpx.Request:
        ...


def _with_header(request: httpx.Request, name: str, value: str) -> httpx.Request:
    headers = httpx.Headers(request.headers)
    # Headers.__setitem__ collapses any existing values for the name into one.
    headers[name] = value
    return httpx.Request(
        request.method,
        request.url,
        headers=headers,
        content=request.content,
        extensions=request.extensions,
    )


class BasicSigner:
    """HTTP Basic authorization over ``key:secret``.

    The secret travels base64-encoded on every request; only use it where
    the service offers nothing better.
    """

    def sign_request(self, request: httpx.Request, credentials: Credentials) -> httpx.Request:
        token = base64.b64encode(f"{credentials.key}:{credentials.secret}".encode("utf-8")).decode("ascii")
        return _with_header(request, AUTHORIZATION, f"Basic {token}")


class HmacSigner:
    """HMAC-SHA256 over a canonical form of the request.

    The string to sign is ``METHOD\\nPATH\\nQUERY\\nDATE\\nCONTENT-SHA256``
    where QUERY is the sorted, percent-encoded query string. A ``Date``
    header is added when the request does not carry one.
    """

    algorithm = "CS-HMAC-SHA256"

    def __init__(self, clock: Optional[Callable[[], str]] = None) -> None:
        self._clock = clock or (lambda: formatdate(usegmt=True))

    def canonical_request(self, request: httpx.Request, date: str) -> str:
        query = sorted(parse_qsl(request.url.query.decode("ascii"), keep_blank_values=True))
        canonical_query = "&".join(f"{quote(k, safe='')}={quote(v, safe='')}" for k, v in query)
        payload_hash = hashlib.sha256(request.content).hexdigest()
        return "\n".join(
            [
                request.method.upper(),
                quote(request.url.path or "/", safe="/~"),
                canonical_query,
                date,
                payload_hash,
            ]
        )

    def signature(self, secret: str, canonical: str) -> str:
        return hmac.new(secret.encode("utf-8"), canonical.encode("utf-8"), hashlib.sha256).hexdigest()

    def sign_request(self, request: httpx.Request, credentials: Credentials) -> httpx.Request:
        date = request.headers.get("Date") or self._clock()
        if "Date" not in request.headers:
            request = _with_header(request, "Date", date)
        canonical = self.canonical_request(request, date)
        signature = self.signature(credentials.secret, canonical)
        value = f"{self.algorithm} Credential={credentials.key}, Signature={signature}"
        return _with_header(request, AUTHORIZATION, value)


SignatureSource = Callable[[str, str], Optional[Signer]]


class SignatureProvider:
    """Chain-of-responsibility resolution of ``(service, version) -> Signer``."""

    @staticmethod
    def resolve(
        providers: Union[SignatureSource, Iterable[SignatureSource]],
        service: str,
        version: str,
    ) -> Signer:
        chain = [providers] if callable(providers) else list(providers)
        for provider in chain:
            signer = provider(service, version)
            if signer is not None:
                return signer
        raise UnresolvedSignatureError(
            f"Unable to resolve a signature for {service}/{version}. "
            "Valid signature versions include basic and hmac."
        )

    @staticmethod
    def version() -> SignatureSource:
        signers: Dict[str, Callable[[], Signer]] = {
            "basic": BasicSigner,
            "hmac": HmacSigner,
        }

        def provider(service: str, version: str) -> Optional[Signer]:
            factory = signers.get(version)
            return factory() if factory is not None else None

        return provider

    @staticmethod
    def defaults() -> SignatureSource:
        return SignatureProvider.version()


__all__ = [
    "AUTHORIZATION",
    "BasicSigner",
    "HmacSigner",
    "SignatureProvider",
    "SignatureSource",
    "Signer",
]
