"""Middlewares installed by the client option schema."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, Optional, Union

from prometheus_client import Counter, Histogram

from .api import Service
from .credentials import CredentialResolver
from .handler_list import Handler, Middleware
from .protocol import RestSerializer
from .signature import SignatureProvider, SignatureSource
from .validator import Validator

COMMAND_COUNTER = Counter(
    "cloudstorage_commands_total",
    "Commands executed by cloudstorage clients",
    ["service", "operation", "outcome"],
)
COMMAND_LATENCY = Histogram(
    "cloudstorage_command_latency_seconds",
    "Command execution latency",
    ["service", "operation"],
)


def validation_middleware(api: Service, validator: Validator) -> Middleware:
    def middleware(handler: Handler) -> Handler:
        async def validation_handler(command: Any, request: Any) -> Any:
            validator.validate(api.get_operation(command.name), command.params)
            return await handler(command, request)

        return validation_handler

    return middleware


def builder_middleware(
    api: Service,
    serializer: RestSerializer,
    headers: Optional[Mapping[str, str]] = None,
) -> Middleware:
    """Serializes the command into the request handed down the chain."""

    def middleware(handler: Handler) -> Handler:
        async def builder_handler(command: Any, request: Any) -> Any:
            operation = api.get_operation(command.name)
            extra = {**(headers or {}), **(command.http_options.get("headers") or {})}
            built = serializer.serialize(operation, command.params, extra)
            return await handler(command, built)

        return builder_handler

    return middleware


def signer_middleware(
    service: str,
    api: Service,
    credentials: CredentialResolver,
    signature_provider: Union[SignatureSource, Iterable[SignatureSource]],
    signature_version: str,
) -> Middleware:
    """Resolves credentials and a signer for every attempt and signs the request.

    Operations declared with ``authtype: none`` and anonymous credentials
    pass through unsigned.
    """

    def middleware(handler: Handler) -> Handler:
        async def signer_handler(command: Any, request: Any) -> Any:
            operation = api.get_operation(command.name)
            if not operation.requires_auth:
                return await handler(command, request)
            resolved = await credentials.resolve()
            if resolved.is_anonymous():
                return await handler(command, request)
            version = operation.signature_version or signature_version
            signer = SignatureProvider.resolve(signature_provider, service, version)
            return await handler(command, signer.sign_request(request, resolved))

        return signer_handler

    return middleware


@dataclass(frozen=True)
class DebugSettings:
    logfn: Callable[[str], Any]
    stream_size: int = 524288
    scrub_auth: bool = True
    http: bool = True

    @classmethod
    def from_option(cls, value: Union[bool, Mapping[str, Any]]) -> "DebugSettings":
        options = value if isinstance(value, Mapping) else {}
        return cls(
            logfn=options.get("logfn") or logging.getLogger("cloudstorage.debug").info,
            stream_size=int(options.get("stream_size", 524288)),
            scrub_auth=bool(options.get("scrub_auth", True)),
            http=bool(options.get("http", True)),
        )

    def describe(self, value: Any) -> Any:
        if hasattr(value, "read"):
            return "<stream>"
        if isinstance(value, (bytes, bytearray)) and len(value) > self.stream_size:
            return f"<{len(value)} bytes>"
        return value


def debug_middleware(settings: DebugSettings) -> Middleware:
    def middleware(handler: Handler) -> Handler:
        async def debug_handler(command: Any, request: Any) -> Any:
            params = {key: settings.describe(value) for key, value in command.params.items()}
            settings.logfn(f"-> Entering {command.name} params={params}")
            start = time.perf_counter()
            try:
                result = await handler(command, request)
            except Exception as exc:
                elapsed = (time.perf_counter() - start) * 1000
                settings.logfn(f"<- {command.name} failed after {elapsed:.1f}ms: {exc!r}")
                raise
            elapsed = (time.perf_counter() - start) * 1000
            status = result.metadata.get("status_code")
            settings.logfn(f"<- {command.name} status={status} in {elapsed:.1f}ms")
            return result

        return debug_handler

    return middleware


def metrics_middleware(service: str) -> Middleware:
    def middleware(handler: Handler) -> Handler:
        async def metrics_handler(command: Any, request: Any) -> Any:
            outcome = "error"
            with COMMAND_LATENCY.labels(service=service, operation=command.name).time():
                try:
                    result = await handler(command, request)
                    outcome = "success"
                    return result
                finally:
                    COMMAND_COUNTER.labels(service=service, operation=command.name, outcome=outcome).inc()

        return metrics_handler

    return middleware


__all__ = [
    "COMMAND_COUNTER",
    "COMMAND_LATENCY",
    "DebugSettings",
    "builder_middleware",
    "debug_middleware",
    "metrics_middleware",
    "signer_middleware",
    "validation_middleware",
]
