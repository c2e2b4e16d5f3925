"""Transport handlers: the pluggable HTTP exchange and the terminal handler."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

import httpx

from .api import Service
from .exceptions import ConfigurationError, TransportError
from .protocol import parse_error, parse_response
from .result import Result
from .signature import AUTHORIZATION

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0

HttpHandler = Callable[[httpx.Request, Mapping[str, Any]], Awaitable[httpx.Response]]


def _scrubbed_headers(headers: httpx.Headers, scrub_auth: bool) -> Dict[str, str]:
    out = dict(headers)
    if scrub_auth:
        for name in list(out):
            if name.lower() == AUTHORIZATION.lower():
                out[name] = "***"
    return out


def _debug_hooks(settings: Any) -> Dict[str, list]:
    options = settings if isinstance(settings, Mapping) else {}
    logfn = options.get("logfn") or logging.getLogger("cloudstorage.debug").info
    scrub_auth = options.get("scrub_auth", True)

    async def log_request(request: httpx.Request) -> None:
        logfn(f"> {request.method} {request.url} headers={_scrubbed_headers(request.headers, scrub_auth)}")

    async def log_response(response: httpx.Response) -> None:
        logfn(f"< {response.status_code} {response.request.url} headers={dict(response.headers)}")

    return {"request": [log_request], "response": [log_response]}


class HttpxHandler:
    """Sends a request with a short-lived ``httpx.AsyncClient``.

    Options: ``timeout``, ``connect_timeout``, ``verify``, ``proxy`` and
    ``debug``. A fresh client per exchange keeps connection state bound to
    the event loop that is awaiting it.
    """

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self._transport = transport

    async def __call__(self, request: httpx.Request, options: Mapping[str, Any]) -> httpx.Response:
        timeout = options.get("timeout", DEFAULT_TIMEOUT)
        client_kwargs: Dict[str, Any] = {
            "timeout": httpx.Timeout(timeout, connect=options.get("connect_timeout", timeout)),
        }
        if self._transport is not None:
            client_kwargs["transport"] = self._transport
        if "verify" in options:
            client_kwargs["verify"] = options["verify"]
        if options.get("proxy"):
            client_kwargs["proxy"] = options["proxy"]
        if options.get("debug"):
            client_kwargs["event_hooks"] = _debug_hooks(options["debug"])

        async with httpx.AsyncClient(**client_kwargs) as client:
            try:
                return await client.send(request)
            except httpx.TimeoutException as exc:
                raise TransportError(f"Request to {request.url} timed out: {exc}", request=request) from exc
            except httpx.TransportError as exc:
                raise TransportError(f"Error sending request to {request.url}: {exc}", request=request) from exc


class WireHandler:
    """Terminal handler: sends the built request and parses the response."""

    def __init__(self, http_handler: HttpHandler, api: Service, http_options: Optional[Mapping[str, Any]] = None) -> None:
        self._http_handler = http_handler
        self._api = api
        self._http_options = dict(http_options or {})

    async def __call__(self, command: Any, request: Optional[httpx.Request]) -> Result:
        if request is None:
            raise ConfigurationError(
                "No request was built for the command; the builder middleware is missing",
                option="handler",
                command=command,
            )
        options = {**self._http_options, **command.http_options}
        delay = options.get("delay")
        if delay:
            await asyncio.sleep(delay / 1000.0)

        response = await self._http_handler(request, options)
        if response.status_code >= 400:
            logger.debug("%s returned HTTP %s", command.name, response.status_code)
            raise parse_error(request, response, command)
        operation = self._api.get_operation(command.name)
        return parse_response(operation, request, response)


__all__ = ["DEFAULT_TIMEOUT", "HttpHandler", "HttpxHandler", "WireHandler"]
