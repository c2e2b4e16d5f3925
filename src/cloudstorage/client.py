"""Client facade: option schema, command creation and execution."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Mapping, Optional, Tuple

from .api import ApiProvider, Service
from .command import Command, split_arguments
from .configuration import ClientConfig, ConfigurationResolver, Option
from .credentials import CredentialProvider, CredentialResolver, Credentials
from .exceptions import CloudStorageError, ConfigurationError, InvalidPaginatorError
from .handler_list import HandlerList
from .middleware import (
    DebugSettings,
    builder_middleware,
    debug_middleware,
    metrics_middleware,
    signer_middleware,
    validation_middleware,
)
from .paginator import ResourceIterator, ResultPaginator
from .protocol import RestSerializer
from .result import Result
from .retry import RetryPolicy, retry_middleware
from .signature import SignatureProvider
from .transport import HttpxHandler, WireHandler
from .validator import Validator

logger = logging.getLogger(__name__)


def _apply_api_provider(value: Any, args: Dict[str, Any], handlers: HandlerList) -> None:
    description = ApiProvider.resolve(value, args["service"], args["version"])
    args["api"] = Service.model_validate(description)


def _default_endpoint(args: Dict[str, Any]) -> str:
    host = args["api"].metadata.endpoint
    if not host:
        raise ConfigurationError(
            f'No endpoint is declared for the {args["service"]} service; pass the "endpoint" option',
            option="endpoint",
        )
    return f'{args["scheme"]}://{host}'


def _apply_endpoint(value: str, args: Dict[str, Any], handlers: HandlerList) -> None:
    if "://" not in value:
        value = f'{args["scheme"]}://{value}'
        args["endpoint"] = value
    headers = (args.get("http") or {}).get("headers")
    handlers.append("builder", builder_middleware(args["api"], RestSerializer(value), headers))


def _default_signature_version(args: Dict[str, Any]) -> str:
    return args["api"].metadata.signature_version or "hmac"


def _apply_profile(value: str, args: Dict[str, Any], handlers: HandlerList) -> None:
    args["credentials"] = CredentialProvider.ini(value)


def _apply_credentials(value: Any, args: Dict[str, Any], handlers: HandlerList) -> None:
    if value is True:
        raise ConfigurationError("credentials=True is not supported; pass False for anonymous access", option="credentials")
    resolver = CredentialResolver.from_value(value)
    args["credentials"] = resolver
    handlers.append(
        "signer",
        signer_middleware(
            args["service"],
            args["api"],
            resolver,
            args["signature_provider"],
            args["signature_version"],
        ),
    )


def _apply_retries(value: Any, args: Dict[str, Any], handlers: HandlerList) -> None:
    policy = RetryPolicy.from_option(value)
    if policy.max_attempts < 0:
        raise ConfigurationError("retries must be zero or a positive number of attempts", option="retries")
    args["retries"] = policy.max_attempts
    if not policy.enabled:
        return
    api: Service = args["api"]

    def is_idempotent(command: Command) -> bool:
        return api.get_operation(command.name).is_idempotent

    handlers.before("signer", "retry", retry_middleware(policy, is_idempotent))


def _apply_validate(value: Any, args: Dict[str, Any], handlers: HandlerList) -> None:
    if value is False:
        return
    constraints = value if isinstance(value, Mapping) else None
    handlers.before("builder", "validation", validation_middleware(args["api"], Validator(constraints)))


def _apply_debug(value: Any, args: Dict[str, Any], handlers: HandlerList) -> None:
    if value is False:
        return
    settings = DebugSettings.from_option(value)
    if settings.http:
        http = dict(args.get("http") or {})
        http.setdefault("debug", {"logfn": settings.logfn, "scrub_auth": settings.scrub_auth})
        args["http"] = http
    handlers.prepend("debug", debug_middleware(settings))


def _apply_metrics(value: bool, args: Dict[str, Any], handlers: HandlerList) -> None:
    if value:
        handlers.prepend("metrics", metrics_middleware(args["service"]))


def _apply_http_handler(value: Any, args: Dict[str, Any], handlers: HandlerList) -> None:
    args["handler"] = WireHandler(value, args["api"], args.get("http"))


def _default_handler(args: Dict[str, Any]) -> Any:
    return WireHandler(HttpxHandler(), args["api"], args.get("http"))


def _apply_handler(value: Any, args: Dict[str, Any], handlers: HandlerList) -> None:
    handlers.set_handler(value)


DEFAULT_OPTIONS: Tuple[Option, ...] = (
    Option("service", valid=("str",), required=True, internal=True,
           doc="Name of the service description the client talks to."),
    Option("exception_class", valid=("type",), default=CloudStorageError, internal=True,
           doc="Exception class through which every error surfaces."),
    Option("scheme", valid=("str",), default="https",
           doc="URI scheme of the endpoint. Plain http is strongly discouraged."),
    Option("version", valid=("str",), default="latest",
           doc="Version of the service description to load."),
    Option("api_provider", valid=("callable", "list"), default_fn=lambda args: ApiProvider.defaults(),
           fn=_apply_api_provider,
           doc="Provider (or list of providers) mapping (service, version) to a description."),
    Option("endpoint", valid=("str",), default_fn=_default_endpoint, fn=_apply_endpoint,
           doc="Full endpoint URL; defaults to the description's endpoint host."),
    Option("signature_provider", valid=("callable", "list"), default_fn=lambda args: SignatureProvider.defaults(),
           doc="Provider (or list) mapping (service, signature version) to a Signer."),
    Option("signature_version", valid=("str",), default_fn=_default_signature_version,
           doc="Signing version used unless an operation declares its own."),
    Option("profile", valid=("str",), fn=_apply_profile,
           doc="Credentials file profile; overrides the credentials option."),
    Option("credentials", valid=(Credentials, CredentialResolver, "mapping", "bool", "callable"),
           default_fn=lambda args: CredentialProvider.default_chain(), fn=_apply_credentials,
           doc="Credentials, a key/secret mapping, False for anonymous access, or a provider."),
    Option("retries", valid=("int", "mapping"), default=3, fn=_apply_retries,
           doc="Maximum attempts per command, or a retry mapping. 0 disables retries."),
    Option("validate", valid=("bool", "mapping"), default=True, fn=_apply_validate,
           doc="False disables parameter validation; a mapping toggles single constraints."),
    Option("debug", valid=("bool", "mapping"), fn=_apply_debug,
           doc="True or a mapping of logfn, stream_size, scrub_auth and http."),
    Option("metrics", valid=("bool",), default=False, fn=_apply_metrics,
           doc="Record prometheus command counters and latency."),
    Option("http", valid=("mapping",), default_fn=lambda args: {},
           doc="Transport options applied to every request (timeout, proxy, verify, ...)."),
    Option("http_handler", valid=("callable",), fn=_apply_http_handler,
           doc="async (request, options) -> httpx.Response; replaces the handler option."),
    Option("handler", valid=("callable",), default_fn=_default_handler, fn=_apply_handler,
           doc="Terminal async (command, request) -> Result handler."),
)


class Client:
    """Executes operations of one service description.

    Subclasses extend :meth:`get_arguments` to add or replace options.
    """

    def __init__(self, **options: Any) -> None:
        self._handlers = HandlerList()
        resolver = ConfigurationResolver(self.get_arguments())
        self._config: ClientConfig = resolver.resolve(options, self._handlers)
        self._api: Service = self._config["api"]
        logger.debug("Client for %s ready with middlewares %s", self._config["service"], self._handlers.names())

    @classmethod
    def get_arguments(cls) -> Tuple[Option, ...]:
        return DEFAULT_OPTIONS

    def get_config(self, option: Optional[str] = None) -> Any:
        if option is None:
            return self._config
        return self._config.get(option)

    def get_handler_list(self) -> HandlerList:
        return self._handlers

    def get_api(self) -> Service:
        return self._api

    def get_endpoint(self) -> str:
        return self._config["endpoint"]

    async def get_credentials(self) -> Credentials:
        return await self._config["credentials"].resolve()

    def get_command(self, name: str, args: Optional[Mapping[str, Any]] = None) -> Command:
        """Builds a command; ``@``-prefixed keys become per-call options.

        Recognised per-call options include ``@http`` (proxy, verify, timeout,
        connect_timeout, debug, delay, headers) and ``@retry_non_idempotent``.
        """
        self._api.get_operation(name)
        params, options = split_arguments(args or {})
        return Command(name, params, options)

    def execute_async(self, command: Command) -> "asyncio.Task[Result]":
        loop = asyncio.get_running_loop()
        return loop.create_task(self._run(command))

    def execute(self, command: Command) -> Result:
        async def settle() -> Result:
            return await self.execute_async(command)

        return asyncio.run(settle())

    async def _run(self, command: Command) -> Result:
        exception_class = self._config["exception_class"]
        try:
            handler = self._handlers.resolve()
            return await handler(command, None)
        except exception_class:
            raise
        except Exception as exc:
            error = exception_class(str(exc))
            error.command = command
            raise error from exc

    def get_paginator(
        self,
        name: str,
        args: Optional[Mapping[str, Any]] = None,
        page_size: Optional[int] = None,
    ) -> ResultPaginator:
        """Pages through ``name``; ``page_size`` is sent through the paginator's limit key."""
        if not self._api.has_paginator(name):
            raise InvalidPaginatorError(f"Operation {name} has no pagination configuration")
        self._api.get_operation(name)
        return ResultPaginator(self, name, args or {}, self._api.get_paginator_config(name), page_size)

    def get_iterator(
        self,
        name: str,
        args: Optional[Mapping[str, Any]] = None,
        page_size: Optional[int] = None,
    ) -> ResourceIterator:
        paginator = self.get_paginator(name, args, page_size)
        result_key = self._api.get_paginator_config(name).result_key
        if not result_key:
            raise InvalidPaginatorError(f"Operation {name} declares no result key to iterate")
        return ResourceIterator(paginator, result_key)


__all__ = ["Client", "DEFAULT_OPTIONS"]
