"""Cursor-driven iteration over paginated operations."""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Dict, Iterator, Mapping, Optional

from .api import PaginatorConfig
from .command import Command
from .exceptions import InvalidPaginatorError
from .result import Result

logger = logging.getLogger(__name__)


class ResultPaginator:
    """Lazy, single-use sequence of result pages.

    Each step executes the operation with the current token merged into the
    parameters. Iteration ends after a page that carries no token (or the
    configured ``end_token``); an empty page that still carries a token is
    followed like any other.
    """

    def __init__(
        self,
        client: Any,
        operation: str,
        args: Mapping[str, Any],
        config: PaginatorConfig,
        page_size: Optional[int] = None,
    ) -> None:
        self._client = client
        self._operation = operation
        self._args: Dict[str, Any] = dict(args)
        if page_size is not None:
            if not config.limit_key:
                raise InvalidPaginatorError(f"Operation {operation} does not support a page size")
            self._args[config.limit_key] = page_size
        self._config = config
        self._token: Optional[Any] = None
        self._exhausted = False
        self._pages = 0

    @property
    def next_token(self) -> Optional[Any]:
        return self._token

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    def _next_command(self) -> Command:
        args = dict(self._args)
        if self._token is not None:
            args[self._config.input_token] = self._token
        return self._client.get_command(self._operation, args)

    def _advance(self, result: Result) -> None:
        self._pages += 1
        token = result.search(self._config.output_token)
        if token in (None, "", []) or (self._config.end_token is not None and token == self._config.end_token):
            logger.debug("%s pagination finished after %s page(s)", self._operation, self._pages)
            self._token = None
            self._exhausted = True
        else:
            self._token = token

    def __iter__(self) -> Iterator[Result]:
        return self

    def __next__(self) -> Result:
        if self._exhausted:
            raise StopIteration
        result = self._client.execute(self._next_command())
        self._advance(result)
        return result

    def __aiter__(self) -> AsyncIterator[Result]:
        return self

    async def __anext__(self) -> Result:
        if self._exhausted:
            raise StopAsyncIteration
        result = await self._client.execute_async(self._next_command())
        self._advance(result)
        return result

    def search(self, key: Optional[str] = None) -> Iterator[Any]:
        """Yields every item under ``key`` (default: the result key) across pages."""
        key = key or self._config.result_key
        if key is None:
            raise ValueError(f"No result key configured for {self._operation}")
        for page in self:
            yield from page.search(key) or []


class ResourceIterator:
    """Flattens the paginator's result key into individual items."""

    def __init__(self, paginator: ResultPaginator, result_key: str) -> None:
        self._paginator = paginator
        self._result_key = result_key

    def __iter__(self) -> Iterator[Any]:
        return self._paginator.search(self._result_key)

    async def __aiter__(self) -> AsyncIterator[Any]:
        async for page in self._paginator:
            for item in page.search(self._result_key) or []:
                yield item


__all__ = ["ResourceIterator", "ResultPaginator"]
