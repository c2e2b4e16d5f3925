"""REST serialization of commands and parsing of responses."""

from __future__ import annotations

import json
import re
from typing import Any, Dict, Mapping, Optional
from urllib.parse import quote

import httpx

from .api import Operation, Shape
from .exceptions import ServiceError
from .result import Result

URI_PLACEHOLDER = re.compile(r"\{([^}+]+)(\+)?\}")


def _format_scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class RestSerializer:
    """Turns a command's parameters into an ``httpx.Request``.

    Members bound to ``uri``, ``querystring`` or ``header`` go to those parts
    of the request; a ``body`` member becomes the raw payload and any unbound
    members are sent as a JSON object.
    """

    def __init__(self, endpoint: str) -> None:
        self._endpoint = endpoint.rstrip("/")

    def serialize(
        self,
        operation: Operation,
        params: Mapping[str, Any],
        headers: Optional[Mapping[str, str]] = None,
    ) -> httpx.Request:
        uri_values: Dict[str, str] = {}
        query: Dict[str, str] = {}
        request_headers: Dict[str, str] = dict(headers or {})
        json_body: Dict[str, Any] = {}
        payload: Any = None

        for name, shape in operation.input.members.items():
            if name not in params or params[name] is None:
                continue
            value = params[name]
            wire = shape.wire_name(name)
            if shape.location == "uri":
                uri_values[wire] = _format_scalar(value)
            elif shape.location == "querystring":
                query[wire] = _format_scalar(value)
            elif shape.location == "header":
                request_headers[wire] = _format_scalar(value)
            elif shape.location == "body":
                payload = value
            else:
                json_body[wire] = value

        path = URI_PLACEHOLDER.sub(lambda match: self._expand(match, uri_values), operation.http.request_uri)
        path = re.sub(r"/{2,}", "/", path)
        url = f"{self._endpoint}{path}"

        content: Optional[bytes] = None
        if payload is not None:
            # Streams are buffered so the body can be hashed and re-sent on retry.
            if hasattr(payload, "read"):
                payload = payload.read()
            content =payload.encode("utf-8") if isinstance(payload, str) else bytes(payload)
        elif json_body:
            content = json.dumps(json_body, separators=(",", ":")).encode("utf-8")
            request_headers.setdefault("Content-Type", "application/json")

        return httpx.Request(
            operation.http.method.upper(),
            url,
            params=query or None,
            headers=request_headers,
            content=content,
        )

    @staticmethod
    def _expand(match: "re.Match[str]", values: Mapping[str, str]) -> str:
        name, greedy = match.group(1), match.group(2)
        value = values.get(name, "")
        # Greedy labels keep their slashes so keys map onto nested paths.
        return quote(value, safe="/~" if greedy else "~")


def _coerce(value: str, shape: Shape) -> Any:
    if shape.type == "integer":
        return int(value)
    if shape.type in ("float", "double"):
        return float(value)
    if shape.type == "boolean":
        return value.lower() == "true"
    return value


def parse_response(operation: Operation, request: httpx.Request, response: httpx.Response) -> Result:
    data: Dict[str, Any] = {}
    body = response.content
    if body:
        content_type = response.headers.get("Content-Type", "")
        if "json" in content_type:
            parsed = json.loads(body)
            if isinstance(parsed, Mapping):
                data.update(parsed)
            else:
                data["Body"] = parsed
        else:
            data["Body"] = body

    for name, shape in operation.output.members.items():
        if shape.location == "header":
            raw = response.headers.get(shape.wire_name(name))
            if raw is not None:
                data[name] = _coerce(raw, shape)
        elif shape.location == "statusCode":
            data[name] = response.status_code

    metadata = {
        "status_code": response.status_code,
        "headers": dict(response.headers),
        "effective_uri": str(request.url),
    }
    return Result(data, metadata)


def parse_error(request: httpx.Request, response: httpx.Response, command: Any = None) -> ServiceError:
    code: Optional[str] = None
    message = response.reason_phrase or "Service error"
    if response.content:
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if isinstance(payload, Mapping):
            raw_code = payload.get("code") or payload.get("Code") or payload.get("error")
            code = str(raw_code) if raw_code is not None else None
            message = payload.get("message") or payload.get("msg") or payload.get("Message") or message
    return ServiceError(
        message,
        status=response.status_code,
        code=code,
        request_id=response.headers.get("x-request-id"),
        response=response,
        command=command,
    )


__all__ = ["RestSerializer", "parse_error", "parse_response"]
