from __future__ import annotations

import io
import json

import httpx

from cloudstorage.api import Service
from cloudstorage.protocol import RestSerializer, parse_error, parse_response


def test_serializer_binds_locations(storage_api) -> None:
    service = Service.model_validate(storage_api)
    serializer = RestSerializer("https://storage.example.com/")

    request = serializer.serialize(
        service.get_operation("ListObjects"),
        {"Bucket": "photos", "Prefix": "2024/summer trip", "Limit": 50},
    )

    assert request.method == "GET"
    assert request.url.path == "/photos/2024/summer trip"
    assert request.url.raw_path == b"/photos/2024/summer%20trip"
    assert request.headers["x-list-limit"] == "50"


def test_serializer_collapses_missing_uri_labels(storage_api) -> None:
    service = Service.model_validate(storage_api)

    request = RestSerializer("https://storage.example.com").serialize(service.get_operation("ListObjects"), {"Bucket": "photos"})

    assert str(request.url) == "https://storage.example.com/photos/"


def test_serializer_raw_payload_and_json_body(storage_api) -> None:
    service = Service.model_validate(storage_api)
    serializer = RestSerializer("https://storage.example.com")

    put = serializer.serialize(
        service.get_operation("PutObject"),
        {"Bucket": "b", "Key": "dir/file.txt", "Body": "hello", "ContentType": "text/plain"},
    )
    token = serializer.serialize(service.get_operation("CreateToken"), {"Name": "ci", "Ttl": 120})

    assert put.content == b"hello"
    assert put.headers["Content-Type"] == "text/plain"
    assert put.url.path == "/b/dir/file.txt"
    assert json.loads(token.content) == {"Name": "ci", "Ttl": 120}
    assert token.headers["Content-Type"] == "application/json"


def test_serializer_reads_stream_payloads(storage_api) -> None:
    serializer = RestSerializer("https://storage.example.com")
    service = Service.model_validate(storage_api)

    put = serializer.serialize(service.get_operation("PutObject"), {"Bucket": "b", "Key": "k", "Body": io.BytesIO(b"data")})

    assert put.content == b"data"
    assert put.headers["Content-Length"] == "4"


def test_static_query_is_kept(storage_api) -> None:
    service = Service.model_validate(storage_api)

    request = RestSerializer("https://storage.example.com").serialize(service.get_operation("GetUsage"), {"Bucket": "b"})

    assert request.url.path == "/b/"
    assert b"usage" in request.url.query


def test_parse_response_merges_headers_and_body(storage_api) -> None:
    service = Service.model_validate(storage_api)
    request = httpx.Request("GET", "https://storage.example.com/photos/")
    response = httpx.Response(200, json={"files": [{"name": "a"}]}, headers={"x-upyun-list-iter": "abc"})

    result = parse_response(service.get_operation("ListObjects"), request, response)

    assert result["files"] == [{"name": "a"}]
    assert result["NextIter"] == "abc"
    assert result.metadata["status_code"] == 200
    assert result.metadata["effective_uri"] == "https://storage.example.com/photos/"


def test_parse_response_keeps_raw_body(storage_api) -> None:
    service = Service.model_validate(storage_api)
    request = httpx.Request("GET", "https://storage.example.com/b/file.bin")

    result = parse_response(service.get_operation("PutObject"), request, httpx.Response(200, content=b"\x00\x01"))

    assert result["Body"] == b"\x00\x01"


def test_parse_error_reads_code_and_message() -> None:
    request = httpx.Request("GET", "https://storage.example.com/b")
    response = httpx.Response(403, json={"code": 40100006, "msg": "user need permission"}, headers={"x-request-id": "req-1"})

    error = parse_error(request, response)

    assert error.status == 403
    assert error.code == "40100006"
    assert error.message == "user need permission"
    assert error.request_id == "req-1"
    assert "40100006" in str(error)


def test_parse_error_without_body_uses_reason() -> None:
    error = parse_error(httpx.Request("GET", "https://x"), httpx.Response(404))

    assert error.code is None
    assert error.message == "Not Found"
