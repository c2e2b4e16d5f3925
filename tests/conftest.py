from __future__ import annotations

import copy
from typing import Any, Callable, Dict

import httpx
import pytest

from cloudstorage.api import ApiProvider
from cloudstorage.client import Client
from cloudstorage.credentials import Credentials
from cloudstorage.transport import HttpxHandler

STORAGE_API: Dict[str, Any] = {
    "metadata": {
        "serviceName": "storage",
        "apiVersion": "2024-01-01",
        "endpoint": "storage.example.com",
        "signatureVersion": "hmac",
    },
    "operations": {
        "ListObjects": {
            "http": {"method": "GET", "requestUri": "/{Bucket}/{Prefix+}"},
            "input": {
                "type": "structure",
                "members": {
                    "Bucket": {"type": "string", "location": "uri", "required": True, "min": 1},
                    "Prefix": {"type": "string", "location": "uri"},
                    "Limit": {"type": "integer", "location": "header", "locationName": "x-list-limit", "min": 1, "max": 10000},
                    "Iter": {"type": "string", "location": "header", "locationName": "x-list-iter"},
                },
            },
            "output": {
                "type": "structure",
                "members": {
                    "NextIter": {"type": "string", "location": "header", "locationName": "x-upyun-list-iter"},
                },
            },
        },
        "PutObject": {
            "http": {"method": "PUT", "requestUri": "/{Bucket}/{Key+}"},
            "input": {
                "type": "structure",
                "members": {
                    "Bucket": {"type": "string", "location": "uri", "required": True},
                    "Key": {"type": "string", "location": "uri", "required": True},
                    "Body": {"type": "blob", "location": "body"},
                    "ContentType": {"type": "string", "location": "header", "locationName": "Content-Type"},
                },
            },
        },
        "CreateToken": {
            "http": {"method": "POST", "requestUri": "/tokens"},
            "input": {
                "type": "structure",
                "members": {
                    "Name": {"type": "string", "required": True, "pattern": "^[a-z-]+$"},
                    "Ttl": {"type": "integer", "min": 60},
                },
            },
        },
        "GetUsage": {
            "http": {"method": "GET", "requestUri": "/{Bucket}/?usage"},
            "authtype": "none",
            "input": {
                "type": "structure",
                "members": {"Bucket": {"type": "string", "location": "uri", "required": True}},
            },
        },
    },
    "paginators": {
        "ListObjects": {
            "input_token": "Iter",
            "output_token": "NextIter",
            "result_key": "files",
            "limit_key": "Limit",
            "end_token": "g2gCZAAEbmV4dGQAA2VvZg",
        },
    },
}


@pytest.fixture()
def storage_api() -> Dict[str, Any]:
    return copy.deepcopy(STORAGE_API)


@pytest.fixture()
def api_provider(storage_api: Dict[str, Any]):
    return ApiProvider.from_mapping({"storage": {"2024-01-01": storage_api}})


@pytest.fixture()
def make_client(api_provider) -> Callable[..., Client]:
    def factory(handler: Callable[[httpx.Request], Any] | None = None, **options: Any) -> Client:
        if handler is None:
            def handler(request: httpx.Request) -> httpx.Response:
                return httpx.Response(200, json={})

        defaults: Dict[str, Any] = dict(
            service="storage",
            api_provider=api_provider,
            credentials=Credentials(key="k", secret="s"),
            http_handler=HttpxHandler(httpx.MockTransport(handler)),
            retries={"max_attempts": 3, "base_delay": 0},
        )
        defaults.update(options)
        return Client(**defaults)

    return factory
