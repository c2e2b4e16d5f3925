"""Service descriptions and the provider chain that loads them."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .exceptions import UnknownOperationError, UnresolvedApiError

logger = logging.getLogger(__name__)

ENV_DATA_PATH = "CLOUDSTORAGE_DATA_PATH"

NON_IDEMPOTENT_METHODS = frozenset({"POST", "PATCH"})


class Shape(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    type: str = "string"
    location: Optional[str] = None
    location_name: Optional[str] = Field(default=None, alias="locationName")
    required: bool = False
    min: Optional[float] = None
    max: Optional[float] = None
    pattern: Optional[str] = None
    enum: Optional[List[Any]] = None
    members: Dict[str, "Shape"] = Field(default_factory=dict)
    member: Optional["Shape"] = None
    value: Optional["Shape"] = None

    def wire_name(self, name: str) -> str:
        return self.location_name or name


Shape.model_rebuild()


class HttpBinding(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    method: str = "GET"
    request_uri: str = Field(default="/", alias="requestUri")


class Operation(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: str = ""
    http: HttpBinding = Field(default_factory=HttpBinding)
    input: Shape = Field(default_factory=lambda: Shape(type="structure"))
    output: Shape = Field(default_factory=lambda: Shape(type="structure"))
    idempotent: Optional[bool] = None
    authtype: Optional[str] = None
    signature_version: Optional[str] = Field(default=None, alias="signatureVersion")

    @property
    def is_idempotent(self) -> bool:
        if self.idempotent is not None:
            return self.idempotent
        return self.http.method.upper() not in NON_IDEMPOTENT_METHODS

    @property
    def requires_auth(self) -> bool:
        return self.authtype != "none"


class PaginatorConfig(BaseModel):
    input_token: str
    output_token: str
    result_key: Optional[str] = None
    limit_key: Optional[str] = None
    end_token: Optional[str] = None


class ServiceMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    service_name: str = Field(default="", alias="serviceName")
    api_version: str = Field(default="", alias="apiVersion")
    endpoint: Optional[str] = None
    signature_version: Optional[str] = Field(default=None, alias="signatureVersion")


class Service(BaseModel):
    metadata: ServiceMetadata = Field(default_factory=ServiceMetadata)
    operations: Dict[str, Operation] = Field(default_factory=dict)
    paginators: Dict[str, PaginatorConfig] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _name_operations(self) -> "Service":
        for name, operation in self.operations.items():
            if not operation.name:
                operation.name = name
        return self

    def get_operation(self, name: str) -> Operation:
        try:
            return self.operations[name]
        except KeyError:
            raise UnknownOperationError(
                f"Operation not found: {name}. Known operations: {', '.join(sorted(self.operations))}"
            ) from None

    def has_paginator(self, name: str) -> bool:
        return name in self.paginators

    def get_paginator_config(self, name: str) -> PaginatorConfig:
        return self.paginators[name]


ApiSource = Callable[[str, str], Optional[Mapping[str, Any]]]


class ApiProvider:
    """Chain-of-responsibility resolution of API descriptions."""

    @staticmethod
    def resolve(
        providers: Union[ApiSource, Iterable[ApiSource]],
        service: str,
        version: str,
    ) -> Mapping[str, Any]:
        chain = [providers] if callable(providers) else list(providers)
        for provider in chain:
            description = provider(service, version)
            if description is not None:
                return description
        raise UnresolvedApiError(f"The {service} service does not have version: {version}.")

    @staticmethod
    def from_mapping(descriptions: Mapping[str, Mapping[str, Any]]) -> ApiSource:
        """Serves descriptions keyed by service, then by version."""

        def provider(service: str, version: str) -> Optional[Mapping[str, Any]]:
            versions = descriptions.get(service)
            if not versions:
                return None
            if version == "latest":
                version = max(versions)
            return versions.get(version)

        return provider

    @staticmethod
    def filesystem(root: Optional[Union[str, Path]] = None) -> ApiSource:
        """Loads ``<root>/<service>/<version>/api.json``."""

        def provider(service: str, version: str) -> Optional[Mapping[str, Any]]:
            base = Path(root or os.environ.get(ENV_DATA_PATH) or Path.home() / ".cloudstorage" / "models")
            service_dir = base / service
            if not service_dir.is_dir():
                return None
            if version == "latest":
                versions = sorted(p.name for p in service_dir.iterdir() if p.is_dir())
                if not versions:
                    return None
                version = versions[-1]
            path = service_dir / version / "api.json"
            if not path.exists():
                return None
            logger.debug("Loading API description from %s", path)
            with path.open("r", encoding="utf-8") as fh:
                return json.load(fh)

        return provider

    @staticmethod
    def defaults() -> ApiSource:
        return ApiProvider.filesystem()


__all__ = [
    "ApiProvider",
    "ApiSource",
    "HttpBinding",
    "Operation",
    "PaginatorConfig",
    "Service",
    "ServiceMetadata",
    "Shape",
]
