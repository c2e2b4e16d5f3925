"""Extensible client framework for cloud storage HTTP APIs."""

from .api import ApiProvider, Operation, PaginatorConfig, Service
from .client import Client
from .command import Command
from .configuration import ClientConfig, ConfigurationResolver, Option
from .credentials import CredentialProvider, CredentialResolver, Credentials
from .exceptions import (
    CloudStorageError,
    ConfigurationError,
    CredentialsError,
    InvalidPaginatorError,
    ParameterValidationError,
    RetryExhaustedError,
    ServiceError,
    TransportError,
    UnknownOperationError,
    UnresolvedApiError,
    UnresolvedSignatureError,
)
from .handler_list import HandlerList
from .paginator import ResourceIterator, ResultPaginator
from .result import Result
from .retry import RetryPolicy
from .signature import BasicSigner, HmacSigner, SignatureProvider, Signer
from .transport import HttpxHandler, WireHandler

__all__ = [
    "ApiProvider",
    "BasicSigner",
    "Client",
    "ClientConfig",
    "CloudStorageError",
    "Command",
    "ConfigurationError",
    "ConfigurationResolver",
    "CredentialProvider",
    "CredentialResolver",
    "Credentials",
    "CredentialsError",
    "HandlerList",
    "HmacSigner",
    "HttpxHandler",
    "InvalidPaginatorError",
    "Operation",
    "Option",
    "PaginatorConfig",
    "ParameterValidationError",
    "Result",
    "ResourceIterator",
    "ResultPaginator",
    "RetryExhaustedError",
    "RetryPolicy",
    "Service",
    "ServiceError",
    "SignatureProvider",
    "Signer",
    "TransportError",
    "UnknownOperationError",
    "UnresolvedApiError",
    "UnresolvedSignatureError",
    "WireHandler",
]
