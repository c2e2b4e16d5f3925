"""Error types raised by the cloudstorage client pipeline."""

from __future__ import annotations

from typing import Any, Optional


class CloudStorageError(Exception):
    """Base class for every error surfaced by a client."""

    def __init__(self, message: str = "", *, command: Any = None) -> None:
        super().__init__(message)
        self.command = command


class ConfigurationError(CloudStorageError, ValueError):
    def __init__(self, message: str, *, option: Optional[str] = None, command: Any = None) -> None:
        super().__init__(message, command=command)
        self.option = option


class UnresolvedApiError(CloudStorageError):
    pass


class UnresolvedSignatureError(CloudStorageError):
    pass


class CredentialsError(CloudStorageError):
    pass


class UnknownOperationError(CloudStorageError, LookupError):
    pass


class InvalidPaginatorError(CloudStorageError):
    pass


class ParameterValidationError(CloudStorageError, ValueError):
    def __init__(self, operation: str, errors: list[str], *, command: Any = None) -> None:
        lines = "\n".join(f"  - {error}" for error in errors)
        super().__init__(f"Found {len(errors)} error(s) while validating the input for {operation}:\n{lines}", command=command)
        self.operation = operation
        self.errors = errors


class TransportError(CloudStorageError):
    """Network-level failure while sending a request."""

    def __init__(self, message: str, *, retryable: bool = True, request: Any = None, command: Any = None) -> None:
        super().__init__(message, command=command)
        self.retryable = retryable
        self.request = request


class ServiceError(CloudStorageError):
    """Non-2xx response mapped to a structured error."""

    def __init__(
        self,
        message: str,
        *,
        status: int,
        code: Optional[str] = None,
        request_id: Optional[str] = None,
        response: Any = None,
        command: Any = None,
    ) -> None:
        super().__init__(message, command=command)
        self.status = status
        self.code = code
        self.message = message
        self.request_id = request_id
        self.response = response

    def __str__(self) -> str:
        code = self.code or "Unknown"
        return f"{code} (HTTP {self.status}): {self.message}"


class RetryExhaustedError(CloudStorageError):
    def __init__(self, attempts: int, last_error: BaseException, *, command: Any = None) -> None:
        super().__init__(f"Gave up after {attempts} attempt(s): {last_error}", command=command)
        self.attempts = attempts
        self.last_error = last_error


__all__ = [
    "CloudStorageError",
    "ConfigurationError",
    "CredentialsError",
    "InvalidPaginatorError",
    "ParameterValidationError",
    "RetryExhaustedError",
    "ServiceError",
    "TransportError",
    "UnknownOperationError",
    "UnresolvedApiError",
    "UnresolvedSignatureError",
]
