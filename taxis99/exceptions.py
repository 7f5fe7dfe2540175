from __future__ import annotations
from typing import Optional


class ApiRequestError(Exception):
    """Base class for every error raised by the 99 Taxis client."""


class ApiConstructionError(ApiRequestError, ValueError):
    """The request could not be built (bad path, method, body or base URL)."""


class ApiConfigError(ApiRequestError):
    """Missing or invalid environment configuration."""


class ApiTransportError(ApiRequestError):
    """The call never completed (network failure, cancelled or expired context)."""


class RequestCancelled(ApiTransportError):
    """The request context was cancelled."""


class RequestTimeout(ApiTransportError):
    """The request context deadline or the transport timeout expired."""


class APIError(ApiRequestError):
    """The server responded but the body could not be decoded as requested."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ''):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.body = body

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        return f"{self.message} (status {self.status_code})"
