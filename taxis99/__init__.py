"""Minimal HTTP client for the 99 Taxis REST API.

Usage example:
    from taxis99 import Client
    client = Client.from_env()
    rides = client.request('GET', 'rides', out=list)
"""
from .client import Client, DEFAULT_BASE_URL  # noqa: F401
from .context import RequestContext  # noqa: F401
from .exceptions import (  # noqa: F401
    APIError,
    ApiConfigError,
    ApiConstructionError,
    ApiRequestError,
    ApiTransportError,
    RequestCancelled,
    RequestTimeout,
)
