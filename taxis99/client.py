from __future__ import annotations
import dataclasses
import json
import logging
import os
import re
from functools import lru_cache
from typing import Any, Dict, Optional, get_origin
from urllib.parse import urljoin, urlsplit
import requests
from pydantic import TypeAdapter, ValidationError
from .context import RequestContext
from .exceptions import (
    APIError,
    ApiConfigError,
    ApiConstructionError,
    ApiTransportError,
    RequestCancelled,
    RequestTimeout,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = 'https://api.99taxis.com/'
JSON_MEDIA_TYPE = 'application/json'

# RFC 7230 token characters
_METHOD_TOKEN = re.compile(r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+")
_CONTROL_CHARS = re.compile(r'[\x00-\x1f\x7f]')


def _encode_default(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class Client:
    """HTTP client for the 99 Taxis REST API.

    One generic `request` operation: resolve a path against the base URL,
    send an optional JSON body and decode the JSON response into `out`.
    The transport is a `requests.Session`; mount a custom adapter on it to
    replace the network in tests.
    """

    def __init__(self, session: Optional[requests.Session] = None, base_url: Optional[str] = None, timeout: Optional[float] = None):
        self.session = session if session is not None else requests.Session()
        self.base_url = self._normalize_base_url(base_url or DEFAULT_BASE_URL)
        self.timeout = timeout

    @classmethod
    def from_env(cls, session: Optional[requests.Session] = None) -> 'Client':
        base_url = Client.env('TAXIS99_BASE_URL', required=False) or DEFAULT_BASE_URL
        raw_timeout = Client.env('TAXIS99_TIMEOUT', required=False)
        timeout: Optional[float] = None
        if raw_timeout and raw_timeout.strip():
            try:
                timeout = float(raw_timeout)
            except ValueError:
                raise ApiConfigError(f"TAXIS99_TIMEOUT must be a number of seconds, got {raw_timeout!r}")
            if timeout <= 0:
                raise ApiConfigError(f"TAXIS99_TIMEOUT must be positive, got {raw_timeout!r}")
        return cls(session=session, base_url=base_url, timeout=timeout)

    @staticmethod
    def env(name: str, required: bool = True) -> Optional[str]:
        val = os.getenv(name)
        if required and (val is None or val.strip() == ''):
            raise ApiConfigError(f"Missing required environment variable: {name}")
        return val

    @staticmethod
    def _normalize_base_url(base_url: str) -> str:
        try:
            parts = urlsplit(base_url)
        except ValueError as e:
            raise ApiConstructionError(f"Invalid base URL {base_url!r}: {e}") from e
        if not parts.scheme or not parts.netloc:
            raise ApiConstructionError(f"Base URL must be absolute, got {base_url!r}")
        return base_url if base_url.endswith('/') else base_url + '/'

    def _resolve(self, path: str) -> str:
        if _CONTROL_CHARS.search(path):
            raise ApiConstructionError(f"Invalid path {path!r}: contains control characters")
        try:
            parts = urlsplit(path)
        except ValueError as e:
            raise ApiConstructionError(f"Invalid path {path!r}: {e}") from e
        if not parts.scheme and ':' in parts.path.split('/', 1)[0]:
            # would be read as a scheme, so it is not a valid relative reference
            raise ApiConstructionError(f"Invalid path {path!r}: first path segment cannot contain a colon")
        return urljoin(self.base_url, path)

    def _build(self, method: str, path: str, body: Any) -> requests.PreparedRequest:
        url = self._resolve(path)
        headers: Dict[str, str] = {}
        data: Optional[bytes] = None
        if body is not None:
            try:
                data = json.dumps(body, default=_encode_default, separators=(',', ':')).encode('utf-8')
            except (TypeError, ValueError) as e:
                raise ApiConstructionError(f"Request body is not JSON serializable: {e}") from e
            headers['Content-Type'] = JSON_MEDIA_TYPE
        method = method or 'GET'
        if not _METHOD_TOKEN.fullmatch(method):
            raise ApiConstructionError(f"Invalid HTTP method {method!r}")
        try:
            return self.session.prepare_request(requests.Request(method, url, headers=headers, data=data))
        except requests.RequestException as e:
            raise ApiConstructionError(f"Could not build request: {e}") from e

    def _timeout(self, ctx: RequestContext) -> Optional[float]:
        remaining = ctx.remaining()
        if remaining is None:
            return self.timeout
        if self.timeout is None:
            return remaining
        return min(remaining, self.timeout)

    def request(self, method: str, path: str, body: Any = None, out: Any = None, *, ctx: Optional[RequestContext] = None) -> Any:
        """Send one request and decode the JSON response into `out`.

        `out` is a shape pydantic can validate (a dataclass or BaseModel,
        `list[Ride]`, `dict`, `float`, `object` for any JSON) or a plain
        callable applied to the decoded value. Returns the decoded value.
        When `out` is None the body is left unread and the streaming
        `requests.Response` is returned; closing it is the caller's job.

        Raises ApiConstructionError before contacting the server, an
        ApiTransportError subclass when the call does not complete and
        APIError when the server answered with an undecodable body.
        """
        ctx = ctx or RequestContext.background()
        try:
            prepared = self._build(method, path, body)
        except ApiConstructionError as e:
            logger.warning(f"Construction error: {e}")
            raise

        failure = ctx.err()
        if failure is not None:
            logger.warning(f"Transport error: {failure} before {prepared.method} {prepared.url}")
            raise failure

        logger.debug(f"{prepared.method} {prepared.url}")
        timeout = self._timeout(ctx)
        if timeout is not None and timeout <= 0:
            logger.warning(f"Transport error: no time left for {prepared.method} {prepared.url}")
            raise RequestTimeout('request context deadline exceeded')
        settings = self.session.merge_environment_settings(prepared.url, {}, True, None, None)
        try:
            resp = self.session.send(prepared, timeout=timeout, **settings)
        except requests.Timeout as e:
            logger.warning(f"Transport error: timeout on {prepared.method} {prepared.url}: {e}")
            raise RequestTimeout(f"Request timed out: {e}") from e
        except requests.RequestException as e:
            logger.warning(f"Transport error: {prepared.method} {prepared.url}: {e}")
            raise ApiTransportError(f"Network error: {e}") from e

        if ctx.cancelled:
            resp.close()
            logger.warning(f"Transport error: context cancelled during {prepared.method} {prepared.url}")
            raise RequestCancelled('request context cancelled while the request was in flight')

        logger.debug(f"{prepared.method} {prepared.url} -> {resp.status_code}")
        if out is None:
            return resp
        try:
            return self._decode(resp, out)
        finally:
            resp.close()

    def _decode(self, resp: requests.Response, out: Any) -> Any:
        try:
            raw = resp.content
        except requests.RequestException as e:
            logger.warning(f"Transport error: reading response body: {e}")
            raise ApiTransportError(f"Network error while reading response: {e}") from e
        snippet = raw[:200].decode('utf-8', errors='replace')
        try:
            payload = json.loads(raw)
        except ValueError as e:
            logger.warning(f"Decode error: invalid JSON from {resp.url} (status {resp.status_code})")
            raise APIError(f"Failed to decode JSON response: {e}", resp.status_code, snippet) from e
        if _is_shape(out):
            try:
                return _adapter(out).validate_json(raw, strict=True)
            except ValidationError as e:
                logger.warning(f"Decode error: response from {resp.url} does not fit {_name(out)}")
                raise APIError(f"Response does not fit {_name(out)}: {e}", resp.status_code, snippet) from e
        try:
            return out(payload)
        except Exception as e:
            logger.warning(f"Decode error: {_name(out)} rejected the response from {resp.url}")
            raise APIError(f"Response does not fit {_name(out)}: {e!r}", resp.status_code, snippet) from e


def _name(out: Any) -> str:
    return getattr(out, '__name__', repr(out))


def _is_shape(out: Any) -> bool:
    # types and typing forms (list[Ride], Optional[int]) go through pydantic; anything else is a plain callable
    return isinstance(out, type) or out is Any or get_origin(out) is not None


@lru_cache(maxsize=128)
def _adapter(out: Any) -> TypeAdapter:
    return TypeAdapter(out)
