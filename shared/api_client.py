"""
api_client.py - Store API HTTP Client Wrapper

PURPOSE:
    Provides the reusable HTTP client every store API wrapper builds on, with
    bearer-token injection, JSON decoding, and uniform error translation.

FEATURES:
    - Bearer token taken from a token provider on every call (login/logout aware)
    - Query parameters with None values are dropped
    - JSON responses decoded, binary downloads (reports, exports) returned raw
    - Every failure surfaces as ApiError with a user-facing message

ERROR HANDLING:
    - HTTP error status: message from the response body ("message", then "error"),
      falling back to a per-call default such as "Fetch failed"
    - Structured error code read from the body ("code" or "errorCode") when it is a string
    - Transport failures (DNS, refused connection, timeout): "Network error. Please try again."

USAGE:
    client = BaseApiClient("https://api.lewisstores.co.za/api/", token_provider=session.get_token)
    orders = client.get("orders", params={"page": 1, "limit": 10})
    client.close()
"""

import logging
from typing import Any, Callable, Dict, Optional

import httpx

logger = logging.getLogger(__name__)

NETWORK_ERROR_MESSAGE = "Network error. Please try again."


class ApiError(Exception):
    """Error raised for any failed store API call."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        payload: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.payload = payload

    @property
    def is_network_error(self) -> bool:
        return self.status_code is None

    def __repr__(self) -> str:
        return f"ApiError(message={self.message!r}, status_code={self.status_code}, code={self.code!r})"


def error_from_response(response: httpx.Response, fallback: str) -> ApiError:
    """Build an ApiError from a non-2xx store API response."""
    try:
        body = response.json()
    except ValueError:
        body = None

    message = fallback
    code = None
    if isinstance(body, dict):
        message = body.get("message") or body.get("error") or fallback
        for key in ("code", "errorCode"):
            if isinstance(body.get(key), str):
                code = body[key]
                break

    return ApiError(message, status_code=response.status_code, code=code, payload=body)


class BaseApiClient:
    """
    Base store API client with bearer authentication and error translation.

    Args:
        base_url: Store API root, e.g. "http://localhost:5000/api/"
        token_provider: Callable returning the current bearer token or None
        timeout: Request timeout in seconds
        transport: Optional httpx transport (used to stub the API in tests)
    """

    def __init__(
        self,
        base_url: str,
        token_provider: Optional[Callable[[], Optional[str]]] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url if base_url.endswith("/") else f"{base_url}/"
        self.token_provider = token_provider
        self.client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        token = self.token_provider() if self.token_provider else None
        if token:
            headers["Authorization"] = f"Bearer {token}"
        if extra:
            headers.update(extra)
        return headers

    def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        files: Any = None,
        headers: Optional[Dict[str, str]] = None,
        fallback: str = "Fetch failed",
        raw: bool = False,
    ) -> Any:
        """Send a request and return the decoded body, raising ApiError on failure."""
        if params:
            params = {k: v for k, v in params.items() if v is not None}

        try:
            response = self.client.request(
                method,
                path.lstrip("/"),
                params=params or None,
                json=json,
                files=files,
                headers=self._headers(headers),
            )
        except httpx.HTTPError as e:
            logger.error(f"{method} {path} failed before a response was received: {e}")
            raise ApiError(NETWORK_ERROR_MESSAGE) from e

        if response.is_error:
            error = error_from_response(response, fallback)
            logger.warning(f"{method} {path} returned {response.status_code}: {error.message}")
            raise error

        logger.debug(f"{method} {path} returned {response.status_code}")

        if raw:
            return response.content
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    def get(self, path: str, **kwargs: Any) -> Any:
        return self.request("GET", path, **kwargs)

    def post(self, path: str, **kwargs: Any) -> Any:
        return self.request("POST", path, **kwargs)

    def patch(self, path: str, **kwargs: Any) -> Any:
        return self.request("PATCH", path, **kwargs)

    def put(self, path: str, **kwargs: Any) -> Any:
        return self.request("PUT", path, **kwargs)

    def delete(self, path: str, **kwargs: Any) -> Any:
        return self.request("DELETE", path, **kwargs)

    def close(self) -> None:
        """Close the underlying connection pool."""
        self.client.close()
