"""
HTTP client for the Serveradmin API.

Provides a persistent sync HTTP client with:
- Connection pooling via a single ``httpx.Client``
- Request signing (see :mod:`adminapi.auth`)
- Automatic retry with exponential backoff on transient failures
- Transparent gzip decoding of responses

Example::

    with AdminapiClient.from_settings() as client:
        objects = client.query({"filters": {"hostname": "web01"},
                                "restrict": ["hostname", "object_id"]})
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any

import httpx
from httpx import TransportError

from adminapi import __version__
from adminapi.auth import Signer, signer_from_settings
from adminapi.config import Settings, get_settings
from adminapi.exceptions import APIError, PayloadError, ResponseError

logger = logging.getLogger(__name__)

API_ENDPOINT_QUERY = "/api/dataset/query"
API_ENDPOINT_NEW_OBJECT = "/api/dataset/new_object"
USER_AGENT = f"Adminapi Python Client {__version__}"

# HTTP status codes that are safe to retry
_RETRYABLE_STATUS_CODES = frozenset({502, 503, 504})


def _server_message(response: httpx.Response) -> str:
    """``error.message`` from a JSON error body, else the body text."""
    try:
        data = response.json()
    except ValueError:
        return response.text.strip()
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return error
    return response.text.strip()


class AdminapiClient:
    """Sync Python client for the Serveradmin API."""

    def __init__(
        self,
        base_url: str,
        signer: Signer,
        timeout: float = 30.0,
        max_retries: int = 3,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.signer = signer
        self.timeout = timeout
        self.max_retries = max_retries
        self._transport = transport
        self._client: httpx.Client | None = None

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> AdminapiClient:
        """Build a client from :func:`adminapi.config.get_settings`."""
        settings = settings or get_settings()
        return cls(
            settings.require_base_url(),
            signer_from_settings(settings),
            timeout=settings.timeout,
            max_retries=settings.max_retries,
        )

    # Connection lifecycle
    def _get_client(self) -> httpx.Client:
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        if self._client and not self._client.is_closed:
            self._client.close()
            self._client = None

    def __enter__(self) -> AdminapiClient:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def _headers(self, body: bytes) -> dict[str, str]:
        timestamp = int(time.time())
        headers = {
            "Content-Type": "application/x-json",
            "X-Timestamp": str(timestamp),
            "User-Agent": USER_AGENT,
            "Accept-Encoding": "gzip",
        }
        headers.update(self.signer.headers(timestamp, body))
        return headers

    # Core request with retry
    def _request(
        self,
        endpoint: str,
        payload: Any = None,
        params: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Send a signed request, retrying transient failures.

        The service reads the JSON body of GET requests.
        """
        try:
            body = json.dumps(payload, separators=(",", ":"), allow_nan=False).encode()
        except (TypeError, ValueError) as e:
            raise PayloadError(
                f"Request body is not valid JSON: {e}", details={"endpoint": endpoint}
            ) from e
        client = self._get_client()
        last_error: Exception | None = None

        for attempt in range(self.max_retries + 1):
            try:
                logger.debug("GET %s", endpoint, extra={"attempt": attempt + 1})
                response = client.request(
                    "GET", endpoint,
                    content=body,
                    params=params,
                    headers=self._headers(body),
                )
            except TransportError as e:
                last_error = e
                if attempt < self.max_retries:
                    delay = 2 ** attempt
                    logger.warning(
                        "Transport error on %s (attempt %d/%d), retrying in %ds: %s",
                        endpoint, attempt + 1, self.max_retries + 1, delay, e,
                    )
                    time.sleep(delay)
                    continue
                raise

            if response.is_success:
                return response

            if response.status_code in _RETRYABLE_STATUS_CODES and attempt < self.max_retries:
                delay = 2 ** attempt
                logger.warning(
                    "HTTP %d on %s (attempt %d/%d), retrying in %ds",
                    response.status_code, endpoint,
                    attempt + 1, self.max_retries + 1, delay,
                )
                time.sleep(delay)
                continue

            raise APIError(
                response.status_code,
                response.reason_phrase,
                _server_message(response),
                details={"endpoint": endpoint},
            )

        raise last_error  # type: ignore[misc]

    def _json(self, endpoint: str, payload: Any = None, **kwargs: Any) -> Any:
        """Shorthand: make request and return parsed JSON."""
        response = self._request(endpoint, payload, **kwargs)
        try:
            return response.json()
        except ValueError as e:
            raise ResponseError(
                "Response is not valid JSON", details={"endpoint": endpoint}
            ) from e

    # Endpoints
    def query(self, payload: dict[str, Any]) -> list[dict[str, Any]]:
        """GET /api/dataset/query -- attribute maps of the matching objects."""
        data = self._json(API_ENDPOINT_QUERY, payload)
        result = data.get("result") if isinstance(data, dict) else None
        if not isinstance(result, list):
            raise ResponseError(
                "Query response has no result list",
                details={"status": data.get("status") if isinstance(data, dict) else None},
            )
        logger.debug("Query returned %d objects", len(result))
        return result

    def new_object(self, servertype: str) -> dict[str, Any]:
        """GET /api/dataset/new_object -- default attributes of a servertype."""
        data = self._json(API_ENDPOINT_NEW_OBJECT, None, params={"servertype": servertype})
        if not isinstance(data, dict):
            raise ResponseError(
                "New object response is not an object",
                details={"servertype": servertype},
            )
        return data
