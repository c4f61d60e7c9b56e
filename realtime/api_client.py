"""
HTTP fetcher for the client query cache.
"""

import logging
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """
    Raised when an API query does not return a successful response.
    status_code is None when no response arrived (network failure or timeout).
    """

    def __init__(self, path: str, status_code: Optional[int], message: str = ""):
        self.path = path
        self.status_code = status_code
        if status_code is None:
            super().__init__(f"{path} failed: {message}")
        else:
            super().__init__(f"{path} returned {status_code}: {message}")


class ApiClient:
    """
    Thin httpx wrapper that fetches query keys (API paths) from the app origin
    with the session cookie. Normalized {"ok", "data"} envelopes are unwrapped.
    """

    def __init__(
        self,
        origin: str,
        cookies: Optional[Dict[str, str]] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=origin,
            cookies=cookies,
            timeout=timeout,
            transport=transport,
        )

    async def fetch(self, path: str) -> Any:
        try:
            response = await self._client.get(path)
        except httpx.HTTPError as e:
            logger.warning(f"Query {path} failed: {e}")
            raise ApiError(path, None, str(e)) from e

        if response.status_code >= 400:
            logger.warning(f"Query {path} failed with status {response.status_code}")
            raise ApiError(path, response.status_code, response.text)

        try:
            body = response.json()
        except ValueError as e:
            logger.warning(f"Query {path} returned a non-JSON body")
            raise ApiError(path, response.status_code, "response body is not JSON") from e
        if isinstance(body, dict) and "ok" in body and "data" in body:
            return body["data"]
        return body

    async def aclose(self):
        await self._client.aclose()
