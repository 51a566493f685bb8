"""Thin async transport over the Help Scout Mailbox API v2.

Wraps an httpx.AsyncClient so handlers deal in decoded JSON and the error
taxonomy from errors.py rather than raw httpx exceptions.
"""
import logging
from typing import Any, Optional

import httpx

from .config import Settings
from .errors import (
    HelpScoutToolError,
    NotFoundError,
    RateLimitError,
    UnauthorizedError,
    UpstreamError,
)

logger = logging.getLogger("helpscout-mcp.client")


class Page:
    """Pagination envelope returned by Help Scout list endpoints.

    `{_embedded: {<key>: [...]}, page: {size, totalElements, totalPages,
    number}, _links: {next: {href}}}`
    """

    def __init__(self, payload: Any, key: str):
        if not isinstance(payload, dict):
            raise UpstreamError(f"Malformed {key} listing: expected a JSON object")
        embedded = payload.get("_embedded") or {}
        if not isinstance(embedded, dict):
            raise UpstreamError(f"Malformed {key} listing: _embedded is not an object")
        items = embedded.get(key) or []
        if not isinstance(items, list):
            raise UpstreamError(f"Malformed {key} listing: _embedded.{key} is not a list")
        self.items: list[dict[str, Any]] = items
        page = payload.get("page")
        self.page: Optional[dict[str, Any]] = page if isinstance(page, dict) else None
        next_link = (payload.get("_links") or {}).get("next") or {}
        self.next_href: Optional[str] = next_link.get("href") if isinstance(next_link, dict) else None

    @property
    def total_elements(self) -> Optional[int]:
        if self.page is None:
            return None
        total = self.page.get("totalElements")
        return total if isinstance(total, int) else None

    def next_cursor(self, requested_page: int) -> Optional[str]:
        """Page number to pass as `cursor` for the next page, if there is one."""
        if not self.next_href:
            return None
        number = self.page.get("number") if self.page else None
        current = number if isinstance(number, int) else requested_page
        return str(current + 1)


class HelpScoutClient:
    """Async Help Scout API client.

    Usable as an async context manager; when constructed around an existing
    httpx.AsyncClient the caller keeps ownership of it.
    """

    def __init__(self, http: httpx.AsyncClient):
        self._http = http

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "HelpScoutClient":
        headers = {"Accept": "application/json"}
        if settings.access_token:
            headers["Authorization"] = f"Bearer {settings.access_token}"
        http = httpx.AsyncClient(
            base_url=settings.base_url,
            timeout=settings.timeout,
            headers=headers,
            **kwargs,
        )
        return cls(http)

    async def __aenter__(self) -> "HelpScoutClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def get(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        clean = {k: v for k, v in (params or {}).items() if v is not None}
        response = await self._send("GET", path, params=clean)
        return _decode(response)

    async def get_page(self, path: str, key: str, params: Optional[dict[str, Any]] = None) -> Page:
        return Page(await self.get(path, params), key)

    async def post(self, path: str, payload: dict[str, Any]) -> httpx.Response:
        return await self._send("POST", path, json=payload)

    async def patch(self, path: str, payload: Any) -> httpx.Response:
        return await self._send("PATCH", path, json=payload)

    async def delete(self, path: str) -> httpx.Response:
        return await self._send("DELETE", path)

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._http.request(method, path, **kwargs)
        except httpx.RequestError as e:
            logger.error(f"Request error during {method} {path}: {type(e).__name__}: {e}")
            raise UpstreamError(
                f"Connection failed - {e}", details={"method": method, "path": path}
            ) from e

        if response.is_success:
            return response
        raise _status_error(method, path, response)


def _decode(response: httpx.Response) -> Any:
    if not response.content:
        return {}
    try:
        return response.json()
    except ValueError as e:
        raise UpstreamError(
            f"Malformed JSON from Help Scout ({response.request.method} {response.request.url.path})"
        ) from e


def _status_error(method: str, path: str, response: httpx.Response) -> HelpScoutToolError:
    status = response.status_code
    try:
        body = response.json()
        if isinstance(body, dict):
            detail = body.get("message") or body.get("error") or str(body)
        else:
            detail = str(body)
    except ValueError:
        detail = response.text or response.reason_phrase

    logger.error(f"HTTP error during {method} {path}: status={status} detail={detail}")
    details = {"status": status, "method": method, "path": path}

    if status in (401, 403):
        return UnauthorizedError(f"Help Scout rejected the credentials: {detail}", details=details)
    if status == 404:
        return NotFoundError(f"Not found: {path}", details=details)
    if status == 429:
        retry_after = response.headers.get("Retry-After")
        return RateLimitError(
            "Help Scout rate limit exceeded",
            details=details,
            retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
        )
    return UpstreamError(f"Help Scout returned {status}: {detail}", details=details)
