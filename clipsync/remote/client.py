"""HTTP client for the remote annotation export API."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import ValidationError

from clipsync.exceptions import (
    InvalidResponseError,
    RemoteResponseError,
    RemoteTransportError,
    SyncConflictError,
    SyncLockedError,
)
from clipsync.schemas.remote import ExportListing, RecordPayload

if TYPE_CHECKING:
    from types import TracebackType

logger = logging.getLogger(__name__)

CLIENT_ID_HEADER = "Obsidian-Client-Id"
RECORD_KIND = "videos"

_STATUS_ERRORS: dict[int, type[RemoteResponseError]] = {
    409: SyncConflictError,
    417: SyncLockedError,
}


def _flag(value: bool) -> str:
    return "true" if value else "false"


def raise_for_response(response: httpx.Response) -> None:
    """Raise the matching ``RemoteResponseError`` for a non-success response."""
    if response.is_success:
        return
    error_cls = _STATUS_ERRORS.get(response.status_code, RemoteResponseError)
    raise error_cls(response.status_code, response.reason_phrase)


def _json_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        raise InvalidResponseError(response.status_code, "body is not JSON") from exc


class RemoteClient:
    """Async client for the listing, download and acknowledge endpoints."""

    def __init__(
        self,
        server_url: str,
        token: str,
        client_id: str,
        *,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.server_url = server_url.rstrip("/")
        self.client = httpx.AsyncClient(
            base_url=f"{self.server_url}/api",
            headers={
                "Authorization": f"Bearer {token}",
                CLIENT_ID_HEADER: client_id,
            },
            timeout=timeout,
            transport=transport,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> RemoteClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    def set_token(self, token: str) -> None:
        self.client.headers["Authorization"] = f"Bearer {token}"

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.TransportError as exc:
            logger.warning("%s %s failed: %s", method, url, exc)
            raise RemoteTransportError from exc
        if not response.is_success:
            logger.warning("%s %s returned %d", method, url, response.status_code)
        raise_for_response(response)
        return response

    async def list_changed_records(
        self, *, since: int, sync_all: bool, auto: bool = False
    ) -> ExportListing:
        """List record ids changed since the ``since`` checkpoint.

        With ``sync_all`` the server lists every record regardless of the
        checkpoint.
        """
        params = {"all": _flag(sync_all), "syncUpTo": str(since)}
        if auto:
            params["auto"] = _flag(auto)
        response = await self._request("GET", f"/markdown/{RECORD_KIND}", params=params)
        try:
            return ExportListing.model_validate(_json_body(response))
        except ValidationError as exc:
            raise InvalidResponseError(response.status_code, "malformed listing") from exc

    async def fetch_record(self, record_id: str) -> RecordPayload | None:
        """Fetch one record. Returns None while the record is not ready yet."""
        response = await self._request(
            "GET", "/download/markdown", params={"video_id": record_id}
        )
        data = _json_body(response)
        if not data:
            return None
        try:
            return RecordPayload.model_validate(data)
        except ValidationError as exc:
            raise InvalidResponseError(response.status_code, "malformed record") from exc

    async def acknowledge_sync(self) -> None:
        """Tell the server the last listed export was processed."""
        await self._request(
            "POST", "/obsidian/sync_ack", headers={"Content-Type": "application/json"}
        )
