"""Dropbox API v2 client over httpx.

Covers the four calls the pipeline needs: cursor-paginated folder listing,
download, overwrite-upload, and an account check for validating credentials.
Supports static access tokens and refresh-token auth (short-lived access
tokens are refreshed automatically and shared across worker threads).
"""

from __future__ import annotations

import json
import threading
import time
from typing import Any

import httpx
from loguru import logger

from ..config import PipelineConfig
from ..errors import TransportError
from ..models import Entry, ListingPage

log = logger.bind(stage="dropbox")

API_BASE = "https://api.dropboxapi.com/2"
CONTENT_BASE = "https://content.dropboxapi.com/2"
TOKEN_URL = "https://api.dropboxapi.com/oauth2/token"

# Refresh this many seconds before the reported expiry
_TOKEN_SKEW = 60.0


def parse_entry(raw: dict[str, Any]) -> Entry:
    """Build an Entry from one list_folder metadata dict."""
    return Entry(
        kind=raw.get(".tag", ""),
        path_lower=raw.get("path_lower") or "",
        path_display=raw.get("path_display") or "",
        name=raw.get("name") or "",
        id=raw.get("id") or "",
        size=raw.get("size"),
        rev=raw.get("rev") or "",
        server_modified=raw.get("server_modified") or "",
    )


def parse_page(raw: dict[str, Any]) -> ListingPage:
    """Build a ListingPage from a list_folder / list_folder/continue result."""
    return ListingPage(
        entries=[parse_entry(e) for e in (raw.get("entries") or [])],
        cursor=raw.get("cursor") or None,
        has_more=bool(raw.get("has_more", False)),
    )


def _json_body(resp: httpx.Response, action: str) -> dict[str, Any]:
    """Decode a 200 response body, raising TransportError unless it is a JSON object."""
    try:
        body = resp.json()
    except ValueError as e:
        text = resp.text.strip()
        raise TransportError(
            f"Dropbox {action} returned a non-JSON body",
            status=resp.status_code,
            summary=text[:200] if text else None,
        ) from e
    if not isinstance(body, dict):
        raise TransportError(
            f"Dropbox {action} returned {type(body).__name__}, expected an object",
            status=resp.status_code,
        )
    return body


def _error_from_response(resp: httpx.Response, action: str) -> TransportError:
    """Turn a non-2xx Dropbox response into a TransportError.

    Dropbox endpoint errors (409) carry {"error_summary": ..., "error":
    {".tag": ...}}; auth and rate-limit errors may be JSON or plain text.
    """
    tag = None
    summary = None
    try:
        body = resp.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        summary = body.get("error_summary") or body.get("error_description")
        error = body.get("error")
        if isinstance(error, dict):
            tag = error.get(".tag")
        elif isinstance(error, str):
            tag = error
    if summary is None:
        text = resp.text.strip()
        summary = text[:200] if text else None

    return TransportError(
        f"Dropbox {action} failed",
        status=resp.status_code,
        tag=tag,
        summary=summary,
    )


class DropboxClient:
    """Minimal Dropbox client for list / download / upload.

    Thread-safe: httpx.Client is shared, token refresh is guarded by a lock.
    """

    def __init__(
        self,
        access_token: str = "",
        refresh_token: str = "",
        app_key: str = "",
        app_secret: str = "",
        http_client: httpx.Client | None = None,
        timeout: float = 60.0,
    ) -> None:
        self._access_token = access_token
        self._refresh_token = refresh_token
        self._app_key = app_key
        self._app_secret = app_secret
        self._expires_at = 0.0 if refresh_token else float("inf")
        self._token_lock = threading.Lock()
        self._http = http_client or httpx.Client(timeout=timeout)

    @classmethod
    def from_config(cls, config: PipelineConfig) -> DropboxClient:
        """Build a client from config. Raises ConfigError on missing auth."""
        config.require_dropbox_auth()
        if config.dropbox_auth_mode == "refresh_token":
            return cls(
                refresh_token=config.dropbox_refresh_token.strip(),
                app_key=config.dropbox_app_key.strip(),
                app_secret=config.dropbox_app_secret.strip(),
            )
        return cls(access_token=config.dropbox_access_token.strip())

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> DropboxClient:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # -- Auth --

    def _token(self) -> str:
        with self._token_lock:
            if self._refresh_token and time.monotonic() >= self._expires_at:
                self._refresh()
            return self._access_token

    def _refresh(self) -> None:
        log.debug("Refreshing Dropbox access token")
        try:
            resp = self._http.post(
                TOKEN_URL,
                data={
                    "grant_type": "refresh_token",
                    "refresh_token": self._refresh_token,
                },
                auth=(self._app_key, self._app_secret),
            )
        except httpx.HTTPError as e:
            raise TransportError(f"Dropbox token refresh failed: {e}") from e
        if resp.status_code != 200:
            raise _error_from_response(resp, "token refresh")

        payload = _json_body(resp, "token refresh")
        access_token = payload.get("access_token")
        if not access_token or not isinstance(access_token, str):
            raise TransportError(
                "Dropbox token refresh returned no access_token", status=resp.status_code
            )
        try:
            expires_in = float(payload.get("expires_in", 14400))
        except (TypeError, ValueError) as e:
            raise TransportError(
                f"Dropbox token refresh returned a bad expires_in: {payload.get('expires_in')!r}",
                status=resp.status_code,
            ) from e
        self._access_token = access_token
        self._expires_at = time.monotonic() + max(0.0, expires_in - _TOKEN_SKEW)

    # -- Transport --

    def _post(
        self,
        url: str,
        action: str,
        *,
        json_body: Any = None,
        api_arg: dict[str, Any] | None = None,
        content: bytes | None = None,
    ) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self._token()}"}
        kwargs: dict[str, Any] = {}
        if api_arg is not None:
            # Dropbox-API-Arg must be ASCII; json.dumps escapes non-ASCII paths
            headers["Dropbox-API-Arg"] = json.dumps(api_arg)
        if content is not None:
            headers["Content-Type"] = "application/octet-stream"
            kwargs["content"] = content
        elif json_body is not None:
            kwargs["json"] = json_body

        try:
            resp = self._http.post(url, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            raise TransportError(f"Dropbox {action} failed: {e}") from e

        if resp.status_code != 200:
            raise _error_from_response(resp, action)
        return resp

    # -- Operations --

    def list_folder(self, path: str, cursor: str | None = None) -> ListingPage:
        """First page of a recursive listing, or the next page after cursor.

        When a cursor is given the path is ignored (the cursor encodes it).
        """
        if not cursor:
            log.debug(f"list_folder(path={path!r})")
            resp = self._post(
                f"{API_BASE}/files/list_folder",
                "list_folder",
                json_body={
                    "path": "" if path in ("", "/") else path,
                    "recursive": True,
                    "include_deleted": False,
                    "include_non_downloadable_files": False,
                },
            )
        else:
            log.debug("list_folder/continue")
            resp = self._post(
                f"{API_BASE}/files/list_folder/continue",
                "list_folder/continue",
                json_body={"cursor": cursor},
            )
        body = _json_body(resp, "list_folder")
        try:
            return parse_page(body)
        except (AttributeError, TypeError, ValueError) as e:
            raise TransportError(
                f"Dropbox list_folder returned a malformed page: {e}", status=resp.status_code
            ) from e

    def download(self, path: str) -> bytes:
        resp = self._post(
            f"{CONTENT_BASE}/files/download",
            "download",
            api_arg={"path": path},
        )
        return resp.content

    def upload(self, path: str, data: bytes) -> dict[str, Any]:
        """Write data to path, overwriting any existing file (no autorename)."""
        resp = self._post(
            f"{CONTENT_BASE}/files/upload",
            "upload",
            api_arg={
                "path": path,
                "mode": "overwrite",
                "autorename": False,
                "mute": True,
            },
            content=data,
        )
        return _json_body(resp, "upload")

    def get_current_account(self) -> dict[str, Any]:
        resp = self._post(f"{API_BASE}/users/get_current_account", "get_current_account")
        return _json_body(resp, "get_current_account")
