"""Client for the remote save endpoints.

The server is an external collaborator exposing two routes:

- ``POST /save/sync`` with body ``{"saveData": {...}}`` -> ``{"success": bool}``
- ``GET /save/load`` -> ``{"success": true, "saveData": {...}}`` or
  ``{"success": false, "error": "..."}``

Every call is a single attempt with a bounded timeout. Failures of any kind
(network, HTTP status, malformed body, ``success: false``) surface as
:class:`CloudTransportError`; callers decide how much to care.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

import requests
from pydantic import BaseModel, Field, ValidationError

from .persistence.errors import CloudTransportError

DEFAULT_TIMEOUT = 10.0


class SyncResponse(BaseModel):
    """Body returned by ``POST /save/sync``."""

    success: bool = Field(False, description="Whether the server stored the document")
    error: Optional[str] = Field(default=None, description="Server-side failure reason")


class LoadResponse(BaseModel):
    """Body returned by ``GET /save/load``."""

    success: bool = Field(False, description="Whether a document was found")
    saveData: Optional[Dict[str, Any]] = Field(default=None, description="The stored document")
    error: Optional[str] = Field(default=None, description="Server-side failure reason")


class CloudSyncClient:
    """Minimal HTTP client for pushing and pulling the current save.

    Usage:
        client = CloudSyncClient("https://deckrift.example", token="...")
        client.push(document)
        document = client.pull()
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
        user_agent: str = "deckrift-saves/1.0",
    ) -> None:
        if not base_url:
            raise ValueError("A base_url is required for cloud sync")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({"Accept": "application/json", "User-Agent": user_agent})
        if token:
            self._session.headers["Authorization"] = f"Bearer {token}"
        self._log = logging.getLogger(self.__class__.__name__)

    def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            resp = self._session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            raise CloudTransportError(f"{method} {path} failed: {exc}") from exc
        if not 200 <= resp.status_code < 300:
            raise CloudTransportError(f"{method} {path} failed: HTTP {resp.status_code} {resp.text[:200]}")
        try:
            body = resp.json()
        except ValueError as exc:
            raise CloudTransportError(f"{method} {path} returned a non-JSON body") from exc
        if not isinstance(body, dict):
            raise CloudTransportError(f"{method} {path} returned an unexpected body")
        return body

    def push(self, document: Mapping[str, Any]) -> None:
        """Upload ``document``. Raises CloudTransportError unless the server confirms."""
        body = self._request("POST", "/save/sync", json={"saveData": dict(document)})
        try:
            result = SyncResponse.model_validate(body)
        except ValidationError as exc:
            raise CloudTransportError(f"Malformed sync response: {exc}") from exc
        if not result.success:
            raise CloudTransportError(result.error or "Server rejected the save")
        self._log.debug("Pushed save '%s'", document.get("saveName"))

    def pull(self) -> Dict[str, Any]:
        """Download the remote document."""
        body = self._request("GET", "/save/load")
        try:
            result = LoadResponse.model_validate(body)
        except ValidationError as exc:
            raise CloudTransportError(f"Malformed load response: {exc}") from exc
        if not result.success:
            raise CloudTransportError(result.error or "No cloud save available")
        if result.saveData is None:
            raise CloudTransportError("Cloud response did not include saveData")
        return result.saveData

    def close(self) -> None:
        self._session.close()
