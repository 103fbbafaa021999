# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/komodoctl/api/client.py

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, Iterable, Optional

import requests

from .errors import (
    FatalRemoteError,
    MalformedResponseError,
    MissingCredentialsError,
    NotFoundError,
    RemoteConnectionError,
    TransientRemoteError,
)

log = logging.getLogger("komodoctl")

DEFAULT_BUSY_MARKERS = ("busy",)
DEFAULT_NOT_FOUND_MARKERS = ("not found", "did not find", "no server matching")


class CallKind(str, Enum):
    WRITE = "write"
    READ = "read"
    EXECUTE = "execute"


def envelope(operation: str, **params: Any) -> Dict[str, Any]:
    """Build the request document the control plane expects."""
    return {"type": operation, "params": params}


class ControlPlaneClient:
    """
    Thin, non-retrying client for the control-plane write/read/execute API.

    Every call is an authenticated POST of a {"type", "params"} envelope to
    `endpoint + kind`. Non-200 responses are classified:
      - body mentions a busy marker   -> TransientRemoteError
      - 404 or a not-found marker     -> NotFoundError
      - anything else                 -> FatalRemoteError
    Retrying is left to the caller (see utils.retry).
    """

    def __init__(
        self,
        *,
        endpoint: str,
        api_key: Optional[str],
        api_secret: Optional[str],
        session: Optional[requests.Session] = None,
        timeout_seconds: float = 30.0,
        busy_markers: Iterable[str] = DEFAULT_BUSY_MARKERS,
        not_found_markers: Iterable[str] = DEFAULT_NOT_FOUND_MARKERS,
    ):
        if not endpoint:
            raise MissingCredentialsError("Control-plane endpoint is not configured")
        if not api_key or not api_secret:
            raise MissingCredentialsError(
                "Control-plane API key/secret are not configured "
                "(set control_plane.api_key/api_secret or KOMODO_API_KEY/KOMODO_API_SECRET)"
            )

        self.endpoint = endpoint if endpoint.endswith("/") else endpoint + "/"
        self._api_key = api_key
        self._api_secret = api_secret
        self._session = session or requests.Session()
        self._timeout = timeout_seconds
        self._busy_markers = tuple(m.lower() for m in busy_markers)
        self._not_found_markers = tuple(m.lower() for m in not_found_markers)

    @classmethod
    def from_config(cls, cfg, session: Optional[requests.Session] = None) -> "ControlPlaneClient":
        return cls(
            endpoint=cfg.endpoint,
            api_key=cfg.api_key,
            api_secret=cfg.api_secret,
            session=session,
            timeout_seconds=cfg.timeout_seconds,
            busy_markers=cfg.busy_markers,
            not_found_markers=cfg.not_found_markers,
        )

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "X-Api-Key": self._api_key,
            "X-Api-Secret": self._api_secret,
        }

    # -----------------------
    # Calls
    # -----------------------
    def call(self, payload: Dict[str, Any], kind: CallKind) -> Dict[str, Any]:
        operation = payload.get("type")
        url = self.endpoint + CallKind(kind).value
        log.debug("POST %s type=%s", url, operation)

        try:
            r = self._session.post(url, json=payload, headers=self._headers(), timeout=self._timeout)
        except requests.RequestException as exc:
            raise RemoteConnectionError(
                f"{operation} request failed: {exc}",
                operation=operation,
            ) from exc

        if r.status_code != 200:
            raise self._classify(operation, r.status_code, r.text)

        if not r.text.strip():
            return {}
        try:
            return r.json()
        except ValueError as exc:
            raise MalformedResponseError(
                f"{operation} returned a non-JSON body: {r.text}",
                status=r.status_code,
                body=r.text,
                operation=operation,
            ) from exc

    def write(self, operation: str, **params: Any) -> Dict[str, Any]:
        return self.call(envelope(operation, **params), CallKind.WRITE)

    def read(self, operation: str, **params: Any) -> Dict[str, Any]:
        return self.call(envelope(operation, **params), CallKind.READ)

    def execute(self, operation: str, **params: Any) -> Dict[str, Any]:
        return self.call(envelope(operation, **params), CallKind.EXECUTE)

    def _classify(self, operation: Optional[str], status: int, body: str):
        message = f"{operation} returned HTTP {status}: {body}"
        lowered = body.lower()
        kwargs = {"status": status, "body": body, "operation": operation}

        if any(m in lowered for m in self._busy_markers):
            return TransientRemoteError(message, **kwargs)
        if status == 404 or any(m in lowered for m in self._not_found_markers):
            return NotFoundError(message, **kwargs)
        return FatalRemoteError(message, **kwargs)
