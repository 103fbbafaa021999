# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/komodoctl/api/errors.py
from __future__ import annotations

from typing import Optional


class KomodoApiError(RuntimeError):
    """
    Base class for control-plane failures.

    status:    HTTP status code, or None when no response was received
    body:      response body text, verbatim
    operation: envelope "type" of the request that failed
    """

    def __init__(
        self,
        message: str,
        *,
        status: Optional[int] = None,
        body: str = "",
        operation: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.body = body
        self.operation = operation


class TransientRemoteError(KomodoApiError):
    """The control plane reported the target object as busy."""


class FatalRemoteError(KomodoApiError):
    """Any other non-200 response. Never retried."""


class NotFoundError(FatalRemoteError):
    """The addressed object does not exist."""


class RemoteConnectionError(FatalRemoteError):
    """The request did not produce a response (DNS, refused, timeout)."""


class MalformedResponseError(FatalRemoteError):
    """A 200 response whose body is not the expected JSON document."""


class MissingCredentialsError(KomodoApiError):
    """Raised before any request is sent when a required secret is not configured."""
