# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/komodoctl/api/operations.py

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping

from .client import ControlPlaneClient
from .errors import MalformedResponseError, NotFoundError

log = logging.getLogger("komodoctl")


def node_address(address: str, *, scheme: str = "https", port: int = 8120) -> str:
    return f"{scheme}://{address}:{port}"


class KomodoApi:
    """
    Typed control-plane operations on top of ControlPlaneClient.

    Deletes are idempotent: a NotFoundError means the object is already gone.
    """

    def __init__(self, client: ControlPlaneClient):
        self.client = client

    # -----------------------
    # Servers
    # -----------------------
    def create_server(self, name: str, address: str, tags: List[str]) -> Dict[str, Any]:
        return self.client.write(
            "CreateServer",
            name=name,
            config={"address": address},
            tags=list(tags),
        )

    def update_server(self, server: str, config: Mapping[str, Any]) -> Dict[str, Any]:
        return self.client.write("UpdateServer", id=server, config=dict(config))

    def enable_server(self, server: str) -> Dict[str, Any]:
        return self.update_server(server, {"enabled": True})

    def delete_server(self, server: str) -> None:
        self._delete("DeleteServer", server)

    def get_server(self, server: str) -> Dict[str, Any]:
        return self.client.read("GetServer", server=server)

    def get_server_state(self, server: str) -> Dict[str, Any]:
        return self.client.read("GetServerState", server=server)

    # -----------------------
    # Resource syncs
    # -----------------------
    def create_resource_sync(self, name: str, file_contents: str) -> Dict[str, Any]:
        return self.client.write(
            "CreateResourceSync",
            name=name,
            config={"file_contents": file_contents},
        )

    def delete_resource_sync(self, sync: str) -> None:
        self._delete("DeleteResourceSync", sync)

    def run_sync(self, sync: str) -> Dict[str, Any]:
        return self.client.execute("RunSync", sync=sync)

    # -----------------------
    # Procedures
    # -----------------------
    def run_procedure(self, procedure: str) -> Dict[str, Any]:
        return self.client.execute("RunProcedure", procedure=procedure)

    def delete_procedure(self, procedure: str) -> None:
        self._delete("DeleteProcedure", procedure)

    # -----------------------
    # Readiness predicates
    # -----------------------
    def server_is_reachable(self, server: str) -> bool:
        """True once the server exists and reports its configured address."""
        doc = self.get_server(server)
        if not isinstance(doc, dict):
            raise MalformedResponseError(
                f"GetServer returned an unexpected document: {doc!r}",
                status=200,
                operation="GetServer",
            )
        config = doc.get("config")
        return isinstance(config, dict) and "address" in config

    def server_is_ready(self, server: str, ready_status: str = "Ok") -> bool:
        doc = self.get_server_state(server)
        if not isinstance(doc, dict):
            raise MalformedResponseError(
                f"GetServerState returned an unexpected document: {doc!r}",
                status=200,
                operation="GetServerState",
            )
        return doc.get("status") == ready_status

    def _delete(self, operation: str, object_id: str) -> None:
        try:
            self.client.write(operation, id=object_id)
        except NotFoundError:
            log.info("%s: %s already absent", operation, object_id)
