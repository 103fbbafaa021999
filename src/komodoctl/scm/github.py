# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/komodoctl/scm/github.py

from __future__ import annotations

import base64
import logging
import time
from typing import Any, Optional

import requests

from komodoctl.api.errors import MissingCredentialsError
from komodoctl.deploy.naming import DesiredState, EntityNames
from komodoctl.utils.execution import ExecutionContext

from .keys import extract_ssh_keys, generate_ssh_keypair, inject_ssh_keys

log = logging.getLogger("komodoctl")

RESOURCES_FILE = "resources.toml"
COMMITTER = {"name": "komodoctl", "email": "komodoctl@example.com"}


class SourceControlError(RuntimeError):
    def __init__(self, message: str, *, status: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status = status
        self.body = body


class GitHubRepositories:
    """
    Minimal GitHub REST client for the desired-state repository:
      - create private repo (auto-initialised so a default branch exists)
      - optionally upload a generated deploy key
      - commit resources.toml
      - delete repo (404 tolerated)
    """

    def __init__(
        self,
        *,
        token: Optional[str],
        org: Optional[str] = None,
        session: Optional[requests.Session] = None,
        api_url: str = "https://api.github.com",
        timeout_seconds: float = 30.0,
    ):
        if not token:
            raise MissingCredentialsError(
                "GitHub token is not set (source_control.token or GITHUB_TOKEN)"
            )
        self._token = token
        self.org = org or None
        self._session = session or requests.Session()
        self.api_url = api_url.rstrip("/")
        self._timeout = timeout_seconds
        self._owner: Optional[str] = None

    @classmethod
    def from_config(
        cls,
        cfg,
        session: Optional[requests.Session] = None,
    ) -> "GitHubRepositories":
        return cls(
            token=cfg.token,
            org=cfg.org,
            session=session,
            api_url=cfg.api_url,
            timeout_seconds=cfg.timeout_seconds,
        )

    # -----------------------
    # HTTP helpers
    # -----------------------
    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/vnd.github+json",
        }

    def _request(self, method: str, path: str, *, ok: tuple[int, ...], what: str, **kwargs: Any) -> requests.Response:
        url = f"{self.api_url}{path}"
        try:
            r = self._session.request(method, url, headers=self._headers(), timeout=self._timeout, **kwargs)
        except requests.RequestException as exc:
            raise SourceControlError(f"{what} failed: {exc}") from exc
        if r.status_code not in ok:
            raise SourceControlError(
                f"{what} failed: {r.status_code} {r.text}",
                status=r.status_code,
                body=r.text,
            )
        return r

    def owner(self) -> str:
        if self.org:
            return self.org
        if self._owner is None:
            r = self._request("GET", "/user", ok=(200,), what="Fetching authenticated user")
            self._owner = r.json()["login"]
        return self._owner

    def _default_branch(self, repo: str) -> str:
        r = self._request("GET", f"/repos/{self.owner()}/{repo}", ok=(200,), what=f"Fetching repository {repo}")
        return r.json().get("default_branch") or "main"

    # -----------------------
    # Repository lifecycle
    # -----------------------
    def create_repository(self, state: DesiredState, names: EntityNames, ctx: ExecutionContext) -> None:
        """Create the empty repository. Nothing else, so a failure here leaves nothing behind."""
        repo = names.repository
        path = f"/orgs/{self.org}/repos" if self.org else "/user/repos"
        payload = {
            "name": repo,
            "description": "Desired state managed by komodoctl",
            "private": True,
            "auto_init": True,
        }
        self._request("POST", path, ok=(201,), what=f"Creating repository {repo}", json=payload)
        log.info("created repository %s", repo)

    def publish_resources(self, state: DesiredState, names: EntityNames, ctx: ExecutionContext) -> None:
        """Upload a deploy key when credentials are requested, then commit resources.toml."""
        repo = names.repository
        contents = state.file_contents or ""
        message = f"Add {RESOURCES_FILE} via komodoctl"
        if state.generate_credentials:
            private_key, public_key = generate_ssh_keypair()
            self.upload_deploy_key(repo, public_key)
            contents = self._with_keys(repo, contents, private_key, public_key)
            message = f"Add {RESOURCES_FILE} with SSH keys via komodoctl"

        if contents:
            self._put_file(repo, contents, message, branch=self._default_branch(repo))

    def update_file(self, state: DesiredState, names: EntityNames, ctx: ExecutionContext) -> None:
        repo = names.repository
        branch = self._default_branch(repo)

        r = self._request(
            "GET",
            f"/repos/{self.owner()}/{repo}/contents/{RESOURCES_FILE}",
            ok=(200, 404),
            what=f"Reading {RESOURCES_FILE}",
            params={"ref": branch},
        )
        existing = r.json() if r.status_code == 200 else None
        sha = existing.get("sha") if existing else None

        contents = state.file_contents or ""
        if state.generate_credentials:
            keys = None
            if existing and existing.get("content"):
                current = base64.b64decode(existing["content"]).decode("utf-8", errors="replace")
                keys = extract_ssh_keys(current)
            if keys is None:
                keys = generate_ssh_keypair()
                self.upload_deploy_key(repo, keys[1])
            contents = self._with_keys(repo, contents, keys[0], keys[1])

        self._put_file(repo, contents, f"Update {RESOURCES_FILE} via komodoctl", branch=branch, sha=sha)

    @staticmethod
    def _with_keys(repo: str, contents: str, private_key: str, public_key: str) -> str:
        injected = inject_ssh_keys(contents, private_key, public_key)
        if injected == contents:
            log.warning(
                "%s: no environment = \"\"\"...\"\"\" block in %s; the deploy key was uploaded "
                "but SSH_PRIVATE_KEY/SSH_PUBLIC_KEY were not written",
                repo,
                RESOURCES_FILE,
            )
        return injected

    def delete_repository(self, names: EntityNames) -> None:
        r = self._request(
            "DELETE",
            f"/repos/{self.owner()}/{names.repository}",
            ok=(204, 404),
            what=f"Deleting repository {names.repository}",
        )
        if r.status_code == 404:
            log.info("repository %s already absent", names.repository)

    def upload_deploy_key(self, repo: str, public_key: str, *, read_only: bool = False) -> None:
        payload = {
            "title": f"komodoctl-deploy-key-{int(time.time())}",
            "key": public_key,
            "read_only": read_only,
        }
        self._request(
            "POST",
            f"/repos/{self.owner()}/{repo}/keys",
            ok=(201,),
            what=f"Uploading deploy key to {repo}",
            json=payload,
        )

    def _put_file(self, repo: str, contents: str, message: str, *, branch: str, sha: Optional[str] = None) -> None:
        payload: dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(contents.encode("utf-8")).decode("ascii"),
            "branch": branch,
            "committer": COMMITTER,
        }
        if sha:
            payload["sha"] = sha
        self._request(
            "PUT",
            f"/repos/{self.owner()}/{repo}/contents/{RESOURCES_FILE}",
            ok=(200, 201),
            what=f"Committing {RESOURCES_FILE} to {repo}",
            json=payload,
        )
