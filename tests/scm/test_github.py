import base64
import json
import logging

import pytest

from komodoctl.api.errors import MissingCredentialsError
from komodoctl.deploy.errors import WorkflowError
from komodoctl.deploy.executor import WorkflowExecutor
from komodoctl.deploy.naming import DesiredState, derive_names
from komodoctl.deploy.planner import PlanBuilder
from komodoctl.scm.github import GitHubRepositories, SourceControlError
from komodoctl.scm.keys import extract_ssh_keys


class Resp:
    def __init__(self, status_code, doc=None):
        self.status_code = status_code
        self._doc = doc
        self.text = json.dumps(doc) if doc is not None else ""

    def json(self):
        return self._doc


class FakeGitHub:
    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def request(self, method, url, headers=None, timeout=None, **kwargs):
        path = url.replace("https://api.github.com", "")
        self.requests.append((method, path, kwargs.get("json")))
        return self.routes.get((method, path), Resp(500, {"message": "unexpected"}))

    def sent(self, method, path):
        return [body for m, p, body in self.requests if m == method and p == path]


NAMES = derive_names("Web", "acme")
REPO = "/repos/acme/web_syncresources"
FILE = REPO + "/contents/resources.toml"
CONTENTS = 'environment = """\nA=1"""\n'


def _routes(extra=None):
    routes = {
        ("POST", "/orgs/acme/repos"): Resp(201, {"name": "web_syncresources"}),
        ("GET", REPO): Resp(200, {"default_branch": "trunk"}),
        ("PUT", FILE): Resp(201, {}),
        ("POST", REPO + "/keys"): Resp(201, {}),
        ("DELETE", REPO): Resp(204),
    }
    routes.update(extra or {})
    return routes


def _repos(session):
    return GitHubRepositories(token="t", org="acme", session=session)


def test_missing_token_fails_fast():
    with pytest.raises(MissingCredentialsError):
        GitHubRepositories(token=None)


def test_create_repository_only_creates(ctx, sleeps):
    gh = FakeGitHub(_routes())
    state = DesiredState(name="Web", node_address="x", file_contents=CONTENTS, generate_credentials=True)
    _repos(gh).create_repository(state, NAMES, ctx)

    created = gh.sent("POST", "/orgs/acme/repos")[0]
    assert created["name"] == "web_syncresources"
    assert created["private"] is True and created["auto_init"] is True
    assert [m for m, _, _ in gh.requests] == ["POST"]
    assert sleeps == []


def test_publish_resources_commits_contents(ctx):
    gh = FakeGitHub(_routes())
    state = DesiredState(name="Web", node_address="x", file_contents=CONTENTS)
    _repos(gh).publish_resources(state, NAMES, ctx)

    put = gh.sent("PUT", FILE)[0]
    assert put["branch"] == "trunk"
    assert base64.b64decode(put["content"]).decode() == CONTENTS
    assert gh.sent("POST", REPO + "/keys") == []


def test_publish_resources_with_credentials_uploads_key_and_injects(ctx):
    gh = FakeGitHub(_routes())
    state = DesiredState(name="Web", node_address="x", file_contents=CONTENTS, generate_credentials=True)
    _repos(gh).publish_resources(state, NAMES, ctx)

    key = gh.sent("POST", REPO + "/keys")[0]
    assert key["key"].startswith("ssh-ed25519 ")
    committed = base64.b64decode(gh.sent("PUT", FILE)[0]["content"]).decode()
    private, public = extract_ssh_keys(committed)
    assert public == key["key"]


def test_publish_resources_without_contents_skips_commit(ctx):
    gh = FakeGitHub(_routes())
    _repos(gh).publish_resources(DesiredState(name="Web", node_address="x"), NAMES, ctx)
    assert gh.sent("PUT", FILE) == []


def test_credentials_without_environment_block_warn(ctx, caplog):
    gh = FakeGitHub(_routes())
    contents = 'environment = """\nA="quoted"\n"""\n'
    state = DesiredState(name="Web", node_address="x", file_contents=contents, generate_credentials=True)
    with caplog.at_level(logging.WARNING, logger="komodoctl"):
        _repos(gh).publish_resources(state, NAMES, ctx)

    assert len(gh.sent("POST", REPO + "/keys")) == 1
    assert base64.b64decode(gh.sent("PUT", FILE)[0]["content"]).decode() == contents
    assert any("SSH_PRIVATE_KEY" in r.getMessage() for r in caplog.records if r.levelno == logging.WARNING)


def test_create_failure_carries_status_and_body(ctx):
    gh = FakeGitHub(_routes({("POST", "/orgs/acme/repos"): Resp(422, {"message": "name already exists"})}))
    with pytest.raises(SourceControlError) as ei:
        _repos(gh).create_repository(DesiredState(name="Web", node_address="x"), NAMES, ctx)
    assert ei.value.status == 422
    assert "already exists" in ei.value.body


def test_rejected_deploy_key_deletes_the_new_repository(fake_api, rng, ctx, sleeps):
    gh = FakeGitHub(_routes({("POST", REPO + "/keys"): Resp(422, {"message": "key is already in use"})}))
    builder = PlanBuilder(api=fake_api, git_account="acme", scm=_repos(gh), rng=rng)
    state = DesiredState(name="Web", node_address="10.0.0.5", file_contents=CONTENTS, generate_credentials=True)

    with pytest.raises(WorkflowError) as ei:
        WorkflowExecutor(ctx=ctx).run(builder.create_plan(state))
    assert ei.value.failed_step == "publish-resources"
    assert isinstance(ei.value.cause, SourceControlError)
    assert gh.sent("DELETE", REPO) == [None]
    assert gh.sent("PUT", FILE) == []
    assert fake_api.called("create_server") == []


def test_update_file_preserves_existing_keys(ctx):
    existing = 'environment = """\nA=0\nSSH_PRIVATE_KEY=old\\nkey\nSSH_PUBLIC_KEY=ssh-ed25519 OLD"""\n'
    gh = FakeGitHub(_routes({
        ("GET", FILE): Resp(200, {"sha": "abc123", "content": base64.b64encode(existing.encode()).decode()}),
    }))
    state = DesiredState(name="Web", node_address="x", file_contents=CONTENTS, generate_credentials=True)
    _repos(gh).update_file(state, NAMES, ctx)

    put = gh.sent("PUT", FILE)[0]
    assert put["sha"] == "abc123"
    committed = base64.b64decode(put["content"]).decode()
    assert extract_ssh_keys(committed) == ("old\nkey", "ssh-ed25519 OLD")
    assert gh.sent("POST", REPO + "/keys") == []


def test_update_file_creates_missing_file(ctx):
    gh = FakeGitHub(_routes({("GET", FILE): Resp(404, {"message": "Not Found"})}))
    _repos(gh).update_file(DesiredState(name="Web", node_address="x", file_contents=CONTENTS), NAMES, ctx)
    assert "sha" not in gh.sent("PUT", FILE)[0]


@pytest.mark.parametrize("status", [204, 404])
def test_delete_repository_is_idempotent(status):
    gh = FakeGitHub(_routes({("DELETE", REPO): Resp(status)}))
    _repos(gh).delete_repository(NAMES)
    assert gh.sent("DELETE", REPO) == [None]


def test_owner_falls_back_to_authenticated_user(ctx):
    gh = FakeGitHub({
        ("GET", "/user"): Resp(200, {"login": "octo"}),
        ("POST", "/user/repos"): Resp(201, {}),
        ("DELETE", "/repos/octo/web_syncresources"): Resp(204),
    })
    repos = GitHubRepositories(token="t", session=gh)
    repos.delete_repository(NAMES)
    repos.delete_repository(NAMES)
    assert gh.sent("GET", "/user") == [None]
