import pytest
from pydantic import ValidationError

from komodoctl.deploy.errors import InvalidNameError
from komodoctl.deploy.naming import DesiredState, derive_names, render_context_sync, sanitize


def test_derive_names_follows_fixed_convention():
    n = derive_names("WebApp", "acme")
    assert n.server == "server-webapp"
    assert n.context_sync == "WebApp_ContextWare"
    assert n.setup_sync == "WebApp_ResourceSetup"
    assert n.apply_procedure == "WebApp_ProcedureApply"
    assert n.destroy_procedure == "WebApp_ProcedureDestroy"
    assert n.restart_procedure == "WebApp_ProcedureRestart"
    assert n.repository == "webapp_syncresources"
    assert n.repository_path == "acme/webapp_syncresources"
    assert n.procedures == ("WebApp_ProcedureApply", "WebApp_ProcedureDestroy", "WebApp_ProcedureRestart")


def test_derive_names_is_deterministic():
    assert derive_names("a b", "x") == derive_names("a b", "x")


@pytest.mark.parametrize("raw,expected", [
    ("My App", "my-app"),
    ("web/app#1", "webapp1"),
    ("Already_ok.v2", "already_ok.v2"),
    ("Ünïcode app", "ncode-app"),
])
def test_sanitize(raw, expected):
    assert sanitize(raw) == expected


@pytest.mark.parametrize("name", ["", "   ", "###", "!!!", "東京"])
def test_unusable_names_are_rejected(name):
    with pytest.raises(InvalidNameError):
        derive_names(name, "x")


def test_context_sync_declares_setup_sync():
    n = derive_names("web", "acme")
    toml = render_context_sync(n, "acme")
    assert 'name = "web_ResourceSetup"' in toml
    assert 'repo = "acme/web_syncresources"' in toml
    assert 'git_account = "acme"' in toml
    assert 'resource_path = ["resources.toml"]' in toml


def test_desired_state_is_frozen_and_validated():
    s = DesiredState(name="web", node_address="10.0.0.5")
    with pytest.raises(ValidationError):
        s.name = "other"
    with pytest.raises(ValidationError):
        DesiredState(name=" ", node_address="10.0.0.5")
