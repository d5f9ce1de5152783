import pytest

from nodeboot.config.defaults import DEFAULT_NAMESPACES
from nodeboot.config.models import RegistryCredentials, Role
from nodeboot.errors import ConfigError
from nodeboot.roles.resolver import (
    InvalidJoinParametersError,
    InvalidRoleError,
    MissingJoinParametersError,
    resolve_inputs,
    resolve_role,
)


def test_server_defaults():
    cfg = resolve_role("server")
    assert cfg.role is Role.SERVER
    assert cfg.namespaces == list(DEFAULT_NAMESPACES)
    assert cfg.join_url is None and cfg.join_token is None
    assert cfg.install_k9s and cfg.install_argocd
    assert cfg.registry is None


def test_role_is_case_insensitive():
    assert resolve_role("  Agent ", "https://10.0.0.10:6443", "K10abc").role is Role.AGENT


@pytest.mark.parametrize("bad", ["worker", "", None, "master"])
def test_unknown_role_rejected(bad):
    with pytest.raises(InvalidRoleError) as ei:
        resolve_role(bad)
    assert "server, agent" in str(ei.value)


def test_agent_without_join_params():
    with pytest.raises(MissingJoinParametersError) as ei:
        resolve_role("agent")
    assert "join URL and join token" in str(ei.value)


def test_agent_with_empty_token():
    with pytest.raises(MissingJoinParametersError) as ei:
        resolve_role("agent", "https://10.0.0.10:6443", "   ")
    assert "join token" in str(ei.value)
    assert "join URL" not in str(ei.value)


def test_agent_with_malformed_url():
    with pytest.raises(InvalidJoinParametersError):
        resolve_role("agent", "10.0.0.10:6443", "K10abc")


def test_agent_join_params_are_trimmed():
    cfg = resolve_role("agent", " https://10.0.0.10:6443 ", " K10abc\n")
    assert cfg.join_url == "https://10.0.0.10:6443"
    assert cfg.join_token == "K10abc"


def test_server_ignores_join_params_validation():
    cfg = resolve_role("server", join_url="not-a-url")
    assert cfg.role is Role.SERVER


def test_namespaces_deduplicated_and_blank_dropped():
    cfg = resolve_role("server", namespaces=["apps", " apps", "", "tools"])
    assert cfg.namespaces == ["apps", "tools"]


def test_explicit_empty_namespaces_kept_empty():
    assert resolve_role("server", namespaces=[]).namespaces == []


def test_registry_needs_user_and_token():
    assert resolve_role("server", registry={"username": "me"}).registry is None
    cfg = resolve_role("server", registry={"username": "me", "token": "tok", "server": ""})
    assert cfg.registry == RegistryCredentials(username="me", token="tok")
    assert cfg.registry.server == "ghcr.io"


def test_token_not_in_repr():
    cfg = resolve_role("agent", "https://s:6443", "supersecret",
                       registry={"username": "me", "token": "ghp_secret"})
    assert "supersecret" not in repr(cfg)
    assert "ghp_secret" not in repr(cfg)


def test_invalid_option_becomes_config_error():
    with pytest.raises(ConfigError):
        resolve_role("server", timeouts={"node_ready_seconds": 0})


def test_resolve_inputs_defaults_to_server():
    cfg = resolve_inputs({"install_k9s": False, "k3s_version": None})
    assert cfg.role is Role.SERVER
    assert cfg.install_k9s is False
    assert cfg.k3s_version  # None falls back to default


def test_unresolved_placeholders_count_as_missing():
    assert resolve_role("server", registry={"username": "me", "token": "${GHCR_TOKEN}"}).registry is None
    with pytest.raises(MissingJoinParametersError):
        resolve_role("agent", "https://10.0.0.10:6443", "${K3S_TOKEN}")
