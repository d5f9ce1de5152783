import json

import pytest

from conftest import FakeRunner
from nodeboot.kube.kubectl import KubectlError, KubectlRunner


def test_kubeconfig_flag_prefixed():
    runner = FakeRunner()
    KubectlRunner(runner, kubeconfig="/tmp/kc").namespace_exists("apps")
    assert runner.calls[0].argv == [
        "kubectl", "--kubeconfig", "/tmp/kc", "get", "namespace", "apps", "-o", "name",
    ]


def test_exists_reflects_return_code():
    runner = FakeRunner(lambda argv: (1, "") if "missing" in argv else (0, ""))
    k = KubectlRunner(runner)
    assert k.secret_exists("present", "apps") is True
    assert k.secret_exists("missing", "apps") is False
    assert runner.calls[0].argv[-2:] == ["-n", "apps"]


def test_ensure_namespace_renders_then_applies():
    runner = FakeRunner(lambda argv: (0, "apiVersion: v1\nkind: Namespace\n"))
    KubectlRunner(runner).ensure_namespace("apps")

    render, apply = runner.calls
    assert render.argv == [
        "kubectl", "create", "namespace", "apps", "--dry-run=client", "-o", "yaml",
    ]
    assert apply.argv == ["kubectl", "apply", "-f", "-"]
    assert apply.input.startswith("apiVersion: v1")


def test_docker_registry_secret_is_applied_in_namespace():
    runner = FakeRunner(lambda argv: (0, "kind: Secret\n"))
    KubectlRunner(runner).ensure_docker_registry_secret(
        "ghcr-pull", "apps", server="ghcr.io", username="me", password="tok", email="a@b",
    )
    render, apply = runner.calls
    assert render.argv[1:7] == ["-n", "apps", "create", "secret", "docker-registry", "ghcr-pull"]
    assert "--docker-password=tok" in render.argv
    assert apply.argv[-2:] == ["-n", "apps"]
    assert apply.input == "kind: Secret\n"


def test_failure_raises_with_stderr():
    k = KubectlRunner(FakeRunner(lambda argv: (1, "")))
    with pytest.raises(KubectlError) as ei:
        k.apply_url("https://example.com/x.yaml")
    assert "rc=1" in str(ei.value) and "boom" in str(ei.value)


def test_wait_builds_arguments_and_timeout():
    runner = FakeRunner()
    KubectlRunner(runner).wait("deployment/argocd-server", "Available",
                               namespace="argocd", timeout_seconds=300)
    assert runner.commands() == [
        "kubectl wait --for=condition=Available deployment/argocd-server -n argocd --timeout=300s"
    ]


@pytest.mark.parametrize("payload,expected", [
    ({"items": []}, False),
    ({"items": [{"status": {"conditions": [{"type": "Ready", "status": "True"}]}}]}, True),
    ({"items": [
        {"status": {"conditions": [{"type": "Ready", "status": "True"}]}},
        {"status": {"conditions": [{"type": "Ready", "status": "False"}]}},
    ]}, False),
    ({"items": [{"status": {}}]}, False),
])
def test_nodes_ready(payload, expected):
    k = KubectlRunner(FakeRunner(lambda argv: (0, json.dumps(payload))))
    assert k.nodes_ready() is expected


def test_nodes_ready_false_when_api_unreachable():
    k = KubectlRunner(FakeRunner(lambda argv: (1, "")))
    assert k.nodes_ready() is False


def test_deployment_available_requires_existing_deployment():
    runner = FakeRunner(lambda argv: (1, ""))
    assert KubectlRunner(runner).deployment_available("argocd-server", "argocd") is False
    assert len(runner.calls) == 1


def test_invalid_json_raises():
    def responder(argv):
        return (0, "not json") if argv[-1] == "json" else (0, "")
    with pytest.raises(KubectlError):
        KubectlRunner(FakeRunner(responder)).deployment_available("argocd-server", "argocd")
