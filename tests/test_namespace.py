import os
import re

import pytest

from gke_deploy.config import PluginConfig
from gke_deploy.kubectl_version import DryRunFlag
from gke_deploy.namespace import ensure_namespace, namespace_manifest, sanitize_namespace


def _cfg(tmp_path, **overrides) -> PluginConfig:
    values = dict(
        token="{}",
        cluster="cluster-0",
        zone="us-east1-b",
        namespace="test-ns",
        staging_dir=str(tmp_path),
    )
    values.update(overrides)
    return PluginConfig(**values)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("test-ns", "test-ns"),
        ("TEST-NS", "test-ns"),
        ("Test-Ns", "test-ns"),
        ("feature/1892_test_ns", "feature-1892-test-ns"),
        ("Feature/1892-TEST-NS", "feature-1892-test-ns"),
        ("a//__b", "a-b"),
        ("v1.2", "v1.2"),
        ("", ""),
    ],
)
def test_sanitize_namespace(raw: str, expected: str) -> None:
    assert sanitize_namespace(raw) == expected


@pytest.mark.parametrize("raw", ["", "Feature/1892-TEST-NS", "  spaces  ", "ünïcödé!!", "UPPER_lower.9", "---"])
def test_sanitize_namespace_is_idempotent_and_total(raw: str) -> None:
    once = sanitize_namespace(raw)

    assert sanitize_namespace(once) == once
    assert re.fullmatch(r"[a-z0-9.-]*", once)


def test_namespace_manifest() -> None:
    assert namespace_manifest("test-ns") == (
        "\n---\napiVersion: v1\nkind: Namespace\nmetadata:\n  name: test-ns\n"
    )


def test_empty_namespace_is_a_noop(tmp_path, fake_runner) -> None:
    assert ensure_namespace(_cfg(tmp_path, namespace=""), "test-project", fake_runner, DryRunFlag.CLIENT) == ""
    assert fake_runner.calls == []


@pytest.mark.parametrize(
    "location, context",
    [
        ({"zone": "us-east1-b"}, "gke_test-project_us-east1-b_cluster-0"),
        ({"zone": "", "region": "us-west1", "cluster": "regional-cluster"}, "gke_test-project_us-west1_regional-cluster"),
    ],
)
def test_ensure_namespace(tmp_path, fake_runner, location, context) -> None:
    cfg = _cfg(tmp_path, **location)
    ns_path = os.path.join(str(tmp_path), "namespace.yml")

    ns = ensure_namespace(cfg, "test-project", fake_runner, DryRunFlag.CLIENT)

    assert ns == "test-ns"
    assert fake_runner.calls == [
        ["kubectl", "config", "set-context", context, "--namespace", "test-ns"],
        ["kubectl", "apply", "--filename", ns_path],
    ]


def test_ensure_namespace_sanitizes_and_honors_dry_run(tmp_path, fake_runner) -> None:
    cfg = _cfg(tmp_path, namespace="Feature/1892-TEST-NS", dry_run=True)
    ns_path = os.path.join(str(tmp_path), "namespace.yml")

    ns = ensure_namespace(cfg, "test-project", fake_runner, DryRunFlag.CLIENT)

    assert ns == "feature-1892-test-ns"
    assert fake_runner.calls == [
        ["kubectl", "config", "set-context", "gke_test-project_us-east1-b_cluster-0", "--namespace", "feature-1892-test-ns"],
        ["kubectl", "apply", "--dry-run=client", "--filename", ns_path],
    ]
    with open(ns_path, encoding="utf-8") as f:
        assert "  name: feature-1892-test-ns\n" in f.read()


def test_ensure_namespace_server_side(tmp_path, fake_runner) -> None:
    cfg = _cfg(tmp_path, server_side=True, kubectl_version="1.17", extra_kubectl_versions=["1.17"])

    ensure_namespace(cfg, "test-project", fake_runner, DryRunFlag.SERVER_PRE_118)

    assert fake_runner.calls[-1][:3] == ["kubectl.1.17", "apply", "--server-side"]


def test_create_namespace_opt_out(tmp_path, fake_runner) -> None:
    cfg = _cfg(tmp_path, namespace="Feature/1892-TEST-NS", create_namespace=False)

    ns = ensure_namespace(cfg, "test-project", fake_runner, DryRunFlag.CLIENT)

    assert ns == "feature-1892-test-ns"
    assert fake_runner.calls == [
        ["kubectl", "config", "set-context", "gke_test-project_us-east1-b_cluster-0", "--namespace", "feature-1892-test-ns"],
    ]
    assert not os.path.exists(os.path.join(str(tmp_path), "namespace.yml"))
