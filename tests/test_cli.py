import os

import pytest
from click.testing import CliRunner

from gke_deploy import cli
from gke_deploy.exceptions import SecretApplyError


@pytest.fixture(autouse=True)
def isolated_environ(monkeypatch: pytest.MonkeyPatch) -> None:
    # .env 로드가 실제 프로세스 환경을 바꾸지 않도록 복사본으로 교체
    monkeypatch.setattr(os, "environ", dict(os.environ))
    monkeypatch.setattr(cli, "setup_logging", lambda verbosity: None)


@pytest.fixture
def plugin_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("PLUGIN_PROJECT", "PLUGIN_ZONE", "PLUGIN_NAMESPACE", "PLUGIN_DRY_RUN", "PLUGIN_VERBOSE"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("PLUGIN_TOKEN", '{"project_id": "test-project"}')
    monkeypatch.setenv("PLUGIN_REGION", "us-west1")
    monkeypatch.setenv("PLUGIN_CLUSTER", "cluster-0")


def test_plan_prints_summary(plugin_env, tmp_path) -> None:
    (tmp_path / ".env").write_text("PLUGIN_NAMESPACE=Team/App\nSECRET_DB=hunter2\n", encoding="utf-8")

    result = CliRunner().invoke(cli.main, ["-C", str(tmp_path), "plan", "-a"])

    assert result.exit_code == 0, result.output
    assert "- namespace: team-app" in result.output
    assert "SECRET_DB=VALUE REDACTED" in result.output
    assert "hunter2" not in result.output


def test_plan_config_error_exits_1(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    for name in ("PLUGIN_TOKEN", "TOKEN", "PLUGIN_ZONE", "PLUGIN_REGION", "PLUGIN_CLUSTER"):
        monkeypatch.delenv(name, raising=False)

    result = CliRunner().invoke(cli.main, ["-C", str(tmp_path), "plan"])

    assert result.exit_code == 1
    assert "[ERROR] 설정 로드 실패" in result.output


def test_deploy_is_the_default_command(plugin_env, monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    seen = {}

    def fake_run_deploy(cfg, *, base_dir):
        seen["cfg"] = cfg
        seen["base_dir"] = base_dir
        return "# Deploy summary"

    monkeypatch.setattr(cli, "run_deploy", fake_run_deploy)

    result = CliRunner().invoke(cli.main, ["-C", str(tmp_path)])

    assert result.exit_code == 0, result.output
    assert "# Deploy summary" in result.output
    assert seen["base_dir"] == str(tmp_path)
    assert seen["cfg"].dry_run is False


def test_deploy_dry_run_flag(plugin_env, monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    seen = {}

    def fake_run_deploy(cfg, *, base_dir):  # noqa: ARG001
        seen["cfg"] = cfg
        return "ok"

    monkeypatch.setattr(cli, "run_deploy", fake_run_deploy)

    result = CliRunner().invoke(cli.main, ["-C", str(tmp_path), "deploy", "--dry-run"])

    assert result.exit_code == 0, result.output
    assert seen["cfg"].dry_run is True


def test_deploy_failure_exits_1(plugin_env, monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    def failing(cfg, *, base_dir):  # noqa: ARG001
        raise SecretApplyError("시크릿 매니페스트 적용 실패 (kubectl output redacted): exit=1")

    monkeypatch.setattr(cli, "run_deploy", failing)

    result = CliRunner().invoke(cli.main, ["-C", str(tmp_path), "deploy"])

    assert result.exit_code == 1
    assert "kubectl output redacted" in result.output
