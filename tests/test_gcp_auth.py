import base64
import os
import stat

import pytest

from gke_deploy import gcp_auth
from gke_deploy.config import PluginConfig
from gke_deploy.exceptions import CommandError, ConfigError


SERVICE_ACCOUNT_KEY = """{
  "type": "service_account",
  "project_id": "nyt-project-dev",
  "private_key_id": "key-id",
  "private_key": "shhh",
  "client_email": "gke-sa@nyt-project-dev.iam.gserviceaccount.com",
  "client_id": "client-id"
}"""


def _cfg(tmp_path, **overrides) -> PluginConfig:
    values = dict(
        token=SERVICE_ACCOUNT_KEY,
        cluster="cluster-0",
        project="test-project",
        zone="us-east1-b",
        staging_dir=str(tmp_path),
    )
    values.update(overrides)
    return PluginConfig(**values)


def test_decode_token_accepts_raw_and_base64() -> None:
    encoded = base64.b64encode(SERVICE_ACCOUNT_KEY.encode("utf-8")).decode("ascii")
    # 76자 단위로 줄바꿈된 base64 도 허용
    wrapped = "\n".join(encoded[i:i + 76] for i in range(0, len(encoded), 76))

    assert gcp_auth.decode_token(SERVICE_ACCOUNT_KEY) == SERVICE_ACCOUNT_KEY
    assert gcp_auth.decode_token(encoded) == SERVICE_ACCOUNT_KEY
    assert gcp_auth.decode_token(wrapped) == SERVICE_ACCOUNT_KEY


def test_decode_token_keeps_plain_tokens() -> None:
    assert gcp_auth.decode_token("token123") == "token123"


def test_get_project_from_token() -> None:
    assert gcp_auth.get_project_from_token(SERVICE_ACCOUNT_KEY) == "nyt-project-dev"
    assert gcp_auth.get_project_from_token("not json") == ""
    assert gcp_auth.get_project_from_token('{"type": "service_account"}') == ""


def test_resolve_project_prefers_explicit(tmp_path) -> None:
    assert gcp_auth.resolve_project(_cfg(tmp_path)) == "test-project"
    assert gcp_auth.resolve_project(_cfg(tmp_path, project="")) == "nyt-project-dev"

    with pytest.raises(ConfigError):
        gcp_auth.resolve_project(_cfg(tmp_path, project="", token="{}"))


def test_write_and_remove_key_file(tmp_path) -> None:
    encoded = base64.b64encode(SERVICE_ACCOUNT_KEY.encode("utf-8")).decode("ascii")
    cfg = _cfg(tmp_path, token=encoded)

    path = gcp_auth.write_key_file(cfg)

    assert path == os.path.join(str(tmp_path), "gcloud.json")
    with open(path, encoding="utf-8") as f:
        assert f.read() == SERVICE_ACCOUNT_KEY
    assert stat.S_IMODE(os.stat(path).st_mode) == 0o600

    gcp_auth.remove_key_file(path)
    assert not os.path.exists(path)


def test_remove_key_file_only_warns(tmp_path, caplog: pytest.LogCaptureFixture) -> None:
    gcp_auth.remove_key_file(str(tmp_path / "missing.json"))

    assert "키 파일 삭제 실패" in caplog.text


@pytest.mark.parametrize(
    "location, expected",
    [
        ({"zone": "us-east1-b"}, ["--zone", "us-east1-b"]),
        ({"zone": "", "region": "us-west1"}, ["--region", "us-west1"]),
    ],
)
def test_fetch_credentials(tmp_path, fake_runner, location, expected) -> None:
    cfg = _cfg(tmp_path, **location)

    gcp_auth.fetch_credentials(cfg, "test-project", fake_runner, "/tmp/gcloud.json")

    assert fake_runner.calls == [
        ["gcloud", "auth", "activate-service-account", "--key-file", "/tmp/gcloud.json"],
        ["gcloud", "container", "clusters", "get-credentials", "cluster-0", "--project", "test-project", *expected],
    ]


def test_fetch_credentials_stops_on_auth_failure(tmp_path, fake_runner) -> None:
    fake_runner.fail("gcloud", "auth", "activate-service-account", "--key-file", "/tmp/gcloud.json")

    with pytest.raises(CommandError):
        gcp_auth.fetch_credentials(_cfg(tmp_path), "test-project", fake_runner, "/tmp/gcloud.json")

    assert len(fake_runner.calls) == 1
