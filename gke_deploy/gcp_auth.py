"""
gcp_auth
--------

서비스 계정 키를 임시 파일로 만들고 gcloud 인증 및
kubectl 용 클러스터 자격 증명(get-credentials)을 가져오는 모듈.

키 파일은 실행이 끝나면 (성공/실패와 무관하게) 삭제한다.
"""

from __future__ import annotations

import base64
import binascii
import json
import os

from .config import PluginConfig
from .exceptions import ConfigError
from .logging_utils import get_logger
from .subprocess_utils import Runner


logger = get_logger(__name__)

GCLOUD_CMD = "gcloud"
KEY_FILENAME = "gcloud.json"
CREDENTIALS_ENV = "GOOGLE_APPLICATION_CREDENTIALS"


def key_path(cfg: PluginConfig) -> str:
    return os.path.join(cfg.staging_dir, KEY_FILENAME)


def decode_token(token: str) -> str:
    """
    base64 로 감싼 서비스 계정 JSON 이면 풀어서 반환하고, 아니면 그대로 반환한다.
    """
    compact = "".join(token.split())
    try:
        decoded = base64.b64decode(compact, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return token
    # 우연히 base64 로 읽히는 평문 토큰은 그대로 둔다.
    if not decoded.lstrip().startswith("{"):
        return token
    return decoded


def get_project_from_token(token: str) -> str:
    try:
        data = json.loads(decode_token(token))
    except ValueError:
        return ""
    if not isinstance(data, dict):
        return ""
    return str(data.get("project_id") or "")


def resolve_project(cfg: PluginConfig) -> str:
    """명시적 project 가 없으면 서비스 계정 키의 project_id 를 사용한다."""
    if cfg.project:
        return cfg.project

    logger.info("서비스 계정 키에서 Project ID 를 읽습니다.")
    project = get_project_from_token(cfg.token)
    if not project:
        raise ConfigError("필수 값 누락: project (PLUGIN_PROJECT 또는 키의 project_id)")
    return project


def write_key_file(cfg: PluginConfig) -> str:
    """
    gcloud 가 읽을 키 파일을 0600 권한으로 기록한다.
    (호스트가 아니라 일회용 플러그인 컨테이너 안의 파일)
    """
    path = key_path(cfg)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(decode_token(cfg.token))
    return path


def remove_key_file(path: str) -> None:
    """
    키 파일 삭제. 실패해도 배포를 중단하지 않고 경고만 남긴다.
    어차피 일회용 컨테이너이므로 종료와 함께 사라진다.
    """
    try:
        os.remove(path)
    except OSError as e:
        logger.warning("키 파일 삭제 실패: %s", e)


def fetch_credentials(cfg: PluginConfig, project: str, runner: Runner, path: str) -> None:
    """
    gcloud 서비스 계정 인증 후 kubectl 자격 증명을 가져온다.
    """
    runner.run(GCLOUD_CMD, "auth", "activate-service-account", "--key-file", path)

    args = [
        "container",
        "clusters",
        "get-credentials",
        cfg.cluster,
        "--project",
        project,
    ]
    # validate() 가 zone/region 중 정확히 하나만 허용한다.
    if cfg.zone:
        args += ["--zone", cfg.zone]
    if cfg.region:
        args += ["--region", cfg.region]

    runner.run(GCLOUD_CMD, *args)
    logger.info("클러스터 자격 증명 준비 완료: %s (%s)", cfg.cluster, cfg.location)
