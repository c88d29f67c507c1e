from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

from .exceptions import ConfigError
from .logging_utils import get_logger
from .rollout import parse_specs


logger = get_logger(__name__)

ENV_FILES_DEFAULT_ORDER = [".env"]

KUBECTL_CMD_NAME = "kubectl"


def load_env_files(base_dir: str = ".",
                   files: Optional[List[str]] = None) -> None:
    """
    주어진 디렉토리에서 .env 계열 파일을 순서대로 로드한다.
    CI 에서 주입된 환경변수가 항상 우선하도록, 이미 설정된 키는 덮어쓰지 않는다.
    """
    order = files or ENV_FILES_DEFAULT_ORDER
    for name in order:
        path = os.path.join(base_dir, name)
        if os.path.exists(path):
            load_dotenv(path, override=False)


def _get_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _get_first(*names: str) -> str:
    # 앞쪽 이름이 우선 (PLUGIN_TOKEN > TOKEN)
    for name in names:
        val = os.getenv(name)
        if val:
            return val
    return ""


def _get_int(name: str, default: int = 0) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} 는 정수여야 합니다: {raw!r}") from None


def kubectl_command(version: str = "") -> str:
    """kubectl 또는 kubectl.<version> (컨테이너에 추가 설치된 버전 바이너리)."""
    if version:
        return f"{KUBECTL_CMD_NAME}.{version}"
    return KUBECTL_CMD_NAME


@dataclass
class PluginConfig:
    # 필수
    token: str
    cluster: str

    project: str = ""
    zone: str = ""
    region: str = ""
    namespace: str = ""

    # 템플릿
    kube_template: str = ".kube.yml"
    secret_template: str = ".kube.sec.yml"
    skip_template: bool = False
    skip_secret_template: bool = False

    # 변수
    vars_json: str = ""
    expand_env_vars: bool = False

    # 빌드 메타데이터
    build_number: str = ""
    commit: str = ""
    branch: str = ""
    tag: str = ""

    # 대기
    wait_deployments: List[str] = field(default_factory=list)
    wait_jobs: List[str] = field(default_factory=list)
    wait_seconds: int = 0
    wait_jobs_seconds: int = 0

    # kubectl
    kubectl_version: str = ""
    extra_kubectl_versions: List[str] = field(default_factory=list)

    # 토글
    dry_run: bool = False
    server_side: bool = False
    verbose: bool = False
    create_namespace: bool = True

    staging_dir: str = field(default_factory=tempfile.gettempdir)

    @property
    def location(self) -> str:
        """클러스터 위치. validate() 가 zone/region 중 정확히 하나만 허용한다."""
        return self.zone or self.region

    @property
    def kubectl_cmd(self) -> str:
        return kubectl_command(self.kubectl_version)

    @classmethod
    def from_env(cls) -> "PluginConfig":
        cfg = cls(
            token=_get_first("PLUGIN_TOKEN", "TOKEN"),
            cluster=os.getenv("PLUGIN_CLUSTER", ""),
            project=os.getenv("PLUGIN_PROJECT", ""),
            zone=os.getenv("PLUGIN_ZONE", ""),
            region=os.getenv("PLUGIN_REGION", ""),
            namespace=os.getenv("PLUGIN_NAMESPACE", ""),
            kube_template=os.getenv("PLUGIN_TEMPLATE") or ".kube.yml",
            secret_template=os.getenv("PLUGIN_SECRET_TEMPLATE") or ".kube.sec.yml",
            skip_template=_get_bool("PLUGIN_SKIP_TEMPLATE"),
            skip_secret_template=_get_bool("PLUGIN_SKIP_SECRET_TEMPLATE"),
            vars_json=os.getenv("PLUGIN_VARS", ""),
            expand_env_vars=_get_bool("PLUGIN_EXPAND_ENV_VARS"),
            build_number=os.getenv("DRONE_BUILD_NUMBER", ""),
            commit=os.getenv("DRONE_COMMIT", ""),
            branch=os.getenv("DRONE_BRANCH", ""),
            tag=os.getenv("DRONE_TAG", ""),
            wait_deployments=parse_specs(os.getenv("PLUGIN_WAIT_DEPLOYMENTS", "")),
            wait_jobs=parse_specs(os.getenv("PLUGIN_WAIT_JOBS", "")),
            wait_seconds=_get_int("PLUGIN_WAIT_SECONDS"),
            wait_jobs_seconds=_get_int("PLUGIN_WAIT_JOBS_SECONDS"),
            kubectl_version=os.getenv("PLUGIN_KUBECTL_VERSION", ""),
            extra_kubectl_versions=os.getenv("EXTRA_KUBECTL_VERSIONS", "").split(),
            dry_run=_get_bool("PLUGIN_DRY_RUN"),
            server_side=_get_bool("PLUGIN_SERVER_SIDE"),
            verbose=_get_bool("PLUGIN_VERBOSE"),
            create_namespace=_get_bool("PLUGIN_CREATE_NAMESPACE", True),
            staging_dir=os.getenv("PLUGIN_STAGING_DIR") or tempfile.gettempdir(),
        )
        cfg.validate()
        cfg.apply_skips()
        return cfg

    def validate(self) -> None:
        """
        외부 명령을 호출하기 전에 설정 오류를 한 번에 모아서 보고한다.
        """
        problems: List[str] = []

        if not self.token:
            problems.append("필수 값 누락: token (PLUGIN_TOKEN 또는 TOKEN)")

        if not self.zone and not self.region:
            problems.append("필수 값 누락: region(PLUGIN_REGION) 또는 zone(PLUGIN_ZONE) 중 하나가 필요합니다")
        elif self.zone and self.region:
            problems.append("잘못된 설정: region 과 zone 은 동시에 지정할 수 없습니다")

        if not self.cluster:
            problems.append("필수 값 누락: cluster (PLUGIN_CLUSTER)")

        if self.kubectl_version:
            if not self.extra_kubectl_versions:
                problems.append(
                    f"잘못된 설정: kubectl-version 이 {self.kubectl_version} 로 지정되었지만 "
                    "추가 설치된 kubectl 버전이 없습니다 (EXTRA_KUBECTL_VERSIONS)"
                )
            elif self.kubectl_version not in self.extra_kubectl_versions:
                problems.append(
                    f"잘못된 설정: kubectl-version {self.kubectl_version} 는 "
                    f"{', '.join(self.extra_kubectl_versions)} 중 하나여야 합니다"
                )

        if self.skip_template and self.skip_secret_template:
            problems.append("잘못된 설정: 두 템플릿을 모두 건너뛰면 배포할 대상이 없습니다")

        if problems:
            raise ConfigError("설정 오류:\n- " + "\n- ".join(problems))

    def apply_skips(self) -> None:
        """
        skip 플래그가 켜진 템플릿은 경로를 비워서 렌더링 대상에서 제외한다.
        (Drone 1.x 부터 빈 문자열 env 가 전달되지 않아 별도 플래그로 받는다)
        """
        if self.skip_template:
            logger.warning("kube-template 을 건너뜁니다 (PLUGIN_SKIP_TEMPLATE)")
            self.kube_template = ""
        if self.skip_secret_template:
            logger.warning("secret-template 을 건너뜁니다 (PLUGIN_SKIP_SECRET_TEMPLATE)")
            self.secret_template = ""
