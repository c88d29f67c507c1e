"""
kubectl_version
---------------

kubectl 클라이언트 버전에 따라 dry-run 플래그 문법이 다르다.

- 1.18 미만: --dry-run / --server-dry-run
- 1.18 이상: --dry-run=client / --dry-run=server

버전을 해석하지 못해도 배포를 막지 않고 가장 보수적인 `--dry-run` 을 사용한다.
"""

from __future__ import annotations

import io
import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .logging_utils import get_logger
from .subprocess_utils import Runner


logger = get_logger(__name__)

_LEADING_INT = re.compile(r"^\s*(\d+)")


class DryRunFlag(str, Enum):
    CLIENT_PRE_118 = "--dry-run"
    SERVER_PRE_118 = "--server-dry-run"
    CLIENT = "--dry-run=client"
    SERVER = "--dry-run=server"


@dataclass(frozen=True)
class KubectlVersion:
    major: int
    minor: int


def _leading_int(raw: object) -> Optional[int]:
    if isinstance(raw, int) and not isinstance(raw, bool):
        return raw
    # "17+" 처럼 숫자 뒤에 붙는 접미사는 무시한다.
    if not isinstance(raw, str):
        return None
    m = _LEADING_INT.match(raw)
    return int(m.group(1)) if m else None


def parse_client_version(output: str) -> Optional[KubectlVersion]:
    """`kubectl version --client -o=json` 출력에서 (major, minor) 를 꺼낸다. 실패하면 None."""
    try:
        data = json.loads(output)
    except ValueError:
        return None

    client = data.get("clientVersion") if isinstance(data, dict) else None
    if not isinstance(client, dict):
        return None

    major = _leading_int(client.get("major"))
    minor = _leading_int(client.get("minor"))
    if major is None or minor is None:
        return None
    return KubectlVersion(major=major, minor=minor)


def select_dry_run_flag(version: Optional[KubectlVersion], server_side: bool) -> DryRunFlag:
    if version is None:
        return DryRunFlag.CLIENT_PRE_118

    if version.minor < 18:
        return DryRunFlag.SERVER_PRE_118 if server_side else DryRunFlag.CLIENT_PRE_118
    return DryRunFlag.SERVER if server_side else DryRunFlag.CLIENT


def detect_dry_run_flag(runner: Runner, kubectl_cmd: str, server_side: bool) -> DryRunFlag:
    """
    kubectl 버전을 한 번 조회해서 사용할 dry-run 플래그를 결정한다.
    """
    buf = io.StringIO()
    result = runner.run(kubectl_cmd, "version", "--client", "-o=json", stdout=buf)

    version = parse_client_version(result.stdout or buf.getvalue())
    if version is None:
        logger.warning(
            "kubectl 버전을 해석하지 못했습니다. 기본 플래그(%s)를 사용합니다.",
            DryRunFlag.CLIENT_PRE_118.value,
        )
    else:
        logger.info("kubectl 클라이언트 버전: %d.%d", version.major, version.minor)

    flag = select_dry_run_flag(version, server_side)
    logger.info("dry-run 플래그: %s", flag.value)
    return flag
