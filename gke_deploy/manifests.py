"""
manifests
---------

kubectl apply 래핑.

실제 적용 전에 dry-run 으로 모든 매니페스트를 먼저 검증하고,
시크릿 매니페스트의 kubectl 출력(stderr)은 별도 버퍼에 격리해서 로그에 남기지 않는다.
"""

from __future__ import annotations

import io
from typing import List, Optional

from .exceptions import CommandError, SecretApplyError
from .kubectl_version import DryRunFlag
from .logging_utils import get_logger
from .subprocess_utils import Runner


logger = get_logger(__name__)


def apply_args(dry_run: bool, server_side: bool, path: str, dry_run_flag: DryRunFlag) -> List[str]:
    """
    apply [<dry-run 플래그> | --server-side] --filename <path>

    dry-run 과 server-side 는 한 호출에 같이 쓰지 않는다. (server-side dry-run 은 플래그 자체가 표현)
    """
    args = ["apply"]
    if dry_run:
        args.append(dry_run_flag.value)
    elif server_side:
        args.append("--server-side")
    args += ["--filename", path]
    return args


def trimmed_error(buf: io.StringIO) -> str:
    """버퍼의 마지막 줄만 반환한다."""
    lines = buf.getvalue().splitlines()
    return lines[-1] if lines else ""


def _apply_secret(
    runner: Runner,
    kubectl_cmd: str,
    args: List[str],
    *,
    surface_error: bool,
) -> None:
    secret_stderr = io.StringIO()
    try:
        runner.run(kubectl_cmd, *args, stderr=secret_stderr)
    except CommandError as e:
        message = f"시크릿 매니페스트 적용 실패 (kubectl output redacted): exit={e.returncode}"
        if surface_error:
            # 마지막 줄에도 시크릿 값이 포함될 수 있어 기본적으로는 노출하지 않는다.
            message += f"\n{trimmed_error(secret_stderr)}"
        raise SecretApplyError(message, returncode=e.returncode) from None


def apply_manifests(
    runner: Runner,
    kubectl_cmd: str,
    manifest: Optional[str],
    secret_manifest: Optional[str],
    *,
    dry_run: bool,
    server_side: bool,
    dry_run_flag: DryRunFlag,
    surface_secret_error: bool = False,
) -> None:
    """
    1) (전체 실행이 dry-run 이 아니면) 일반 → 시크릿 순서로 dry-run 검증
    2) 일반 → 시크릿 순서로 적용 (전체 실행이 dry-run 이면 dry-run 으로)

    검증 단계에서 하나라도 실패하면 클러스터는 아무것도 바뀌지 않은 상태로 중단된다.
    """
    if not dry_run:
        logger.info("dry-run 으로 Kubernetes 매니페스트를 검증합니다.")
        if manifest:
            runner.run(kubectl_cmd, *apply_args(True, server_side, manifest, dry_run_flag))
        if secret_manifest:
            _apply_secret(
                runner,
                kubectl_cmd,
                apply_args(True, server_side, secret_manifest, dry_run_flag),
                surface_error=surface_secret_error,
            )
        logger.info("Kubernetes 매니페스트를 클러스터에 적용합니다.")
    else:
        logger.info("dry-run 실행: 매니페스트를 클러스터에 저장하지 않습니다.")

    if manifest:
        runner.run(kubectl_cmd, *apply_args(dry_run, server_side, manifest, dry_run_flag))
    if secret_manifest:
        _apply_secret(
            runner,
            kubectl_cmd,
            apply_args(dry_run, server_side, secret_manifest, dry_run_flag),
            surface_error=surface_secret_error,
        )
