"""
rollout
-------

Deployment/StatefulSet rollout 및 Job 완료를 순서대로 기다린다.
하나라도 실패하면 나머지는 기다리지 않고 바로 실패한다.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import List, Sequence

from .logging_utils import get_logger
from .subprocess_utils import Runner


logger = get_logger(__name__)

TIMEOUT_CMD = "timeout"


@dataclass(frozen=True)
class RolloutTarget:
    resource: str
    namespace: str = ""
    wait_seconds: int = 0


def parse_specs(raw: str) -> List[str]:
    """
    쉼표 구분 문자열(Drone 이 목록을 env 로 넘기는 형식) 또는 JSON 배열을 받는다.
    """
    raw = raw.strip()
    if not raw:
        return []
    if raw.startswith("["):
        try:
            items = json.loads(raw)
        except ValueError:
            items = None
        if isinstance(items, list):
            return [str(i).strip() for i in items if str(i).strip()]
    return [p.strip() for p in raw.split(",") if p.strip()]


def expand_spec(spec: str, default_kind: str) -> str:
    """종류가 없는 이름은 <default_kind>/<name> 으로 본다."""
    if "/" in spec:
        return spec
    return f"{default_kind}/{spec}"


def _targets(specs: Sequence[str], default_kind: str, namespace: str, wait_seconds: int) -> List[RolloutTarget]:
    return [
        RolloutTarget(resource=expand_spec(s, default_kind), namespace=namespace, wait_seconds=wait_seconds)
        for s in specs
    ]


def _progress(index: int, total: int) -> str:
    return f" {index}/{total}" if total > 1 else ""


def rollout_command(target: RolloutTarget, kubectl_cmd: str) -> List[str]:
    cmd = [kubectl_cmd, "rollout", "status", target.resource]
    if target.namespace:
        cmd += ["--namespace", target.namespace]
    if target.wait_seconds > 0:
        cmd = [TIMEOUT_CMD, str(target.wait_seconds)] + cmd
    return cmd


def job_wait_command(target: RolloutTarget, kubectl_cmd: str) -> List[str]:
    cmd = [kubectl_cmd, "wait", "--for=condition=complete", target.resource]
    if target.wait_seconds > 0:
        cmd.append(f"--timeout={target.wait_seconds}s")
    if target.namespace:
        cmd += ["--namespace", target.namespace]
    return cmd


def wait_for_rollout(
    specs: Sequence[str],
    namespace: str,
    wait_seconds: int,
    runner: Runner,
    kubectl_cmd: str,
) -> None:
    targets = _targets(specs, "deployment", namespace, wait_seconds)
    for i, target in enumerate(targets, start=1):
        logger.info("rollout 완료 대기: %s%s", target.resource, _progress(i, len(targets)))
        runner.run(*rollout_command(target, kubectl_cmd))


def wait_for_jobs(
    specs: Sequence[str],
    namespace: str,
    wait_seconds: int,
    runner: Runner,
    kubectl_cmd: str,
) -> None:
    targets = _targets(specs, "job", namespace, wait_seconds)
    for i, target in enumerate(targets, start=1):
        logger.info("Job 완료 대기: %s%s", target.resource, _progress(i, len(targets)))
        runner.run(*job_wait_command(target, kubectl_cmd))
