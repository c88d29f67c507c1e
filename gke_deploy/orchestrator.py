from __future__ import annotations

import os
import sys
from typing import List, MutableMapping, Optional, TextIO

from .config import PluginConfig
from .dump import dump_data, dump_file
from .logging_utils import get_logger
from .namespace import sanitize_namespace
from .subprocess_utils import CommandRunner, Runner
from . import (
    gcp_auth,
    kubectl_version,
    manifests,
    namespace,
    rollout,
    templates,
    variables,
)


logger = get_logger(__name__)

# 파이프라인 단계 이름. summary 출력에 사용한다.
ALL_STEPS: List[str] = [
    "variables",
    "credentials",
    "templates",
    "kubectl",
    "namespace",
    "apply",
    "wait",
]


def _resolve_path(base_dir: str, path: str) -> str:
    if not path or os.path.isabs(path):
        return path
    return os.path.join(base_dir, path)


def plan_all(cfg: PluginConfig) -> str:
    """
    현재 설정을 요약한다. 외부 명령 호출이나 환경변수 변경은 하지 않는다.
    """
    lines: List[str] = []
    lines.append("# Deploy plan")
    lines.append(f"- project: {cfg.project or '(키에서 읽음)'}")
    lines.append(f"- location: {cfg.location}")
    lines.append(f"- cluster: {cfg.cluster}")
    lines.append(f"- namespace: {sanitize_namespace(cfg.namespace) or '(not set)'}")
    lines.append(f"- kubectl: {cfg.kubectl_cmd}")
    lines.append("")

    lines.append("## Templates")
    lines.append(f"- kube_template: {cfg.kube_template or '(skipped)'}")
    lines.append(f"- secret_template: {cfg.secret_template or '(skipped)'}")
    lines.append(f"- expand_env_vars: {cfg.expand_env_vars}")
    lines.append("")

    lines.append("## Apply")
    lines.append(f"- dry_run: {cfg.dry_run}")
    lines.append(f"- server_side: {cfg.server_side}")
    lines.append(f"- create_namespace: {cfg.create_namespace}")
    lines.append("")

    lines.append("## Wait")
    waits = [rollout.expand_spec(s, "deployment") for s in cfg.wait_deployments]
    waits += [rollout.expand_spec(s, "job") for s in cfg.wait_jobs]
    if waits:
        for w in waits:
            lines.append(f"- {w}")
    else:
        lines.append("- (none)")
    lines.append(f"- wait_seconds: {cfg.wait_seconds}")
    lines.append(f"- wait_jobs_seconds: {cfg.wait_jobs_seconds}")

    return "\n".join(lines)


def run_deploy(
    cfg: PluginConfig,
    *,
    base_dir: str = ".",
    runner: Optional[Runner] = None,
    environ: Optional[MutableMapping[str, str]] = None,
    out: Optional[TextIO] = None,
) -> str:
    """
    인증 → 렌더링 → 검증/적용 → 대기 순서로 배포를 실행한다.
    어느 단계든 실패하면 예외를 그대로 올려서 전체 실행을 중단한다.

    Returns:
        summary: 사람이 읽기 좋은 텍스트 요약
    """
    environ = os.environ if environ is None else environ
    out = out or sys.stdout
    executed: List[str] = []

    project = gcp_auth.resolve_project(cfg)

    # 충돌 검사는 어떤 파일도 쓰기 전에 끝낸다.
    data = variables.resolve_variables(cfg, project, environ)
    executed.append("variables")

    if cfg.verbose:
        dump_data(out, "VARIABLES AVAILABLE FOR ALL TEMPLATES", data.public)
        dump_data(out, "ADDITIONAL SECRET VARIABLES AVAILABLE FOR .sec.yml TEMPLATES", data.redacted)

    key_path = gcp_auth.key_path(cfg)
    if runner is None:
        # secret 이 제거된 환경 + gcloud 키 경로만 하위 프로세스로 전달한다.
        env = dict(environ)
        env[gcp_auth.CREDENTIALS_ENV] = key_path
        runner = CommandRunner(cwd=base_dir, env=env)

    try:
        gcp_auth.write_key_file(cfg)
        gcp_auth.fetch_credentials(cfg, project, runner, key_path)
        executed.append("credentials")

        kube_template = _resolve_path(base_dir, cfg.kube_template)
        secret_template = _resolve_path(base_dir, cfg.secret_template)
        manifest_paths = templates.render_templates(
            [
                # 일반 템플릿은 secret 이 없는 public 데이터로만 렌더링한다.
                templates.TemplateBinding(kube_template, data.public, required=True),
                templates.TemplateBinding(secret_template, data.secret, required=False),
            ],
            cfg.staging_dir,
        )
        executed.append("templates")

        manifest = manifest_paths.get(kube_template) if kube_template else None
        secret_manifest = manifest_paths.get(secret_template) if secret_template else None

        if cfg.verbose and manifest:
            dump_file(out, "RENDERED MANIFEST (Secret Manifest Omitted)", manifest)

        kubectl = cfg.kubectl_cmd
        dry_run_flag = kubectl_version.detect_dry_run_flag(runner, kubectl, cfg.server_side)
        executed.append("kubectl")

        ns = namespace.ensure_namespace(cfg, project, runner, dry_run_flag)
        if ns:
            executed.append("namespace")

        manifests.apply_manifests(
            runner,
            kubectl,
            manifest,
            secret_manifest,
            dry_run=cfg.dry_run,
            server_side=cfg.server_side,
            dry_run_flag=dry_run_flag,
        )
        executed.append("apply")

        if cfg.dry_run:
            logger.info("dry-run 이므로 rollout 대기를 건너뜁니다.")
        elif cfg.wait_deployments or cfg.wait_jobs:
            rollout.wait_for_rollout(cfg.wait_deployments, ns, cfg.wait_seconds, runner, kubectl)
            rollout.wait_for_jobs(cfg.wait_jobs, ns, cfg.wait_jobs_seconds, runner, kubectl)
            executed.append("wait")
    finally:
        gcp_auth.remove_key_file(key_path)

    lines: List[str] = []
    lines.append("# Deploy summary")
    lines.append(f"- project: {project}")
    lines.append(f"- cluster: {cfg.cluster} ({cfg.location})")
    lines.append(f"- namespace: {ns or '(not set)'}")
    lines.append(f"- dry_run: {cfg.dry_run}")
    lines.append("")
    lines.append("## Executed steps")
    for name in ALL_STEPS:
        if name in executed:
            lines.append(f"- {name}")
    lines.append("")
    lines.append("## Skipped steps")
    skipped = [s for s in ALL_STEPS if s not in executed]
    if skipped:
        for s in skipped:
            lines.append(f"- {s}")
    else:
        lines.append("- (none)")

    return "\n".join(lines)
