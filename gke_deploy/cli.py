import os
import sys

import click
from dotenv import dotenv_values

from .config import ENV_FILES_DEFAULT_ORDER, PluginConfig, load_env_files
from .exceptions import SecretApplyError
from .logging_utils import get_logger, setup_logging
from .orchestrator import plan_all, run_deploy
from .variables import REDACTED, SECRET_PREFIX


logger = get_logger(__name__)


@click.group(invoke_without_command=True)
@click.option(
    "-C",
    "--chdir",
    "chdir",
    type=click.Path(file_okay=False, dir_okay=True, exists=True),
    default=".",
    help="작업 디렉토리 (기본: 현재 디렉토리). 템플릿 경로와 .env 는 여기 기준",
)
@click.option(
    "-v",
    "--verbose",
    count=True,
    help="로그 레벨을 DEBUG로 올립니다.",
)
@click.pass_context
def main(ctx: click.Context, chdir: str, verbose: int) -> None:
    """GKE 로 Kubernetes 매니페스트를 배포하는 CI 플러그인. (하위 명령이 없으면 deploy)"""
    ctx.ensure_object(dict)
    ctx.obj["chdir"] = chdir
    ctx.obj["verbose"] = verbose

    load_env_files(chdir)
    # PLUGIN_VERBOSE 도 -v 와 같게 취급한다.
    plugin_verbose = os.getenv("PLUGIN_VERBOSE", "").strip().lower() in {"1", "true", "yes", "y", "on"}
    setup_logging(max(verbose, 1 if plugin_verbose else 0))

    if ctx.invoked_subcommand is None:
        ctx.invoke(deploy)


def _load_config() -> PluginConfig:
    cfg = PluginConfig.from_env()
    # token 은 출력하지 않는다.
    logger.debug(
        "Config loaded: project=%s location=%s cluster=%s namespace=%s",
        cfg.project,
        cfg.location,
        cfg.cluster,
        cfg.namespace,
    )
    return cfg


def _build_env_dump(base_dir: str) -> str:
    """
    .env 파일 내용을 덤프한다. SECRET_ 값과 token 은 가린다.
    """
    lines: list[str] = []
    for filename in ENV_FILES_DEFAULT_ORDER:
        lines.append(f"## {filename}")
        path_values = dotenv_values(dotenv_path=os.path.join(base_dir, filename))
        if not path_values:
            lines.append("- (파일이 없거나 비어 있습니다)")
        else:
            for k, v in sorted(path_values.items()):
                if v is None:
                    continue
                if k.startswith(SECRET_PREFIX) or k in {"PLUGIN_TOKEN", "TOKEN"}:
                    v = REDACTED
                lines.append(f"- {k}={v}")
        lines.append("")
    return "\n".join(lines).rstrip()


@main.command()
@click.option(
    "-a",
    "--all",
    "show_all",
    is_flag=True,
    help=".env 파일에서 읽은 값도 함께 출력합니다. (시크릿은 가려짐)",
)
@click.pass_context
def plan(ctx: click.Context, show_all: bool) -> None:
    """설정 요약만 출력하고 외부 명령은 실행하지 않는다."""
    try:
        cfg = _load_config()
    except Exception as e:  # noqa: BLE001
        click.echo(f"[ERROR] 설정 로드 실패: {e}", err=True)
        sys.exit(1)

    report = plan_all(cfg)

    if show_all:
        report = report + "\n\n" + "## Raw env from files\n" + _build_env_dump(ctx.obj["chdir"])

    click.echo(report)


@main.command(name="deploy")
@click.option(
    "--dry-run",
    "dry_run",
    is_flag=True,
    default=False,
    help="매니페스트를 API 서버에 저장하지 않습니다. (PLUGIN_DRY_RUN 과 동일)",
)
@click.pass_context
def deploy(ctx: click.Context, dry_run: bool = False) -> None:
    """인증 → 렌더링 → 검증/적용 → rollout 대기"""
    try:
        cfg = _load_config()
    except Exception as e:  # noqa: BLE001
        click.echo(f"[ERROR] 설정 로드 실패: {e}", err=True)
        sys.exit(1)

    if dry_run:
        cfg.dry_run = True

    try:
        summary = run_deploy(cfg, base_dir=ctx.obj["chdir"])
    except SecretApplyError as e:
        # 시크릿 관련 실패는 traceback 없이 메시지만 남긴다.
        click.echo(f"[ERROR] 배포 실패: {e}", err=True)
        sys.exit(1)
    except Exception as e:  # noqa: BLE001
        logger.exception("배포 중 오류 발생")
        click.echo(f"[ERROR] 배포 실패: {e}", err=True)
        sys.exit(1)

    click.echo(summary)
