"""
namespace
---------

kubectl 컨텍스트의 네임스페이스를 설정하고, 네임스페이스가 존재하도록 보장한다.
`kubectl create namespace` 와 달리 apply 를 사용하므로 이미 있어도 실패하지 않는다.
"""

from __future__ import annotations

import os
import re

from .config import PluginConfig
from .kubectl_version import DryRunFlag
from .logging_utils import get_logger
from .manifests import apply_args
from .subprocess_utils import Runner


logger = get_logger(__name__)

NAMESPACE_FILENAME = "namespace.yml"

NAMESPACE_TEMPLATE = """
---
apiVersion: v1
kind: Namespace
metadata:
  name: {name}
"""

_INVALID_NAME_CHARS = re.compile(r"[^a-z0-9.\-]+")


def sanitize_namespace(name: str) -> str:
    """소문자로 바꾸고, 허용되지 않는 문자 구간은 하이픈 하나로 바꾼다."""
    return _INVALID_NAME_CHARS.sub("-", name.lower())


def context_name(project: str, location: str, cluster: str) -> str:
    # gcloud get-credentials 가 만드는 컨텍스트 이름 규칙
    return "_".join(["gke", project, location, cluster])


def namespace_manifest(name: str) -> str:
    return NAMESPACE_TEMPLATE.format(name=name)


def ensure_namespace(
    cfg: PluginConfig,
    project: str,
    runner: Runner,
    dry_run_flag: DryRunFlag,
) -> str:
    """
    Returns:
        정리된 네임스페이스 이름. 네임스페이스가 설정되지 않았으면 빈 문자열.
    """
    if not cfg.namespace:
        return ""

    namespace = sanitize_namespace(cfg.namespace)
    kubectl = cfg.kubectl_cmd

    logger.info("kubectl 네임스페이스를 %s 로 설정합니다.", namespace)
    context = context_name(project, cfg.location, cfg.cluster)
    runner.run(kubectl, "config", "set-context", context, "--namespace", namespace)

    if not cfg.create_namespace:
        logger.info("네임스페이스 생성 단계를 건너뜁니다 (PLUGIN_CREATE_NAMESPACE=false)")
        return namespace

    path = os.path.join(cfg.staging_dir, NAMESPACE_FILENAME)
    with open(path, "w", encoding="utf-8") as f:
        f.write(namespace_manifest(namespace))

    logger.info("%s 네임스페이스가 존재하는지 확인합니다.", namespace)
    runner.run(kubectl, *apply_args(cfg.dry_run, cfg.server_side, path, dry_run_flag))
    return namespace
