"""
variables
---------

템플릿 렌더링에 사용할 데이터를 만든다.

- built-in: 빌드 메타데이터 + project/zone/cluster/namespace
- vars: PLUGIN_VARS (JSON 객체)
- secrets: SECRET_ 로 시작하는 환경변수 (base64 값)

어떤 키도 상위 단계의 키를 가릴 수 없고(shadow), 충돌은 파일을 쓰기 전에 바로 실패한다.
일반 템플릿용 데이터(public)에는 secret 이 절대 들어가지 않는다.
"""

from __future__ import annotations

import base64
import json
import re
from dataclasses import dataclass
from typing import Any, Dict, MutableMapping, Union

from .config import PluginConfig
from .exceptions import EmptySecretError, ShadowError, VariableError
from .logging_utils import get_logger


logger = get_logger(__name__)

SECRET_PREFIX = "SECRET_"
SECRET_BASE64_PREFIX = "SECRET_BASE64_"
REDACTED = "VALUE REDACTED"

# JSON 으로 들어오는 값의 종류. 렌더링 시점에 templates._format_value 가 종류별로 출력한다.
VarValue = Union[str, bool, int, float, None, list, dict]

_ENV_REF = re.compile(r"\$(?:\{(\w+)\}|(\w+))")


@dataclass(frozen=True)
class TemplateData:
    public: Dict[str, VarValue]
    secret: Dict[str, VarValue]
    redacted: Dict[str, str]


def parse_vars(raw: str) -> Dict[str, VarValue]:
    if not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except ValueError as e:
        raise VariableError(f"vars 파싱 오류: {e}") from e
    if not isinstance(data, dict):
        raise VariableError(f"vars 는 JSON 객체여야 합니다: {type(data).__name__}")
    return data


def parse_secrets(environ: MutableMapping[str, str]) -> Dict[str, str]:
    """
    SECRET_ 환경변수를 모아서 반환하고, 환경에서는 제거한다.
    (이후 실행되는 gcloud/kubectl 프로세스로 새어 나가지 않도록)

    Kubernetes Secret 값은 base64 여야 하므로 SECRET_BASE64_ 가 아닌 값은 인코딩한다.
    """
    secrets: Dict[str, str] = {}
    for key in sorted(k for k in environ if k.startswith(SECRET_PREFIX)):
        value = environ[key]
        if value == "":
            raise EmptySecretError(key)

        if key.startswith(SECRET_BASE64_PREFIX):
            secrets[key] = value
        else:
            secrets[key] = base64.b64encode(value.encode("utf-8")).decode("ascii")

        del environ[key]

    return secrets


def builtin_vars(cfg: PluginConfig, project: str) -> Dict[str, VarValue]:
    # GCP 토큰 등 secret 은 포함하지 않는다.
    return {
        "BUILD_NUMBER": cfg.build_number,
        "COMMIT": cfg.commit,
        "BRANCH": cfg.branch,
        "TAG": cfg.tag,
        "project": project,
        "zone": cfg.location,
        "cluster": cfg.cluster,
        "namespace": cfg.namespace,
    }


def expand_env(value: str, environ: MutableMapping[str, str]) -> str:
    """$NAME / ${NAME} 치환. 없는 변수는 빈 문자열."""
    return _ENV_REF.sub(lambda m: environ.get(m.group(1) or m.group(2), ""), value)


def build_template_data(
    builtins: Dict[str, VarValue],
    user_vars: Dict[str, Any],
    secrets: Dict[str, str],
    *,
    expand_env_vars: bool = False,
    environ: MutableMapping[str, str],
) -> TemplateData:
    public: Dict[str, VarValue] = dict(builtins)
    secret: Dict[str, VarValue] = dict(builtins)
    redacted: Dict[str, str] = {}

    for key, value in user_vars.items():
        # built-in 값은 항상 신뢰할 수 있어야 하므로 덮어쓰기를 허용하지 않는다.
        if key in builtins:
            raise ShadowError(key, "var")

        if expand_env_vars and isinstance(value, str):
            value = expand_env(value, environ)

        public[key] = value
        secret[key] = value

    for key, value in secrets.items():
        if key in secret:
            raise ShadowError(key, "secret var")
        if value == "":
            raise EmptySecretError(key)

        secret[key] = value
        redacted[key] = REDACTED

    return TemplateData(public=public, secret=secret, redacted=redacted)


def resolve_variables(
    cfg: PluginConfig,
    project: str,
    environ: MutableMapping[str, str],
) -> TemplateData:
    """
    secret 을 먼저 환경에서 걷어낸 뒤 vars 를 해석한다.
    그래야 expand_env_vars 로 $SECRET_... 를 참조해도 일반 템플릿에 값이 들어가지 않는다.
    """
    secrets = parse_secrets(environ)
    user_vars = parse_vars(cfg.vars_json)

    data = build_template_data(
        builtin_vars(cfg, project),
        user_vars,
        secrets,
        expand_env_vars=cfg.expand_env_vars,
        environ=environ,
    )
    logger.info(
        "템플릿 변수 준비 완료: vars=%d, secrets=%d",
        len(user_vars),
        len(secrets),
    )
    return data
