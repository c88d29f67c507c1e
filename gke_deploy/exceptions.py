"""gke_deploy 에서 사용하는 예외 계층."""

from __future__ import annotations


__all__ = [
    "GkeDeployError",
    "ConfigError",
    "VariableError",
    "ShadowError",
    "EmptySecretError",
    "TemplateError",
    "MissingTemplateError",
    "TemplateParseError",
    "TemplateRenderError",
    "CommandError",
    "SecretApplyError",
]


class GkeDeployError(Exception):
    """패키지 공통 베이스 예외."""


class ConfigError(GkeDeployError, ValueError):
    """필수 설정 누락 / 상호 배타 설정 위반 등. 외부 명령 호출 전에 발생한다."""


class VariableError(GkeDeployError):
    """vars / secret 변수 해석 실패."""


class ShadowError(VariableError):
    """이미 정의된 키(built-in, vars)를 다른 변수가 다시 정의하려 할 때."""

    def __init__(self, key: str, kind: str = "var") -> None:
        super().__init__(f"{kind} {key!r} 가 기존 변수를 가립니다(shadow). 다른 이름을 사용하세요.")
        self.key = key
        self.kind = kind


class EmptySecretError(VariableError):
    def __init__(self, key: str) -> None:
        super().__init__(f"secret 변수 {key!r} 의 값이 비어 있습니다.")
        self.key = key


class TemplateError(GkeDeployError):
    """템플릿 탐색/파싱/렌더링 실패."""


class MissingTemplateError(TemplateError):
    pass


class TemplateParseError(TemplateError):
    pass


class TemplateRenderError(TemplateError):
    pass


class CommandError(GkeDeployError, RuntimeError):
    """
    gcloud/kubectl 등 외부 명령 실패.

    메시지에는 명령과 종료 코드만 담고, 명령 출력은 담지 않는다.
    """

    def __init__(self, message: str, *, returncode: int | None = None) -> None:
        super().__init__(message)
        self.returncode = returncode


class SecretApplyError(CommandError):
    """시크릿 매니페스트 적용 실패. kubectl 출력은 절대 포함하지 않는다."""
