"""
templates
---------

매니페스트 템플릿 렌더링.

템플릿은 Go text/template 형태(`{{.Key}}`, `{{ if .x }}…{{ end }}`)로 작성한다.
내부적으로 jinja2 로 렌더링하며, 액션은 jinja 구문으로 바꿔서 처리한다.

지원하는 액션:
- 값 출력: `.`, `.a.b`, `$`, `$.a`, 문자열/숫자/true/false/nil 리터럴
- `if` / `else if` / `else` / `end`
- `range` (맵은 키 순서대로 값을 순회), `with`
- 주석 `{{/* … */}}`, 공백 제거 표시 `{{- … -}}`

그 밖의 액션(함수 호출, 파이프라인, 변수 선언, define/template 등)은 파싱 오류다.
필드 참조는 항상 데이터의 키 조회로만 해석한다. 키가 없으면 jinja 전역 이름이나
dict 메서드로 대체되지 않고 렌더링 오류가 난다.
"""

from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping

import jinja2

from .exceptions import MissingTemplateError, TemplateError, TemplateParseError, TemplateRenderError
from .logging_utils import get_logger


logger = get_logger(__name__)

ROOT = "_root"

_ACTION = re.compile(r"\{\{(-\s)?(.*?)(\s-)?\}\}", re.S)
_COMMENT = re.compile(r"/\*.*\*/", re.S)
_BLOCK = re.compile(r"(if|else|end|range|with)\b\s*(.*)", re.S)
_FIELD = re.compile(r"(\$)?((?:\.[A-Za-z_]\w*)+)")
_STRING = re.compile(r'"(?:[^"\\\n]|\\.)*"')
_RAW_STRING = re.compile(r"`[^`]*`")
_NUMBER = re.compile(r"[+-]?\d+(?:\.\d+)?")
_UNSUPPORTED = ("define", "template", "block", "break", "continue")


@dataclass(frozen=True)
class TemplateBinding:
    path: str
    data: Mapping[str, Any]
    required: bool = False


@dataclass
class _Frame:
    kind: str
    dot: str
    outer: str


def _format_value(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"))
    return value


def _range_values(value: Any) -> Any:
    # Go range 처럼 맵은 정렬된 키 순서로 값을 돈다.
    if isinstance(value, Mapping):
        return [value[k] for k in sorted(value)]
    return value


class _FieldEnvironment(jinja2.Environment):
    """`["key"]` 조회를 맵의 키로만 해석한다. 속성이나 메서드로 넘어가지 않는다."""

    def getitem(self, obj: Any, argument: Any) -> Any:
        if isinstance(obj, jinja2.Undefined):
            return super().getitem(obj, argument)
        if isinstance(obj, Mapping) and argument in obj:
            return obj[argument]
        return self.undefined(
            f"템플릿 데이터에 '{argument}' 키가 없습니다", obj=obj, name=argument
        )


def _environment() -> jinja2.Environment:
    env = _FieldEnvironment(
        undefined=jinja2.StrictUndefined,
        keep_trailing_newline=True,
        autoescape=False,  # noqa: S701 (YAML 출력)
        finalize=_format_value,
    )
    env.filters["go_range"] = _range_values
    return env


def _text(segment: str) -> str:
    if "{%" in segment or "{#" in segment:
        return "{% raw %}" + segment + "{% endraw %}"
    return segment


def _tags(left: str, right: str, *statements: str) -> str:
    out = []
    last = len(statements) - 1
    for i, stmt in enumerate(statements):
        lt = left if i == 0 else ""
        rt = right if i == last else ""
        out.append(f"{{%{lt} {stmt} {rt}%}}")
    return "".join(out)


class _Translator:
    def __init__(self, source: str, name: str) -> None:
        self.source = source
        self.name = name
        self.frames: List[_Frame] = []
        self.counter = 0

    @property
    def dot(self) -> str:
        return self.frames[-1].dot if self.frames else ROOT

    def error(self, message: str, pos: int) -> TemplateParseError:
        line = self.source.count("\n", 0, pos) + 1
        return TemplateParseError(f"템플릿 파싱 오류 ({self.name}:{line}): {message}")

    def translate(self) -> str:
        parts = []
        pos = 0
        for m in _ACTION.finditer(self.source):
            parts.append(_text(self.source[pos:m.start()]))
            parts.append(self.action(m))
            pos = m.end()
        parts.append(_text(self.source[pos:]))

        if self.frames:
            raise self.error(f"{self.frames[-1].kind} 블록에 대응하는 end 가 없습니다", len(self.source))
        return "".join(parts)

    def action(self, m: "re.Match[str]") -> str:
        left = "-" if m.group(1) else ""
        right = "-" if m.group(3) else ""
        body = m.group(2).strip()
        pos = m.start()

        if _COMMENT.fullmatch(body):
            return "{#" + left + " " + "\n" * body.count("\n") + right + "#}"

        block = _BLOCK.fullmatch(body)
        if block:
            return self.block(block.group(1), block.group(2).strip(), left, right, pos)

        words = body.split(None, 1)
        if words and words[0] in _UNSUPPORTED:
            raise self.error(f"지원하지 않는 템플릿 액션입니다: {body}", pos)

        return "{{" + left + " " + self.operand(body, pos) + " " + right + "}}"

    def block(self, word: str, rest: str, left: str, right: str, pos: int) -> str:
        if word == "if":
            expr = self.operand(rest, pos)
            self.frames.append(_Frame("if", self.dot, self.dot))
            return _tags(left, right, f"if {expr}")

        if word in ("range", "with"):
            if ":=" in rest:
                raise self.error(f"템플릿 변수 선언은 지원하지 않습니다: {rest}", pos)
            expr = self.operand(rest, pos)
            self.counter += 1
            var = f"_dot{self.counter}"
            self.frames.append(_Frame(word, var, self.dot))
            if word == "range":
                return _tags(left, right, f"for {var} in {expr}|go_range")
            return _tags(left, right, f"with {var} = {expr}", f"if {var}")

        if not self.frames:
            raise self.error(f"대응하는 블록이 없는 {word} 입니다", pos)
        frame = self.frames[-1]

        if word == "else":
            if rest:
                if frame.kind != "if" or not rest.startswith("if "):
                    raise self.error(f"지원하지 않는 else 형태입니다: else {rest}", pos)
                return _tags(left, right, f"elif {self.operand(rest[3:], pos)}")
            # range/with 의 else 구간에서 . 은 바깥 값이다.
            frame.dot = frame.outer
            return _tags(left, right, "else")

        self.frames.pop()
        if frame.kind == "if":
            return _tags(left, right, "endif")
        if frame.kind == "range":
            return _tags(left, right, "endfor")
        return _tags(left, right, "endif", "endwith")

    def operand(self, expr: str, pos: int) -> str:
        expr = expr.strip()
        if expr == ".":
            return self.dot
        if expr == "$":
            return ROOT

        field = _FIELD.fullmatch(expr)
        if field:
            base = ROOT if field.group(1) else self.dot
            return base + "".join(f'["{key}"]' for key in field.group(2)[1:].split("."))

        if _STRING.fullmatch(expr) or _NUMBER.fullmatch(expr) or expr in ("true", "false"):
            return expr
        if _RAW_STRING.fullmatch(expr):
            return json.dumps(expr[1:-1])
        if expr == "nil":
            return "none"

        raise self.error(f"지원하지 않는 템플릿 표현식입니다: {expr or '(빈 액션)'}", pos)


def translate_actions(source: str, *, name: str = "<string>") -> str:
    """Go 템플릿 액션을 jinja 구문으로 바꾼다. `{{.a.b}}` → `{{ _root["a"]["b"] }}`."""
    return _Translator(source, name).translate()


def render_string(source: str, data: Mapping[str, Any], *, name: str = "<string>") -> str:
    env = _environment()
    try:
        tmpl = env.from_string(translate_actions(source, name=name))
    except jinja2.TemplateSyntaxError as e:
        raise TemplateParseError(f"템플릿 파싱 오류 ({name}:{e.lineno}): {e.message}") from e

    try:
        return tmpl.render({ROOT: data})
    except jinja2.UndefinedError as e:
        raise TemplateRenderError(f"템플릿 렌더링 오류 ({name}): {e.message}") from e
    except TypeError as e:
        raise TemplateRenderError(f"템플릿 렌더링 오류 ({name}): {e}") from e


def render_templates(bindings: Iterable[TemplateBinding], output_dir: str) -> Dict[str, str]:
    """
    템플릿별로 바인딩된 데이터만으로 렌더링하고, output_dir/<파일명> 에 기록한다.

    Returns:
        {템플릿 경로: 렌더링된 매니페스트 경로}
    """
    manifest_paths: Dict[str, str] = {}

    for binding in bindings:
        path = binding.path
        if not path:
            continue

        if not os.path.exists(path):
            if binding.required:
                raise MissingTemplateError(f"템플릿을 찾을 수 없습니다: {path}")
            logger.warning("선택 템플릿이 없어 건너뜁니다: %s", path)
            continue

        out_path = os.path.join(output_dir, os.path.basename(path))
        if out_path in manifest_paths.values():
            raise TemplateError(f"렌더링 결과 파일 이름이 겹칩니다: {out_path}")

        with open(path, "r", encoding="utf-8") as f:
            source = f.read()

        # 렌더링이 끝난 뒤에만 파일을 쓴다. (실패 시 반쯤 쓰인 매니페스트가 남지 않도록)
        rendered = render_string(source, binding.data, name=path)
        with open(out_path, "w", encoding="utf-8") as f:
            f.write(rendered)

        logger.debug("매니페스트 렌더링: %s -> %s", path, out_path)
        manifest_paths[path] = out_path

    return manifest_paths
