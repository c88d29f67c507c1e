"""
dump
----

verbose 모드에서 변수 목록과 렌더링된 매니페스트를 출력하는 헬퍼.
시크릿은 redacted 뷰만 넘겨받는다.
"""

from __future__ import annotations

import json
from typing import Any, TextIO


def dump_data(stream: TextIO, caption: str, data: Any) -> None:
    stream.write(f"\n---START {caption}---\n")
    try:
        try:
            text = json.dumps(data, indent="\t")
        except (TypeError, ValueError) as e:
            stream.write(f"error marshalling: {e}\n")
            return
        stream.write(text + "\n")
    finally:
        stream.write(f"---END {caption}---\n")


def dump_file(stream: TextIO, caption: str, path: str) -> None:
    stream.write(f"\n---START {caption}---\n")
    try:
        try:
            with open(path, "r", encoding="utf-8") as f:
                content = f.read()
        except OSError as e:
            stream.write(f"error reading file: {e}\n")
            return
        stream.write(content + "\n")
    finally:
        stream.write(f"---END {caption}---\n")
