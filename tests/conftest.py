"""
pytest 설정:

- 로컬에 설치된 다른 버전의 gke_deploy 대신 항상 현재 레포 소스를 테스트하도록
  repo root 를 sys.path 최상단에 고정한다.
- gcloud/kubectl 을 실제로 실행하지 않도록 호출을 기록하는 가짜 Runner 를 제공한다.
"""

from __future__ import annotations

import io
import os
import sys
from typing import IO, Dict, List, Optional, Tuple

import pytest


def pytest_configure() -> None:
    repo_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    if repo_root not in sys.path:
        sys.path.insert(0, repo_root)


class FakeRunner:
    """
    실행된 명령을 순서대로 기록한다.

    - outputs: 명령(tuple) → stdout 문자열
    - fail(cmd, stderr=...): 해당 명령을 exit=1 로 실패시키고, stderr 를 지정된 스트림에 쓴다.
    """

    def __init__(self) -> None:
        self.calls: List[List[str]] = []
        self.stderr_targets: List[Optional[IO[str]]] = []
        self.outputs: Dict[Tuple[str, ...], str] = {}
        self.failures: Dict[Tuple[str, ...], str] = {}
        self.default_stderr = io.StringIO()

    def fail(self, *cmd: str, stderr: str = "") -> None:
        self.failures[tuple(cmd)] = stderr

    def run(self, name, *args, stdout=None, stderr=None):
        from gke_deploy.exceptions import CommandError
        from gke_deploy.subprocess_utils import RunResult

        cmd = [name, *args]
        self.calls.append(cmd)
        self.stderr_targets.append(stderr)

        key = tuple(cmd)
        if key in self.failures:
            target = stderr if stderr is not None else self.default_stderr
            target.write(self.failures[key])
            raise CommandError(f"명령 실행 실패: {' '.join(cmd)} (exit=1)", returncode=1)

        out = self.outputs.get(key, "")
        if stdout is not None:
            stdout.write(out)
        return RunResult(returncode=0, stdout=out, stderr="")


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()
