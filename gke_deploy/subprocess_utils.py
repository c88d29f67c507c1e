"""
subprocess_utils
----------------

gcloud/kubectl/timeout 호출을 담당하는 단일 실행 경로.

파이프라인의 모든 외부 명령은 `Runner.run` 하나를 통해서만 실행되므로,
테스트에서는 가짜 Runner 로 교체해 실제 프로세스 없이 전체 흐름을 검증할 수 있다.
"""

from __future__ import annotations

import subprocess
import sys
import threading
from dataclasses import dataclass
from typing import IO, List, Mapping, Optional, Protocol

from .exceptions import CommandError
from .logging_utils import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class RunResult:
    returncode: int
    stdout: str
    stderr: str


class Runner(Protocol):
    def run(
        self,
        name: str,
        *args: str,
        stdout: Optional[IO[str]] = None,
        stderr: Optional[IO[str]] = None,
    ) -> RunResult:
        ...


def _pump(src: IO[str], dest: IO[str], sink: List[str]) -> None:
    try:
        for line in src:
            sink.append(line)
            dest.write(line)
            dest.flush()
    finally:
        src.close()


@dataclass
class CommandRunner:
    """
    subprocess 실행기.

    - stdout/stderr 는 줄 단위로 지정된 스트림에 그대로 흘리면서 RunResult 에도 모은다.
    - 호출 시 stdout/stderr 를 넘기면 해당 호출에 한해 스트림을 교체한다.
      (시크릿 매니페스트 적용처럼 출력을 격리해야 할 때 사용)
    - 실패 시 예외 메시지에는 명령과 exit code 만 담는다.
    """

    cwd: Optional[str] = None
    env: Optional[Mapping[str, str]] = None
    stdout: Optional[IO[str]] = None
    stderr: Optional[IO[str]] = None

    def run(
        self,
        name: str,
        *args: str,
        stdout: Optional[IO[str]] = None,
        stderr: Optional[IO[str]] = None,
    ) -> RunResult:
        cmd = [name, *args]
        logger.info("$ %s", " ".join(cmd))

        # sys.stdout/stderr 는 호출 시점에 해석한다. (pytest capsys 등 교체 대응)
        out_stream = stdout if stdout is not None else (self.stdout or sys.stdout)
        err_stream = stderr if stderr is not None else (self.stderr or sys.stderr)

        try:
            proc = subprocess.Popen(  # noqa: S603
                cmd,
                cwd=self.cwd,
                env=dict(self.env) if self.env is not None else None,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                bufsize=1,
            )
        except FileNotFoundError as e:
            raise CommandError(
                f"필요한 명령을 찾을 수 없습니다: {name} (gcloud/kubectl 이 설치되어 있는지 확인하세요)"
            ) from e

        out_lines: List[str] = []
        err_lines: List[str] = []
        assert proc.stdout is not None
        assert proc.stderr is not None
        pumps = [
            threading.Thread(target=_pump, args=(proc.stdout, out_stream, out_lines), daemon=True),
            threading.Thread(target=_pump, args=(proc.stderr, err_stream, err_lines), daemon=True),
        ]
        for t in pumps:
            t.start()
        returncode = proc.wait()
        for t in pumps:
            t.join()

        if returncode != 0:
            # 출력은 이미 스트림으로 흘렸으므로 여기서는 덧붙이지 않는다.
            raise CommandError(
                f"명령 실행 실패: {' '.join(cmd)} (exit={returncode})",
                returncode=returncode,
            )

        return RunResult(returncode=returncode, stdout="".join(out_lines), stderr="".join(err_lines))
