from __future__ import annotations

import logging
import os
import shlex
import subprocess
from dataclasses import dataclass
from typing import Collection, Mapping, Protocol, Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CmdResult:
    argv: list[str]
    returncode: int
    stdout: str
    stderr: str


class CommandFailed(RuntimeError):
    def __init__(self, result: CmdResult, display: str) -> None:
        super().__init__(f"Command failed ({result.returncode}): {display}\n{result.stderr}")
        self.result = result

    @property
    def returncode(self) -> int:
        return self.result.returncode


class Runner(Protocol):
    """Signature shared by run_cmd and the fakes used in tests."""

    def __call__(
        self,
        argv: Sequence[str],
        *,
        check: bool = True,
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
        input_text: str | None = None,
        dry_run: bool = False,
        secrets: Collection[str] = (),
    ) -> CmdResult:
        ...


def _fmt_argv(argv: Sequence[str], secrets: Collection[str] = ()) -> str:
    return " ".join("***" if a in secrets else shlex.quote(a) for a in argv)


def run_cmd(
    argv: Sequence[str],
    *,
    check: bool = True,
    env: Mapping[str, str] | None = None,
    cwd: str | None = None,
    input_text: str | None = None,
    dry_run: bool = False,
    secrets: Collection[str] = (),
) -> CmdResult:
    """Run a command with consistent logging.

    - Always logs the command (any argument listed in `secrets` is masked).
    - Captures stdout/stderr so callers can parse tool output.
    - dry_run logs but does not execute.
    """

    argv_list = list(argv)
    display = _fmt_argv(argv_list, secrets)
    if cwd:
        logger.info("CMD %s (cwd=%s)", display, cwd)
    else:
        logger.info("CMD %s", display)

    if dry_run:
        return CmdResult(argv=argv_list, returncode=0, stdout="", stderr="")

    p = subprocess.run(
        argv_list,
        input=input_text,
        text=True,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        cwd=cwd,
        env=dict(os.environ, **(env or {})),
    )

    if p.stdout:
        logger.debug("STDOUT %s", p.stdout.strip())
    if p.stderr:
        logger.debug("STDERR %s", p.stderr.strip())

    result = CmdResult(argv=argv_list, returncode=p.returncode, stdout=p.stdout, stderr=p.stderr)
    if check and p.returncode != 0:
        raise CommandFailed(result, display)

    return result

