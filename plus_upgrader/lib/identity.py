from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol, Sequence

from .command import CmdResult, Runner

logger = logging.getLogger(__name__)


class Builder(Protocol):
    """Runs commands as a non-root account.

    makepkg refuses to run as root while pacman needs root to install what it
    produced, so the build step only ever gets this narrow primitive.
    """

    user: str
    uid: int
    gid: int

    def run(self, argv: Sequence[str], *, cwd: str) -> CmdResult:
        ...


@dataclass(frozen=True)
class UnprivilegedBuilder:
    user: str
    uid: int
    gid: int
    runner: Runner
    dry_run: bool = False

    def run(self, argv: Sequence[str], *, cwd: str) -> CmdResult:
        logger.info("Running as %s (uid=%s)", self.user, self.uid)
        return self.runner(["sudo", "-u", self.user, "--", *argv], cwd=cwd, dry_run=self.dry_run)
