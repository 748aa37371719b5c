from __future__ import annotations

import getpass
import os
import shutil
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from .config import UpgradeConfig
from .lib.command import Runner, run_cmd
from .lib.identity import Builder, UnprivilegedBuilder


@dataclass
class UpgradeCtx:
    """Everything a step needs besides the run state.

    Collaborators (command runner, builder identity, prompts, clock, euid) are
    fields so tests can swap them out.
    """

    cfg: UpgradeConfig
    kit_dir: Path
    dry_run: bool = False
    runner: Runner = run_cmd
    builder: Optional[Builder] = None
    prompt: Callable[[str], str] = input
    prompt_secret: Callable[[str], str] = getpass.getpass
    sleep: Callable[[float], None] = time.sleep
    geteuid: Callable[[], int] = os.geteuid
    which: Callable[[str], Optional[str]] = shutil.which
    interactive: bool = True

    def __post_init__(self) -> None:
        if self.builder is None:
            uid, gid = self.cfg.user_ids
            self.builder = UnprivilegedBuilder(
                user=self.cfg.user, uid=uid, gid=gid, runner=self.runner, dry_run=self.dry_run
            )

    def kit_path(self, rel: str) -> Path:
        """Resolve a config path against the kit directory (absolute paths pass through)."""
        p = Path(rel)
        return p if p.is_absolute() else self.kit_dir / p

    def run(self, argv, **kwargs):
        kwargs.setdefault("dry_run", self.dry_run)
        return self.runner(argv, **kwargs)
