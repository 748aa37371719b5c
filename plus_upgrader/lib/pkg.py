from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, List, Sequence

from ..errors import PackageInstallFailed
from .command import CommandFailed

if TYPE_CHECKING:
    from ..config import PackageEntry
    from ..context import UpgradeCtx

logger = logging.getLogger(__name__)


def clear_stale_lock(ctx: "UpgradeCtx", lock_path: str) -> bool:
    """Remove a leftover pacman database lock from an interrupted run.

    Returns True when a lock was found.
    """

    lock = Path(lock_path)
    if not lock.exists():
        return False

    logger.warning("Stale package database lock at %s; cleaning up", lock)
    # Hung pacman processes would recreate or hold the lock.
    ctx.run(["killall", "-9", "pacman"], check=False)
    if ctx.dry_run:
        logger.info("Would remove %s", lock)
    else:
        lock.unlink(missing_ok=True)
    return True


def refresh_databases(ctx: "UpgradeCtx") -> None:
    ctx.run(["pacman", "-Syy"])


def is_installed(ctx: "UpgradeCtx", package: str) -> bool:
    r = ctx.run(["pacman", "-Q", package], check=False)
    return r.returncode == 0


def install_package(ctx: "UpgradeCtx", package: str, *, assume_installed: Sequence[str] = ()) -> None:
    argv = ["pacman", "-S", "--noconfirm", "--needed"]
    for name in assume_installed:
        argv += ["--assume-installed", name]
    argv.append(package)
    try:
        ctx.run(argv)
    except CommandFailed as e:
        raise PackageInstallFailed(package, f"Failed to install {package}: {e}") from e


def install_local(ctx: "UpgradeCtx", files: Sequence[str]) -> None:
    """Install package files directly, bypassing the remote index."""

    if not files:
        return
    ctx.run(["pacman", "-U", "--noconfirm", "--needed", *files])


def ensure_packages(ctx: "UpgradeCtx", entries: Sequence["PackageEntry"]) -> tuple[List[str], List[str]]:
    """Install every entry that is not present yet, in declared order.

    Returns (installed, already_present). The first failure aborts.
    """

    installed: List[str] = []
    present: List[str] = []
    for entry in entries:
        if is_installed(ctx, entry.name):
            logger.info("Package %s already installed", entry.name)
            present.append(entry.name)
            continue
        logger.info("Installing package %s", entry.name)
        install_package(ctx, entry.name, assume_installed=entry.assume_installed)
        installed.append(entry.name)
    return installed, present
