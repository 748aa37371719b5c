from __future__ import annotations

import logging
from typing import Any, Dict

from ..context import UpgradeCtx
from ..errors import PackageInstallFailed
from ..lib.command import CommandFailed
from ..lib.env import PATHS
from ..lib.pkg import clear_stale_lock, ensure_packages, refresh_databases
from ..state_store import add_warning, record_decision

logger = logging.getLogger(__name__)


class InstallPackagesStep:
    step_id = "20_packages"

    def run(self, ctx: UpgradeCtx, state: Dict[str, Any]) -> Dict[str, Any]:
        pkg_cfg = ctx.cfg.section("packages")
        entries = ctx.cfg.packages

        if clear_stale_lock(ctx, str(pkg_cfg.get("lock_path") or PATHS.pacman_lock)):
            add_warning(state, packages="stale_lock_removed")

        if bool(pkg_cfg.get("refresh", True)):
            try:
                refresh_databases(ctx)
            except CommandFailed as e:
                raise PackageInstallFailed("*", f"Refreshing package databases failed: {e}") from e

        installed, present = ensure_packages(ctx, entries)

        record_decision(state, "packages", {
            "installed": installed,
            "already_present": present,
        })
        logger.info("Packages: %d installed, %d already present", len(installed), len(present))
        return state
