from __future__ import annotations

import logging
from typing import Any, Dict

from ..context import UpgradeCtx
from ..errors import PreconditionFailed
from ..lib.target import locate_deployment
from ..state_store import record_decision

logger = logging.getLogger(__name__)


class PreflightStep:
    step_id = "00_preflight"
    # Every later step needs the deployment root, even on --start-at runs.
    always_run = True

    def run(self, ctx: UpgradeCtx, state: Dict[str, Any]) -> Dict[str, Any]:
        if ctx.geteuid() != 0:
            if not ctx.dry_run:
                raise PreconditionFailed("This upgrade must be run as root (use sudo)")
            logger.info("Not running as root; continuing because this is a dry run")

        if not ctx.kit_dir.is_dir():
            raise PreconditionFailed(f"Kit directory not found: {ctx.kit_dir}")

        target = locate_deployment(ctx.cfg.search_patterns)
        state.setdefault("execution", {})["target_root"] = str(target.root)
        record_decision(state, "kit_dir", str(ctx.kit_dir))

        logger.info("Upgrading deployment at %s from kit %s", target.root, ctx.kit_dir)
        return state
