from __future__ import annotations

import logging
from typing import Any, Dict

from ..context import UpgradeCtx

logger = logging.getLogger(__name__)


class FinalizeStep:
    step_id = "90_finalize"

    def run(self, ctx: UpgradeCtx, state: Dict[str, Any]) -> Dict[str, Any]:
        exe = state.get("execution") or {}

        logger.info("Finalize summary: %s", exe.get("decisions") or {})
        for w in exe.get("warnings") or []:
            logger.warning("Upgrade warning: %s", w)

        # Reboot is operational and must be explicitly enabled (finalize.reboot).
        if bool(ctx.cfg.section("finalize").get("reboot", False)):
            ctx.run(["sync"])
            ctx.run(["systemctl", "reboot"])
        else:
            logger.info("Upgrade complete. Reboot for all changes to take effect.")

        return state
