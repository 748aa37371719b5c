from __future__ import annotations

import logging
from typing import Any, Dict

from ..context import UpgradeCtx
from ..lib.assets import import_assets
from ..lib.target import target_from_state
from ..state_store import record_decision

logger = logging.getLogger(__name__)


class ImportAssetsStep:
    step_id = "70_import_assets"

    def run(self, ctx: UpgradeCtx, state: Dict[str, Any]) -> Dict[str, Any]:
        assets = ctx.cfg.section("assets")
        target = target_from_state(state)

        src = ctx.kit_path(str(assets.get("source_dir") or "assets"))
        dst = target.home(ctx.cfg.user) / str(assets.get("dest_rel") or ".local/share/kazeta-plus")
        uid, gid = ctx.cfg.user_ids

        copied = import_assets(src, dst, uid=uid, gid=gid, dry_run=ctx.dry_run)
        record_decision(state, "assets", {
            "dest": str(dst),
            "copied": len(copied),
        })
        return state
