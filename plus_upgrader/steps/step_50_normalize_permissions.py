from __future__ import annotations

import logging
from typing import Any, Dict

from ..config import parse_mode
from ..context import UpgradeCtx
from ..lib.perms import normalize_tree
from ..lib.target import target_from_state
from ..state_store import record_decision

logger = logging.getLogger(__name__)


class NormalizePermissionsStep:
    """Re-assert root ownership and strict modes on sudoers.d and udev rules.

    Runs on every upgrade, whether or not new files landed there.
    """

    step_id = "50_normalize_permissions"

    def run(self, ctx: UpgradeCtx, state: Dict[str, Any]) -> Dict[str, Any]:
        target = target_from_state(state)
        uid, gid = ctx.cfg.root_ids
        corrected: Dict[str, int] = {}

        for tree in ctx.cfg.section("permissions").get("trees") or []:
            rel = str(tree.get("path") or "").strip("/")
            root = target.path(rel)
            if not rel or not root.is_dir():
                logger.info("No %s in deployment; nothing to normalize", rel or "(empty path)")
                continue
            corrected[rel] = normalize_tree(
                root,
                uid=uid,
                gid=gid,
                dir_mode=parse_mode(tree.get("dir_mode", 0o755)),
                file_mode=parse_mode(tree.get("file_mode", 0o644)),
                dry_run=ctx.dry_run,
            )

        record_decision(state, "permissions_corrected", corrected)
        return state
