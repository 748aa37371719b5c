from __future__ import annotations

import logging
from typing import Any, Dict

from ..context import UpgradeCtx
from ..lib.command import CommandFailed
from ..lib.perms import chown_tree
from ..lib.services import UserUnitLink, activate_services, daemon_reload, link_user_unit, reload_device_rules
from ..lib.target import target_from_state
from ..state_store import add_warning, record_decision

logger = logging.getLogger(__name__)


class ActivateServicesStep:
    step_id = "60_activate_services"

    def run(self, ctx: UpgradeCtx, state: Dict[str, Any]) -> Dict[str, Any]:
        svc_cfg = ctx.cfg.section("services")
        target = target_from_state(state)
        changed = (state.get("execution") or {}).get("changed") or {}

        if changed.get("device_rules") or bool(svc_cfg.get("force_udev_reload", False)):
            logger.info("Reloading udev rules")
            try:
                reload_device_rules(ctx)
            except (CommandFailed, OSError) as e:
                logger.error("udev reload failed (rules apply after reboot): %s", e)
                add_warning(state, udev_reload=str(e))
        elif "device_rules" not in changed:
            logger.warning(
                "File deployment did not run in this invocation; udev rules were not reloaded "
                "(set services.force_udev_reload to reload them anyway)"
            )

        if bool(svc_cfg.get("daemon_reload", True)):
            try:
                daemon_reload(ctx)
            except (CommandFailed, OSError) as e:
                logger.error("systemctl daemon-reload failed: %s", e)
                add_warning(state, daemon_reload=str(e))

        failures = activate_services(ctx, ctx.cfg.services)
        for f in failures:
            add_warning(state, service=f.service, error=str(f))

        # User units are linked inside the deployment: the account is not logged in.
        links = [UserUnitLink(**u) for u in (svc_cfg.get("user_units") or [])]
        if links:
            home = target.home(ctx.cfg.user)
            for link in links:
                link_user_unit(home, link, dry_run=ctx.dry_run)
            uid, gid = ctx.cfg.user_ids
            chown_tree(home / ".config", uid, gid, dry_run=ctx.dry_run)

        record_decision(state, "services", {
            "requested": ctx.cfg.services,
            "failed": [f.service for f in failures],
            "user_units": [link.unit for link in links],
        })
        logger.info("Services processed: %d requested, %d failed", len(ctx.cfg.services), len(failures))
        return state
