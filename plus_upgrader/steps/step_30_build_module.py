from __future__ import annotations

import logging
from typing import Any, Dict

from ..context import UpgradeCtx
from ..errors import ModuleBuildError
from ..lib.module_build import ModuleBuildJob, build_and_install
from ..state_store import add_warning, record_decision

logger = logging.getLogger(__name__)


class BuildModuleStep:
    step_id = "30_build_module"

    def run(self, ctx: UpgradeCtx, state: Dict[str, Any]) -> Dict[str, Any]:
        mod = ctx.cfg.section("module")
        job = ModuleBuildJob(
            source_dir=ctx.kit_path(str(mod.get("source_dir") or "aur-pkgs/gcadapter-oc-dkms")),
            descriptor=str(mod.get("descriptor") or "PKGBUILD"),
            artifact_suffix=str(mod.get("artifact_suffix") or ".pkg.tar.zst"),
        )
        reason = job.skip_reason()
        if reason:
            logger.warning("Skipping module build: %s", reason)
            record_decision(state, "module", {"status": "skipped", "reason": reason})
            return state

        if ctx.builder is None:
            raise RuntimeError("No builder identity configured")
        try:
            artifact = build_and_install(ctx, job, ctx.builder)
        except ModuleBuildError as e:
            if not bool(mod.get("optional", False)):
                raise
            logger.warning("Optional module failed; continuing: %s", e)
            record_decision(state, "module", {"status": "failed", "error": str(e)})
            add_warning(state, module=str(e))
            return state

        record_decision(state, "module", {"status": "installed", "artifact": artifact.name if artifact else None})
        logger.info("Module installed from %s", job.source_dir)
        return state
