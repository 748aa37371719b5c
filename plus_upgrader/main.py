from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from . import __version__
from .config import load_config
from .context import UpgradeCtx
from .errors import UpgradeError
from .lib.env import PATHS
from .logging_utils import DEFAULT_LOG_PATH, configure_logging
from .pipeline import run_pipeline
from .state_store import new_state, save_state
from .steps import (
    ActivateServicesStep,
    BuildModuleStep,
    DeployFilesStep,
    FinalizeStep,
    ImportAssetsStep,
    InstallPackagesStep,
    NetworkStep,
    NormalizePermissionsStep,
    PreflightStep,
)

logger = logging.getLogger(__name__)


DEFAULT_REPORT_PATH = PATHS.report_default


def build_steps():
    return [
        PreflightStep(),
        NetworkStep(),
        InstallPackagesStep(),
        BuildModuleStep(),
        DeployFilesStep(),
        NormalizePermissionsStep(),
        ActivateServicesStep(),
        ImportAssetsStep(),
        FinalizeStep(),
    ]


def make_ctx(
    *,
    kit_dir: str,
    config_path: Optional[str] = None,
    dry_run: bool = False,
    non_interactive: bool = False,
) -> UpgradeCtx:
    cfg = load_config(config_path, kit_dir=kit_dir)
    interactive = bool(cfg.section("network").get("interactive", True)) and not non_interactive
    return UpgradeCtx(
        cfg=cfg,
        kit_dir=Path(kit_dir).resolve(),
        dry_run=dry_run or cfg.dry_run,
        interactive=interactive,
    )


def run(
    ctx: UpgradeCtx,
    *,
    report_path: Optional[str] = DEFAULT_REPORT_PATH,
    start_at: Optional[str] = None,
    stop_after: Optional[str] = None,
) -> Dict[str, Any]:
    """Run the upgrade pipeline once, always writing the run report."""

    state = new_state(version=__version__)
    state["execution"]["dry_run"] = ctx.dry_run

    try:
        result = run_pipeline(
            ctx=ctx,
            state=state,
            steps=build_steps(),
            start_at=start_at,
            stop_after=stop_after,
        )
        return result.state
    except UpgradeError as e:
        state.setdefault("execution", {}).setdefault("errors", []).append(
            {"step": e.stage, "error": str(e), "type": type(e).__name__}
        )
        raise
    finally:
        if report_path:
            try:
                save_state(report_path, state)
            except OSError as e:
                logger.warning("Could not write run report %s: %s", report_path, e)


def main(argv: Optional[list[str]] = None) -> int:
    p = argparse.ArgumentParser(prog="plus-upgrader", description="Upgrade a console deployment in place.")
    p.add_argument("--kit", default=".", help="Upgrade kit directory (rootfs/, kazeta-wifi-pack/, aur-pkgs/, assets/)")
    p.add_argument("--config", default=None, help="Config file (yaml|json); defaults to <kit>/plus-upgrader.yaml")
    p.add_argument("--log", default=DEFAULT_LOG_PATH, help="Path to upgrade log")
    p.add_argument("--report", default=DEFAULT_REPORT_PATH, help="Where to write the run report (json|yaml)")
    p.add_argument("--start-at", default=None, help="Start at step_id (e.g. 40_deploy_files)")
    p.add_argument("--stop-after", default=None, help="Stop after step_id")
    p.add_argument("--dry-run", action="store_true", help="Log commands and file changes without applying them")
    p.add_argument("--non-interactive", action="store_true", help="Never prompt for Wi-Fi credentials")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    args = p.parse_args(argv)

    configure_logging(log_path=args.log)

    try:
        ctx = make_ctx(
            kit_dir=args.kit,
            config_path=args.config,
            dry_run=bool(args.dry_run),
            non_interactive=bool(args.non_interactive),
        )
        run(ctx, report_path=args.report, start_at=args.start_at, stop_after=args.stop_after)
    except UpgradeError as e:
        logger.error("Stage %s failed: %s", e.stage or "setup", e)
        return e.exit_code
    except (OSError, ValueError, RuntimeError) as e:
        logger.error("Upgrade could not start: %s", e)
        return 1
    except KeyboardInterrupt:
        logger.error("Interrupted; re-running the upgrade is safe")
        return 130

    logger.info("Upgrade finished successfully")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
