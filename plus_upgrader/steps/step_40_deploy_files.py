from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath
from typing import Any, Dict, List

from ..config import parse_mode
from ..context import UpgradeCtx
from ..errors import PreconditionFailed
from ..lib.files import FileDeploymentEntry, backup_and_replace, sync_tree
from ..lib.target import target_from_state
from ..state_store import add_warning, record_decision

logger = logging.getLogger(__name__)


def _relative_to(path: str, tree: str) -> str | None:
    p, t = PurePosixPath(path), PurePosixPath(tree)
    try:
        return p.relative_to(t).as_posix()
    except ValueError:
        return None


class DeployFilesStep:
    step_id = "40_deploy_files"

    def run(self, ctx: UpgradeCtx, state: Dict[str, Any]) -> Dict[str, Any]:
        dep = ctx.cfg.section("deploy")
        target = target_from_state(state)
        staging = ctx.kit_path(str(dep.get("staging_dir") or "rootfs"))
        if not staging.is_dir():
            raise PreconditionFailed(f"Staging tree not found: {staging}")

        root_uid, root_gid = ctx.cfg.root_ids
        policy_files = list(dep.get("policy_files") or [])
        changed: List[Path] = []
        outcomes: Dict[str, str] = {}

        # Configuration trees merge across versions.
        for tree in dep.get("sync_trees") or []:
            src = staging / tree
            if not src.is_dir():
                logger.info("Staging tree %s absent; nothing to sync", src)
                continue
            exclude = [r for r in (_relative_to(str(pf.get("path")), tree) for pf in policy_files) if r]
            changed.extend(sync_tree(src, target.path(tree), exclude=exclude, dry_run=ctx.dry_run))

        # Policy files are superseded wholesale, with a backup.
        for pf in policy_files:
            rel = str(pf.get("path") or "").strip("/")
            src = staging / rel
            if not rel or not src.is_file():
                continue
            entry = FileDeploymentEntry(
                source=src,
                dest=target.path(rel),
                mode=parse_mode(pf.get("mode", 0o440)),
                uid=root_uid,
                gid=root_gid,
            )
            outcome = backup_and_replace(entry, dry_run=ctx.dry_run)
            outcomes[rel] = outcome
            if outcome != "unchanged":
                changed.append(entry.dest)

        # Executables are superseded wholesale, with a backup.
        bin_rel = str(dep.get("executables_dir") or "usr/bin")
        bin_src = staging / bin_rel
        exe_mode = parse_mode(dep.get("executable_mode", 0o755))
        if bin_src.is_dir():
            for src in sorted(p for p in bin_src.iterdir() if p.is_file()):
                entry = FileDeploymentEntry(
                    source=src,
                    dest=target.path(bin_rel) / src.name,
                    mode=exe_mode,
                    uid=root_uid,
                    gid=root_gid,
                )
                outcome = backup_and_replace(entry, dry_run=ctx.dry_run)
                outcomes[f"{bin_rel}/{src.name}"] = outcome
                if outcome != "unchanged":
                    changed.append(entry.dest)

        for rel in dep.get("expected_files") or []:
            if not (staging / rel).exists():
                logger.warning("%s not found in kit; continuing without it", rel)
                add_warning(state, missing_kit_file=rel)

        rules_dir = target.path(str(dep.get("device_rules_dir") or "etc/udev/rules.d"))
        rules_changed = any(rules_dir in p.parents for p in changed)

        changed_rel = [str(p.relative_to(target.root)) for p in changed]
        state.setdefault("execution", {}).setdefault("changed", {}).update(
            {
                "files": changed_rel,
                "device_rules": rules_changed,
            }
        )
        record_decision(state, "replaced_files", outcomes)
        logger.info("Deployed files: %d written, device rules changed=%s", len(changed_rel), rules_changed)
        return state
