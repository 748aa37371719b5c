from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional

from ..errors import BuildArtifactAmbiguous, BuildArtifactMissing, ModuleBuildFailed
from .command import CommandFailed
from .perms import chown_tree
from .pkg import install_local

if TYPE_CHECKING:
    from ..context import UpgradeCtx
    from .identity import Builder

logger = logging.getLogger(__name__)


# -s: pull build deps, -f: rebuild even if a package exists. No -i: pacman
# installs the result as root afterwards.
MAKEPKG_ARGV = ["makepkg", "-s", "-f", "--noconfirm"]


@dataclass(frozen=True)
class ModuleBuildJob:
    source_dir: Path
    descriptor: str = "PKGBUILD"
    artifact_suffix: str = ".pkg.tar.zst"

    @property
    def descriptor_path(self) -> Path:
        return self.source_dir / self.descriptor

    def skip_reason(self) -> Optional[str]:
        if not self.source_dir.is_dir():
            return f"module source {self.source_dir} not found"
        if not self.descriptor_path.is_file():
            return f"{self.descriptor} missing in {self.source_dir}"
        return None

    def artifacts(self) -> List[Path]:
        """Top-level files with the artifact suffix (not recursive)."""
        return sorted(
            p for p in self.source_dir.iterdir() if p.is_file() and p.name.endswith(self.artifact_suffix)
        )


def clear_artifacts(job: ModuleBuildJob, *, dry_run: bool = False) -> List[Path]:
    stale = job.artifacts()
    for p in stale:
        if dry_run:
            logger.info("Would remove stale artifact %s", p)
        else:
            logger.info("Removing stale artifact %s", p)
            p.unlink()
    return stale


def find_artifact(job: ModuleBuildJob) -> Path:
    found = job.artifacts()
    if not found:
        raise BuildArtifactMissing(f"No *{job.artifact_suffix} produced in {job.source_dir}")
    if len(found) > 1:
        raise BuildArtifactAmbiguous(
            f"Expected one *{job.artifact_suffix} in {job.source_dir}, found: "
            + ", ".join(p.name for p in found)
        )
    return found[0]


def build_and_install(ctx: "UpgradeCtx", job: ModuleBuildJob, builder: "Builder") -> Optional[Path]:
    """Build the package as `builder`, then install it as root.

    Returns the installed artifact, or None in dry-run mode.
    """

    clear_artifacts(job, dry_run=ctx.dry_run)

    logger.info("Handing %s to %s for the build", job.source_dir, builder.user)
    chown_tree(job.source_dir, builder.uid, builder.gid, dry_run=ctx.dry_run)

    try:
        builder.run(MAKEPKG_ARGV, cwd=str(job.source_dir))
    except CommandFailed as e:
        raise ModuleBuildFailed(f"makepkg failed in {job.source_dir}: {e}") from e

    if ctx.dry_run:
        logger.info("Would install the package built in %s", job.source_dir)
        return None

    artifact = find_artifact(job)
    logger.info("Built package: %s", artifact.name)
    try:
        install_local(ctx, [str(artifact)])
    except CommandFailed as e:
        raise ModuleBuildFailed(f"Installing {artifact.name} failed: {e}") from e
    return artifact
