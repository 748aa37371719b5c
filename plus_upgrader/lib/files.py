from __future__ import annotations

import filecmp
import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Collection, List

logger = logging.getLogger(__name__)

BACKUP_SUFFIX = ".bak"


@dataclass(frozen=True)
class FileDeploymentEntry:
    source: Path
    dest: Path
    mode: int = 0o755
    uid: int = 0
    gid: int = 0

    @property
    def backup(self) -> Path:
        return backup_path(self.dest)


def backup_path(dest: Path) -> Path:
    return dest.with_name(dest.name + BACKUP_SUFFIX)


def same_content(a: Path, b: Path) -> bool:
    # Never compare through a destination symlink.
    if b.is_symlink():
        return False
    return a.is_file() and b.is_file() and filecmp.cmp(a, b, shallow=False)


def sync_tree(src: Path, dst: Path, *, exclude: Collection[str] = (), dry_run: bool = False) -> List[Path]:
    """Additive recursive copy of src into dst.

    Files only in dst are left alone, conflicting files are overwritten and
    identical files are skipped. A symlink in dst that collides with a source
    entry is replaced by that entry, never written through. `exclude` holds
    paths relative to src.
    Returns the destination files that were written.
    """

    if not src.exists():
        raise FileNotFoundError(str(src))

    excluded = {Path(e).as_posix() for e in exclude}
    written: List[Path] = []
    for item in sorted(src.rglob("*")):
        rel = item.relative_to(src)
        if rel.as_posix() in excluded:
            logger.debug("Excluded from sync: %s", rel)
            continue
        out = dst / rel
        if item.is_dir():
            if not dry_run:
                if out.is_symlink():
                    logger.info("Replacing symlink %s with a directory", out)
                    out.unlink()
                out.mkdir(parents=True, exist_ok=True)
            continue
        if same_content(item, out):
            continue
        if dry_run:
            logger.info("Would copy %s -> %s", item, out)
        else:
            out.parent.mkdir(parents=True, exist_ok=True)
            if out.is_symlink():
                logger.info("Replacing symlink %s -> %s", out, os.readlink(out))
                out.unlink()
            shutil.copy2(item, out, follow_symlinks=False)
        written.append(out)

    logger.info("Synced %s -> %s (%d file(s) written)", src, dst, len(written))
    return written


def backup_and_replace(entry: FileDeploymentEntry, *, dry_run: bool = False) -> str:
    """Install entry.source at entry.dest, keeping one backup generation.

    An existing destination is renamed to `<dest>.bak` (replacing an older
    backup) before the copy. When the destination already holds the same bytes
    nothing is moved and only mode/owner are re-applied.

    Returns "created", "replaced" or "unchanged".
    """

    src, dest = entry.source, entry.dest
    if not src.is_file():
        raise FileNotFoundError(str(src))

    if same_content(src, dest):
        outcome = "unchanged"
    elif dest.exists() or dest.is_symlink():
        outcome = "replaced"
    else:
        outcome = "created"

    if dry_run:
        logger.info("Would deploy %s -> %s (%s)", src, dest, outcome)
        return outcome

    if outcome == "replaced":
        logger.info("Backing up %s -> %s", dest, entry.backup)
        os.replace(dest, entry.backup)
    if outcome != "unchanged":
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(src, dest)

    os.chown(dest, entry.uid, entry.gid)
    os.chmod(dest, entry.mode)
    logger.info("Deployed %s (%s, mode %o)", dest, outcome, entry.mode)
    return outcome
