from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import List

from .perms import chown_tree

logger = logging.getLogger(__name__)


def copy_missing(src: Path, dst: Path, *, dry_run: bool = False) -> List[Path]:
    """Copy src into dst without touching anything already present in dst."""

    if not src.exists():
        raise FileNotFoundError(str(src))

    copied: List[Path] = []
    for item in sorted(src.rglob("*")):
        out = dst / item.relative_to(src)
        if item.is_dir():
            if not dry_run:
                out.mkdir(parents=True, exist_ok=True)
            continue
        if out.exists() or out.is_symlink():
            continue
        if dry_run:
            logger.info("Would copy %s -> %s", item, out)
        else:
            out.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(item, out)
        copied.append(out)
    return copied


def import_assets(src: Path, dst: Path, *, uid: int, gid: int, dry_run: bool = False) -> List[Path]:
    """Import optional user assets; an absent or empty source is a no-op."""

    if not src.is_dir() or not any(src.iterdir()):
        logger.info("No user assets at %s; skipping", src)
        return []

    if not dry_run:
        dst.mkdir(parents=True, exist_ok=True)
    copied = copy_missing(src, dst, dry_run=dry_run)
    chown_tree(dst, uid, gid, dry_run=dry_run)
    logger.info("Imported %d asset file(s) into %s", len(copied), dst)
    return copied
