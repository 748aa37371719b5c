from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterator

logger = logging.getLogger(__name__)


def walk_tree(root: Path) -> Iterator[Path]:
    """Yield root and everything below it; symlinks are yielded, not followed."""

    yield root
    for dirpath, dirnames, filenames in os.walk(root):
        for name in dirnames + filenames:
            yield Path(dirpath) / name


def chown_tree(root: Path, uid: int, gid: int, *, dry_run: bool = False) -> None:
    if dry_run:
        logger.info("Would chown -R %s:%s %s", uid, gid, root)
        return
    for p in walk_tree(root):
        os.chown(p, uid, gid, follow_symlinks=False)


def normalize_tree(
    root: Path,
    *,
    uid: int,
    gid: int,
    dir_mode: int,
    file_mode: int,
    dry_run: bool = False,
) -> int:
    """Force ownership and modes on a security-sensitive directory.

    Subdirectories get dir_mode, regular files get file_mode. Returns how many
    entries had a mode or owner that differed.
    """

    if dry_run:
        logger.info("Would normalize %s (%s:%s dirs=%o files=%o)", root, uid, gid, dir_mode, file_mode)
        return 0

    changed = 0
    for p in walk_tree(root):
        if p.is_symlink():
            continue
        st = p.stat()
        want = dir_mode if p.is_dir() else file_mode
        if (st.st_mode & 0o7777) != want or st.st_uid != uid or st.st_gid != gid:
            changed += 1
        os.chown(p, uid, gid)
        os.chmod(p, want)

    logger.info("Normalized %s (dirs=%o files=%o, %d corrected)", root, dir_mode, file_mode, changed)
    return changed
