"""Filesystem side effects applied after repository changes."""

import logging
import os
import shutil
from pathlib import Path
from typing import Iterable, Optional

logger = logging.getLogger('gitensure.reconcile.ownership')


def apply_ownership(path: Path, owner: Optional[str], group: Optional[str]) -> None:
    """Recursively change owner and/or group of everything under ``path``."""
    if not owner and not group:
        return

    logger.debug(f"Setting ownership of {path} to {owner or ''}:{group or ''}")
    shutil.chown(path, user=owner, group=group)
    for root, dirs, files in os.walk(path):
        for name in dirs + files:
            entry = os.path.join(root, name)
            if os.path.islink(entry):
                os.lchown(entry, *_ids(owner, group))
            else:
                shutil.chown(entry, user=owner, group=group)


def _ids(owner: Optional[str], group: Optional[str]):
    import grp
    import pwd

    uid = pwd.getpwnam(owner).pw_uid if owner else -1
    gid = grp.getgrnam(group).gr_gid if group else -1
    return uid, gid


def write_excludes(git_dir: Path, patterns: Iterable[str]) -> Path:
    """Overwrite ``info/exclude`` with one literal pattern per line."""
    exclude_file = git_dir / "info" / "exclude"
    exclude_file.parent.mkdir(parents=True, exist_ok=True)
    exclude_file.write_text("".join(f"{pattern}\n" for pattern in patterns))
    logger.debug(f"Wrote exclude patterns to {exclude_file}")
    return exclude_file
