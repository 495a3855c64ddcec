from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Sequence

logger = logging.getLogger(__name__)

DEFAULT_IGNORE = ("__pycache__", "*.pyc")


def copy_tree(src: str, dst: str, *, ignore: Sequence[str] = DEFAULT_IGNORE) -> bool:
    """Copy src to dst unless dst already exists.

    Returns True if a copy was made. File modes are preserved so module
    scripts stay executable.
    """

    s = Path(src)
    d = Path(dst)
    if not s.exists():
        raise FileNotFoundError(src)
    if d.exists():
        logger.info("%s already present, not copying again", d)
        return False

    d.parent.mkdir(parents=True, exist_ok=True)
    shutil.copytree(s, d, symlinks=True, ignore=shutil.ignore_patterns(*ignore))
    logger.info("Copied %s -> %s", s, d)
    return True
