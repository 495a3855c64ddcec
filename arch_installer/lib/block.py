from __future__ import annotations

import logging
import os
import stat

from .command import run_cmd

logger = logging.getLogger(__name__)


def get_uuid(dev: str) -> str:
    """Return filesystem UUID for a block device."""

    r = run_cmd(["blkid", "-s", "UUID", "-o", "value", dev])
    uuid = (r.stdout or "").strip()
    if not uuid:
        raise RuntimeError(f"Unable to determine UUID for {dev}")
    return uuid


def is_block_device(path: str) -> bool:
    try:
        return stat.S_ISBLK(os.stat(path).st_mode)
    except OSError:
        return False
