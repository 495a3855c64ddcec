from __future__ import annotations

import logging
from typing import Sequence

from .command import CmdResult, run_cmd

logger = logging.getLogger(__name__)


def chroot_cmd(
    target_root: str,
    argv: Sequence[str],
    *,
    check: bool = True,
    capture: bool = True,
) -> CmdResult:
    """Run a command inside target root.

    arch-chroot sets up the /dev, /proc, /sys and resolv.conf binds itself
    and tears them down on exit. capture=False keeps the terminal (stdin
    included) attached to the child.
    """

    return run_cmd(["arch-chroot", target_root, *argv], check=check, capture=capture)


def unmount_target(target_root: str) -> None:
    """Release the target: swap off, then recursive unmount."""

    run_cmd(["swapoff", "-a"], check=False)
    r = run_cmd(["umount", "-R", target_root], check=False)
    if not r.ok:
        logger.warning("Could not unmount %s (rc=%s); unmount it manually before rebooting", target_root, r.returncode)
