from __future__ import annotations

import logging
from pathlib import Path

from ..context import InstallContext
from ..logging_utils import copy_log_into_target
from ..pipeline import PhaseState

logger = logging.getLogger(__name__)

STUB_RESOLV = "../run/systemd/resolve/stub-resolv.conf"


class PostFixupStep:
    state = PhaseState.POST_FIXUP

    def run(self, ctx: InstallContext) -> None:
        mnt = ctx.config.mount_point

        # Only possible from outside: inside, arch-chroot bind-mounts the live
        # resolv.conf over this path.
        resolv = Path(mnt) / "etc/resolv.conf"
        if resolv.is_symlink() or resolv.exists():
            resolv.unlink()
        resolv.symlink_to(STUB_RESOLV)
        logger.info("Pointed %s at the systemd-resolved stub", resolv)

        copied = copy_log_into_target(ctx.config.log_file, mnt)
        if copied:
            logger.info("Log saved to: %s", copied)
