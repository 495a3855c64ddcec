from __future__ import annotations

import logging

from ..context import InstallContext
from ..lib.chroot import unmount_target
from ..lib.command import run_cmd
from ..pipeline import PhaseState

logger = logging.getLogger(__name__)


class FinalizeStep:
    state = PhaseState.COMPLETE

    def run(self, ctx: InstallContext) -> None:
        cfg = ctx.config
        logger.info("Installation finished successfully!")

        # Rebooting is operational and must be asked for explicitly (--reboot).
        if cfg.reboot:
            unmount_target(cfg.mount_point)
            run_cmd(["sync"])
            run_cmd(["reboot"])
            return

        ctx.prompter.console.print(
            f"[green]Installation complete.[/green] Unmount with 'umount -R {cfg.mount_point}', "
            "remove the installation media and reboot."
        )
