from __future__ import annotations

import logging
from pathlib import Path

from ..context import InstallContext
from ..lib.pkg import package_list_path, pacstrap, read_package_list, setup_mirrors, write_fstab
from ..pipeline import PhaseState

logger = logging.getLogger(__name__)

BASE_LIST = "base.list"


class BaseInstallStep:
    state = PhaseState.BASE_INSTALL

    def run(self, ctx: InstallContext) -> None:
        cfg = ctx.config
        mnt = cfg.mount_point

        country = cfg.mirror_country or ctx.resolver.resolve_country_plain()
        setup_mirrors(country)

        # mkinitcpio's sd-vconsole hook runs during pacstrap and needs this.
        vconsole = Path(mnt) / "etc/vconsole.conf"
        vconsole.parent.mkdir(parents=True, exist_ok=True)
        vconsole.write_text(f"KEYMAP={cfg.keymap}\n", encoding="utf-8")

        pacstrap(mnt, read_package_list(package_list_path(BASE_LIST)))
        write_fstab(mnt)
        logger.info("Base system installed at %s", mnt)
