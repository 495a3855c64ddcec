from __future__ import annotations

import logging
import os
import shlex
import shutil
from pathlib import Path
from typing import Callable

from .config import InstallConfig
from .envelope import BoundaryEnvelope, save_envelope
from .errors import ConfigurationError
from .lib.assets import copy_tree
from .lib.chroot import chroot_cmd
from .lib.command import CmdResult
from .lib.env import PATHS
from .lib.storage import ProvisionedDevices
from .pipeline import PhaseState

logger = logging.getLogger(__name__)

PACKAGE_DIR = Path(__file__).resolve().parent
ENVELOPE_NAME = "envelope.json"
ENTRY_NAME = "enter.sh"


def render_entry_script(chroot_dir: str) -> str:
    envelope = f"{chroot_dir}/{ENVELOPE_NAME}"
    return (
        "#!/bin/sh\n"
        "set -e\n"
        f"export PYTHONPATH={shlex.quote(chroot_dir)}\n"
        f"exec python3 -m {PACKAGE_DIR.name}.inner {shlex.quote(envelope)}\n"
    )


class PhaseBoundary:
    """Hands the run over to a second installer process inside the new root.

    The installer package is copied to <mnt><chroot_dir> (not /tmp:
    arch-chroot mounts a fresh tmpfs there), the envelope is written next to
    it and a small entry script is executed through arch-chroot. The script
    is run as a file, never piped, so the inner process keeps the terminal's
    stdin.
    """

    def __init__(
        self,
        mount_point: str,
        *,
        chroot_dir: str = PATHS.chroot_installer_dir,
        source_dir: str | Path = PACKAGE_DIR,
        runner: Callable[..., CmdResult] = chroot_cmd,
    ) -> None:
        self.mount_point = mount_point
        self.chroot_dir = chroot_dir
        self.source_dir = Path(source_dir)
        self._runner = runner

    @property
    def host_dir(self) -> Path:
        """The chroot directory as seen from the live system."""

        return Path(self.mount_point) / self.chroot_dir.lstrip("/")

    @property
    def envelope_path(self) -> Path:
        return self.host_dir / ENVELOPE_NAME

    @property
    def entry_path(self) -> Path:
        return self.host_dir / ENTRY_NAME

    def stage(self, config: InstallConfig, devices: ProvisionedDevices) -> BoundaryEnvelope:
        copy_tree(str(self.source_dir), str(self.host_dir / self.source_dir.name))

        envelope = BoundaryEnvelope(
            config=config,
            devices=devices,
            resume_from=PhaseState.CHROOT_CONFIG,
            installer_dir=self.chroot_dir,
        )
        save_envelope(str(self.envelope_path), envelope)

        self.entry_path.write_text(render_entry_script(self.chroot_dir), encoding="utf-8")
        os.chmod(self.entry_path, 0o700)
        return envelope

    def cross(self, config: InstallConfig, devices: ProvisionedDevices) -> None:
        self.stage(config, devices)
        logger.info("Entering chroot at %s", self.mount_point)
        r = self._runner(
            self.mount_point,
            [f"{self.chroot_dir}/{ENTRY_NAME}"],
            check=False,
            capture=False,
        )
        if r.returncode != 0:
            raise ConfigurationError(f"Installation inside the chroot failed (rc={r.returncode})")
        logger.info("Returned from chroot")

    def teardown(self) -> None:
        """Remove the copied installer, envelope included."""

        if self.host_dir.exists():
            logger.info("Removing installer copy %s", self.host_dir)
            shutil.rmtree(self.host_dir)
