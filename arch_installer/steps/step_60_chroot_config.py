from __future__ import annotations

import logging

from ..context import InstallContext
from ..lib.sysconfig import SystemConfigurator
from ..pipeline import PhaseState

logger = logging.getLogger(__name__)


class CrossBoundaryStep:
    """Outer side: run the remaining phases in a process inside the new root."""

    state = PhaseState.CHROOT_CONFIG

    def run(self, ctx: InstallContext) -> None:
        devices = ctx.require_devices()
        try:
            ctx.boundary.cross(ctx.config, devices)
        finally:
            ctx.boundary.teardown()


class ConfigureSystemStep:
    """Inner side: timezone, locale, hostname, boot, users."""

    state = PhaseState.CHROOT_CONFIG

    def run(self, ctx: InstallContext) -> None:
        SystemConfigurator(ctx.config, ctx.require_devices()).run()
