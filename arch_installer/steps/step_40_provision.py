from __future__ import annotations

import logging

from ..context import InstallContext
from ..errors import DestructiveError
from ..pipeline import PhaseState

logger = logging.getLogger(__name__)


class ProvisionStep:
    state = PhaseState.PROVISIONING

    def run(self, ctx: InstallContext) -> None:
        if ctx.plan is None:
            raise DestructiveError("No disk layout plan to execute")
        ctx.devices = ctx.provisioner.execute(ctx.plan)
