from __future__ import annotations

import logging

from ..context import InstallContext
from ..pipeline import PhaseState

logger = logging.getLogger(__name__)


class PreflightStep:
    state = PhaseState.PREFLIGHT

    def run(self, ctx: InstallContext) -> None:
        ctx.probe.run_preflight()
