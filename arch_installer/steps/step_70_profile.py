from __future__ import annotations

import logging

from ..context import InstallContext
from ..lib.profile import ProfileRunner, load_profile
from ..pipeline import PhaseState

logger = logging.getLogger(__name__)


class ProfileStep:
    state = PhaseState.PROFILE_EXECUTION

    def run(self, ctx: InstallContext) -> None:
        profile = load_profile(ctx.config.profile)
        ProfileRunner(ctx.config, ctx.require_devices()).run(profile)
