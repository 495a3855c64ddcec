from __future__ import annotations

import logging
from typing import Any, List, Optional

from .boundary import PhaseBoundary
from .config import InstallConfig
from .context import InstallContext
from .envelope import BoundaryEnvelope
from .lib.checks import EnvironmentProbe
from .lib.geo import LocationResolver
from .lib.storage import DiskProvisioner, ProvisionedDevices
from .pipeline import Phase, PhaseState, PhaseTracker, PipelineResult, run_phases
from .prompts import Prompter
from .steps import (
    BaseInstallStep,
    ConfigureStep,
    ConfigureSystemStep,
    ConfirmStep,
    CrossBoundaryStep,
    FinalizeStep,
    PostFixupStep,
    PreflightStep,
    ProfileStep,
    ProvisionStep,
)

logger = logging.getLogger(__name__)


def outer_phases() -> List[Phase]:
    """Live environment side. The inner process covers PROFILE_EXECUTION."""

    return [
        PreflightStep(),
        ConfigureStep(),
        ConfirmStep(),
        ProvisionStep(),
        BaseInstallStep(),
        CrossBoundaryStep(),
        PostFixupStep(),
        FinalizeStep(),
    ]


def inner_phases() -> List[Phase]:
    return [
        ConfigureSystemStep(),
        ProfileStep(),
    ]


def _predecessor(state: PhaseState) -> Optional[PhaseState]:
    ordered = [s for s in PhaseState if s is not PhaseState.FAILED]
    i = ordered.index(state)
    return ordered[i - 1] if i > 0 else None


class PhaseOrchestrator:
    """Drives one installer process through its phases.

    The outer instance (live system) runs everything up to the boundary
    crossing and the fix-ups after it. The inner instance is built from a
    BoundaryEnvelope and starts where the envelope says; it never prompts.
    """

    def __init__(
        self,
        config: InstallConfig,
        *,
        prompter: Optional[Prompter] = None,
        inner: bool = False,
        devices: Optional[ProvisionedDevices] = None,
        resume_from: PhaseState = PhaseState.CHROOT_CONFIG,
        probe: Any = None,
        resolver: Any = None,
        provisioner: Any = None,
        boundary: Any = None,
    ) -> None:
        self.inner = inner
        prompter = prompter or Prompter(unattended=config.auto)
        self.ctx = InstallContext(config=config, prompter=prompter, devices=devices)

        if inner:
            # Everything was asked and confirmed on the outside.
            self.ctx.confirm()
            self.tracker = PhaseTracker(start=_predecessor(resume_from))
            self.phases = [p for p in inner_phases() if p.state.value >= resume_from.value]
        else:
            self.ctx.probe = probe or EnvironmentProbe(config, prompter)
            self.ctx.resolver = resolver or LocationResolver()
            self.ctx.provisioner = provisioner or DiskProvisioner(config.mount_point)
            self.ctx.boundary = boundary or PhaseBoundary(config.mount_point)
            self.tracker = PhaseTracker()
            self.phases = outer_phases()

    @classmethod
    def from_envelope(cls, envelope: BoundaryEnvelope, *, prompter: Optional[Prompter] = None) -> "PhaseOrchestrator":
        return cls(
            envelope.config,
            prompter=prompter,
            inner=True,
            devices=envelope.devices,
            resume_from=envelope.resume_from,
        )

    @property
    def config(self) -> InstallConfig:
        return self.ctx.config

    def run(self) -> int:
        """Run all phases; returns 0 or raises the InstallerError of the failed phase."""

        stop_after = PhaseState.CONFIRMED if (self.config.dry_run and not self.inner) else None
        result: PipelineResult = run_phases(self.tracker, self.phases, self.ctx, stop_after=stop_after)
        if result.stopped_early:
            logger.info("Dry run stopped after the summary (not confirmed); no changes were made.")
        else:
            logger.info("Phases complete: %s", ", ".join(s.name for s in result.ran))
        return 0
