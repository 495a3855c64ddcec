from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Protocol, Sequence, Type

from .errors import (
    ConfigurationError,
    DestructiveError,
    InstallerError,
    InvalidTransition,
    PreflightError,
)

logger = logging.getLogger(__name__)


class PhaseState(enum.Enum):
    PREFLIGHT = 1
    CONFIGURING = 2
    CONFIRMED = 3
    PROVISIONING = 4
    BASE_INSTALL = 5
    CHROOT_CONFIG = 6
    PROFILE_EXECUTION = 7
    POST_FIXUP = 8
    COMPLETE = 9
    FAILED = 99

    @property
    def terminal(self) -> bool:
        return self in (PhaseState.COMPLETE, PhaseState.FAILED)


# Error kind raised for an unexpected failure inside each phase.
_PHASE_ERRORS: dict[PhaseState, Type[InstallerError]] = {
    PhaseState.PREFLIGHT: PreflightError,
    PhaseState.CONFIGURING: PreflightError,
    PhaseState.CONFIRMED: PreflightError,
    PhaseState.PROVISIONING: DestructiveError,
    PhaseState.BASE_INSTALL: DestructiveError,
    PhaseState.CHROOT_CONFIG: ConfigurationError,
    PhaseState.PROFILE_EXECUTION: ConfigurationError,
    PhaseState.POST_FIXUP: ConfigurationError,
    PhaseState.COMPLETE: ConfigurationError,
}


def error_kind_for(phase: PhaseState) -> Type[InstallerError]:
    return _PHASE_ERRORS.get(phase, InstallerError)


class PhaseTracker:
    """Forward-only progress marker.

    A phase may be skipped but never re-entered. FAILED is reachable from
    any non-terminal state; nothing leaves a terminal state.
    """

    def __init__(self, start: Optional[PhaseState] = None) -> None:
        self._state: Optional[PhaseState] = start
        self.history: List[PhaseState] = [start] if start else []

    @property
    def state(self) -> Optional[PhaseState]:
        return self._state

    def advance(self, to: PhaseState) -> None:
        if to is PhaseState.FAILED:
            self.fail()
            return
        cur = self._state
        if cur is not None and cur.terminal:
            raise InvalidTransition(f"Cannot leave terminal state {cur.name} for {to.name}")
        if cur is not None and to.value <= cur.value:
            raise InvalidTransition(f"Phase {to.name} is not after {cur.name}")
        logger.info("=== Phase: %s ===", to.name)
        self._state = to
        self.history.append(to)

    def fail(self) -> None:
        cur = self._state
        if cur is not None and cur.terminal:
            raise InvalidTransition(f"Cannot fail from terminal state {cur.name}")
        logger.error("Phase %s failed", cur.name if cur else "(none)")
        self._state = PhaseState.FAILED
        self.history.append(PhaseState.FAILED)


class Phase(Protocol):
    """A single step of the installer, bound to one PhaseState."""

    state: PhaseState

    def run(self, ctx: Any) -> None:
        ...


@dataclass(frozen=True)
class FnPhase:
    state: PhaseState
    fn: Callable[[Any], None]

    def run(self, ctx: Any) -> None:
        self.fn(ctx)


@dataclass
class PipelineResult:
    final_state: PhaseState
    ran: List[PhaseState] = field(default_factory=list)
    stopped_early: bool = False


def run_phases(
    tracker: PhaseTracker,
    phases: Sequence[Phase],
    ctx: Any,
    *,
    stop_after: Optional[PhaseState] = None,
) -> PipelineResult:
    """Run phases in order. The only place phase ordering is enforced.

    Errors are converted to the error kind owned by the failing phase,
    the tracker moves to FAILED and the error propagates.
    """

    ran: List[PhaseState] = []

    for phase in phases:
        tracker.advance(phase.state)
        try:
            phase.run(ctx)
        except InstallerError:
            tracker.fail()
            raise
        except Exception as e:
            tracker.fail()
            raise error_kind_for(phase.state)(str(e) or type(e).__name__) from e
        ran.append(phase.state)

        if stop_after is not None and phase.state is stop_after:
            logger.info("Stopping after %s", stop_after.name)
            return PipelineResult(final_state=phase.state, ran=ran, stopped_early=True)

    return PipelineResult(final_state=tracker.state or PhaseState.PREFLIGHT, ran=ran)
