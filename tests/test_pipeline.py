import pytest

from arch_installer.errors import ConfigurationError, DestructiveError, InvalidTransition, PreflightError
from arch_installer.lib.command import CommandError
from arch_installer.pipeline import FnPhase, PhaseState, PhaseTracker, run_phases


def test_tracker_moves_forward_only():
    t = PhaseTracker()
    t.advance(PhaseState.PREFLIGHT)
    t.advance(PhaseState.CONFIGURING)
    t.advance(PhaseState.PROVISIONING)  # skipping is allowed
    with pytest.raises(InvalidTransition):
        t.advance(PhaseState.CONFIRMED)
    with pytest.raises(InvalidTransition):
        t.advance(PhaseState.PROVISIONING)
    assert t.history == [PhaseState.PREFLIGHT, PhaseState.CONFIGURING, PhaseState.PROVISIONING]


def test_failed_reachable_from_any_non_terminal_state():
    for state in PhaseState:
        if state.terminal:
            continue
        t = PhaseTracker(start=state)
        t.fail()
        assert t.state is PhaseState.FAILED


def test_nothing_leaves_a_terminal_state():
    t = PhaseTracker(start=PhaseState.COMPLETE)
    with pytest.raises(InvalidTransition):
        t.fail()
    t = PhaseTracker(start=PhaseState.FAILED)
    with pytest.raises(InvalidTransition):
        t.advance(PhaseState.COMPLETE)


def test_run_phases_in_order_and_stop_after():
    seen = []
    phases = [FnPhase(s, lambda ctx, s=s: seen.append((ctx, s))) for s in (
        PhaseState.PREFLIGHT,
        PhaseState.CONFIGURING,
        PhaseState.CONFIRMED,
        PhaseState.PROVISIONING,
    )]
    t = PhaseTracker()
    result = run_phases(t, phases, "ctx", stop_after=PhaseState.CONFIRMED)
    assert result.stopped_early
    assert result.ran == [PhaseState.PREFLIGHT, PhaseState.CONFIGURING, PhaseState.CONFIRMED]
    assert [s for _, s in seen] == result.ran
    assert all(c == "ctx" for c, _ in seen)
    assert t.state is PhaseState.CONFIRMED


def test_out_of_order_phase_list_is_rejected():
    phases = [FnPhase(PhaseState.CONFIGURING, lambda ctx: None), FnPhase(PhaseState.PREFLIGHT, lambda ctx: None)]
    with pytest.raises(InvalidTransition):
        run_phases(PhaseTracker(), phases, None)


@pytest.mark.parametrize(
    "state, kind",
    [
        (PhaseState.PREFLIGHT, PreflightError),
        (PhaseState.PROVISIONING, DestructiveError),
        (PhaseState.BASE_INSTALL, DestructiveError),
        (PhaseState.CHROOT_CONFIG, ConfigurationError),
    ],
)
def test_errors_take_the_kind_of_the_failing_phase(state, kind):
    def boom(ctx):
        raise CommandError(["sgdisk", "--zap-all", "/dev/sda"], 2, "busy")

    t = PhaseTracker()
    with pytest.raises(kind) as exc:
        run_phases(t, [FnPhase(state, boom)], None)
    assert isinstance(exc.value.__cause__, CommandError)
    assert t.state is PhaseState.FAILED


def test_installer_errors_pass_through_unchanged():
    def abort(ctx):
        raise PreflightError("declined")

    t = PhaseTracker()
    with pytest.raises(PreflightError, match="declined"):
        run_phases(t, [FnPhase(PhaseState.PROVISIONING, abort)], None)
    assert t.history[-1] is PhaseState.FAILED


@pytest.mark.parametrize("error", [RuntimeError("Unable to determine UUID for /dev/sda3"), KeyError("root")])
def test_unexpected_errors_take_the_phase_kind(error):
    def boom(ctx):
        raise error

    t = PhaseTracker(start=PhaseState.BASE_INSTALL)
    with pytest.raises(ConfigurationError) as exc:
        run_phases(t, [FnPhase(PhaseState.CHROOT_CONFIG, boom)], None)
    assert exc.value.exit_code == 3
    assert exc.value.__cause__ is error
    assert t.state is PhaseState.FAILED
