"""Tests for SnapshotStateMachine."""

import pytest

from bookrank.errors import UnitTimeoutError
from bookrank.execution import Deadline
from bookrank.rankings import SnapshotState, SnapshotStateMachine, SnapshotStateTransitionError


class SteppingClock:
    """Clock returning queued values, then repeating the last one."""

    def __init__(self, *values: float) -> None:
        self._values = list(values)

    def __call__(self) -> float:
        if len(self._values) > 1:
            return self._values.pop(0)
        return self._values[0]


def _advance_to_ranking(machine: SnapshotStateMachine) -> None:
    machine.to_computing_window()
    machine.to_scoring()
    machine.to_ranking()


class TestSnapshotStateMachine:
    """Tests for legal and illegal transitions."""

    def test_initial_state(self) -> None:
        """A new machine is IDLE and not terminal."""
        machine = SnapshotStateMachine("trending")
        assert machine.state == SnapshotState.IDLE
        assert not machine.is_terminal
        assert machine.ranking_type == "trending"

    def test_happy_path(self) -> None:
        """Window, score, rank, diff, persist, active."""
        machine = SnapshotStateMachine("trending")
        _advance_to_ranking(machine)
        machine.to_diffing()
        machine.to_persisting()
        machine.to_active()

        assert machine.state == SnapshotState.ACTIVE
        assert machine.is_terminal

    def test_kept_previous_from_ranking(self) -> None:
        """An empty ranking may keep the previous snapshot."""
        machine = SnapshotStateMachine("trending")
        _advance_to_ranking(machine)
        machine.to_kept_previous()
        assert machine.state == SnapshotState.KEPT_PREVIOUS

    def test_cannot_skip_stages(self) -> None:
        """Persisting straight from IDLE is illegal."""
        machine = SnapshotStateMachine("trending")
        with pytest.raises(SnapshotStateTransitionError) as exc_info:
            machine.to_persisting()

        assert exc_info.value.from_state == SnapshotState.IDLE
        assert exc_info.value.to_state == SnapshotState.PERSISTING
        assert machine.state == SnapshotState.IDLE

    def test_kept_previous_only_after_ranking(self) -> None:
        """Keeping the previous snapshot is decided at the ranking stage."""
        machine = SnapshotStateMachine("trending")
        machine.to_computing_window()
        assert not machine.can_transition_to(SnapshotState.KEPT_PREVIOUS)

    def test_terminal_states_have_no_exits(self) -> None:
        """ACTIVE cannot go back to scoring."""
        machine = SnapshotStateMachine("trending", initial_state=SnapshotState.ACTIVE)
        with pytest.raises(SnapshotStateTransitionError):
            machine.to_scoring()

    @pytest.mark.parametrize(
        "state",
        [
            SnapshotState.IDLE,
            SnapshotState.COMPUTING_WINDOW,
            SnapshotState.SCORING,
            SnapshotState.RANKING,
            SnapshotState.DIFFING,
            SnapshotState.PERSISTING,
        ],
    )
    def test_failed_reachable_from_working_states(self, state: SnapshotState) -> None:
        """Every non-terminal state can fail."""
        machine = SnapshotStateMachine("trending", initial_state=state)
        machine.to_failed()
        assert machine.state == SnapshotState.FAILED

    def test_to_failed_is_noop_when_terminal(self) -> None:
        """Failing after success leaves the terminal state alone."""
        machine = SnapshotStateMachine("trending", initial_state=SnapshotState.ACTIVE)
        machine.to_failed()
        assert machine.state == SnapshotState.ACTIVE


class TestDeadlineChecks:
    """Tests for deadline checks at stage boundaries."""

    def test_expired_deadline_blocks_working_stage(self) -> None:
        """The state does not change when the deadline has passed."""
        deadline = Deadline("trending", 10.0, clock=SteppingClock(0.0, 1.0, 11.0))
        machine = SnapshotStateMachine("trending", deadline)
        machine.to_computing_window()

        with pytest.raises(UnitTimeoutError) as exc_info:
            machine.to_scoring()

        assert exc_info.value.stage == "scoring"
        assert machine.state == SnapshotState.COMPUTING_WINDOW

    def test_failed_is_not_deadline_checked(self) -> None:
        """A timed-out machine can still record the failure."""
        deadline = Deadline("trending", 1.0, clock=SteppingClock(0.0, 5.0))
        machine = SnapshotStateMachine("trending", deadline)

        with pytest.raises(UnitTimeoutError):
            machine.to_computing_window()
        machine.to_failed()
        assert machine.state == SnapshotState.FAILED
