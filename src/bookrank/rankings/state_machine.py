"""State machine for one ranking snapshot computation."""

from enum import Enum

import structlog

from bookrank.execution import Deadline


logger = structlog.get_logger()


class SnapshotState(str, Enum):
    """State of a ranking computation.

    States represent the lifecycle of one snapshot:
    - IDLE: Triggered, nothing computed yet
    - COMPUTING_WINDOW: Resolving the period window
    - SCORING: Fetching signals and scoring candidates
    - RANKING: Sorting and truncating candidates
    - DIFFING: Comparing against the previous snapshot
    - PERSISTING: Swapping the new snapshot in as active
    - ACTIVE: New snapshot is active (terminal until superseded)
    - KEPT_PREVIOUS: No eligible candidates; previous snapshot stays active
    - FAILED: Computation aborted; previous snapshot untouched
    """

    IDLE = "IDLE"
    COMPUTING_WINDOW = "COMPUTING_WINDOW"
    SCORING = "SCORING"
    RANKING = "RANKING"
    DIFFING = "DIFFING"
    PERSISTING = "PERSISTING"
    ACTIVE = "ACTIVE"
    KEPT_PREVIOUS = "KEPT_PREVIOUS"
    FAILED = "FAILED"


_TERMINAL_STATES = {SnapshotState.ACTIVE, SnapshotState.KEPT_PREVIOUS, SnapshotState.FAILED}

# Valid state transitions
_VALID_TRANSITIONS: dict[SnapshotState, set[SnapshotState]] = {
    SnapshotState.IDLE: {SnapshotState.COMPUTING_WINDOW, SnapshotState.FAILED},
    SnapshotState.COMPUTING_WINDOW: {SnapshotState.SCORING, SnapshotState.FAILED},
    SnapshotState.SCORING: {SnapshotState.RANKING, SnapshotState.FAILED},
    SnapshotState.RANKING: {
        SnapshotState.DIFFING,
        SnapshotState.KEPT_PREVIOUS,
        SnapshotState.FAILED,
    },
    SnapshotState.DIFFING: {SnapshotState.PERSISTING, SnapshotState.FAILED},
    SnapshotState.PERSISTING: {SnapshotState.ACTIVE, SnapshotState.FAILED},
    SnapshotState.ACTIVE: set(),
    SnapshotState.KEPT_PREVIOUS: set(),
    SnapshotState.FAILED: set(),
}

# Entering these states starts work that must fit in the deadline
_DEADLINE_CHECKED = {
    SnapshotState.COMPUTING_WINDOW,
    SnapshotState.SCORING,
    SnapshotState.RANKING,
    SnapshotState.DIFFING,
    SnapshotState.PERSISTING,
}


class SnapshotStateTransitionError(Exception):
    """Raised when an illegal state transition is attempted."""

    def __init__(
        self,
        ranking_type: str,
        from_state: SnapshotState,
        to_state: SnapshotState,
    ) -> None:
        """Initialize the transition error.

        Args:
            ranking_type: Ranking type being computed.
            from_state: Current state.
            to_state: Attempted target state.
        """
        self.ranking_type = ranking_type
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Illegal snapshot state transition for '{ranking_type}': "
            f"{from_state.value} -> {to_state.value}"
        )


class SnapshotStateMachine:
    """Manages state transitions for one ranking computation.

    Enforces valid transitions, checks the unit deadline before each
    working stage, and logs all state changes.
    """

    def __init__(
        self,
        ranking_type: str,
        deadline: Deadline | None = None,
        initial_state: SnapshotState = SnapshotState.IDLE,
    ) -> None:
        """Initialize the state machine.

        Args:
            ranking_type: Ranking type being computed.
            deadline: Budget of the computation.
            initial_state: Starting state.
        """
        self._ranking_type = ranking_type
        self._deadline = deadline
        self._state = initial_state
        self._log = logger.bind(component="rankings", ranking_type=ranking_type)

    @property
    def ranking_type(self) -> str:
        """Get the ranking type."""
        return self._ranking_type

    @property
    def state(self) -> SnapshotState:
        """Get the current state."""
        return self._state

    @property
    def is_terminal(self) -> bool:
        """Check if current state is terminal."""
        return self._state in _TERMINAL_STATES

    def can_transition_to(self, target: SnapshotState) -> bool:
        """Check if a transition to the target state is valid.

        Args:
            target: The target state.

        Returns:
            True if the transition is valid.
        """
        return target in _VALID_TRANSITIONS.get(self._state, set())

    def transition_to(self, target: SnapshotState) -> None:
        """Transition to a new state.

        Args:
            target: The target state.

        Raises:
            SnapshotStateTransitionError: If the transition is invalid.
            UnitTimeoutError: If the deadline passed before a working stage.
        """
        if not self.can_transition_to(target):
            self._log.error(
                "illegal_snapshot_state_transition",
                from_state=self._state.value,
                to_state=target.value,
            )
            raise SnapshotStateTransitionError(
                ranking_type=self._ranking_type,
                from_state=self._state,
                to_state=target,
            )

        if self._deadline is not None and target in _DEADLINE_CHECKED:
            self._deadline.check(target.value.lower())

        old_state = self._state
        self._state = target
        self._log.debug(
            "snapshot_state_transition",
            from_state=old_state.value,
            to_state=target.value,
        )

    def to_computing_window(self) -> None:
        """Transition to COMPUTING_WINDOW state."""
        self.transition_to(SnapshotState.COMPUTING_WINDOW)

    def to_scoring(self) -> None:
        """Transition to SCORING state."""
        self.transition_to(SnapshotState.SCORING)

    def to_ranking(self) -> None:
        """Transition to RANKING state."""
        self.transition_to(SnapshotState.RANKING)

    def to_diffing(self) -> None:
        """Transition to DIFFING state."""
        self.transition_to(SnapshotState.DIFFING)

    def to_persisting(self) -> None:
        """Transition to PERSISTING state."""
        self.transition_to(SnapshotState.PERSISTING)

    def to_active(self) -> None:
        """Transition to ACTIVE state."""
        self.transition_to(SnapshotState.ACTIVE)

    def to_kept_previous(self) -> None:
        """Transition to KEPT_PREVIOUS state."""
        self.transition_to(SnapshotState.KEPT_PREVIOUS)

    def to_failed(self) -> None:
        """Transition to FAILED state if not already terminal."""
        if not self.is_terminal:
            self.transition_to(SnapshotState.FAILED)
