"""Stream state machine for managing transcoder session transitions."""

from camstream.schemas import StreamState


class StreamStateMachine:
    """State machine for transcoder session state transitions.

    State flow with triggers:
    - IDLE -> RUNNING (start() obtained an admission slot and spawned the process)
    - RUNNING -> STOPPING (stop() sent the termination signal)
    - RUNNING -> IDLE (process exited on its own)
    - STOPPING -> IDLE (process exited after stop())

    The process exit is the only way back to IDLE, and the admission slot is
    released on that transition.
    """

    TRANSITIONS: dict[StreamState, set[StreamState]] = {
        StreamState.IDLE: {StreamState.RUNNING},
        StreamState.RUNNING: {StreamState.STOPPING, StreamState.IDLE},
        StreamState.STOPPING: {StreamState.IDLE},
    }

    @classmethod
    def can_transition(cls, current: StreamState, new: StreamState) -> bool:
        """Check if state transition is valid.

        Args:
            current: Current stream state
            new: Target state to transition to

        Returns:
            True if transition is valid, False otherwise
        """
        return new in cls.TRANSITIONS.get(current, set())

    @classmethod
    def get_valid_transitions(cls, state: StreamState) -> set[StreamState]:
        """Get all valid transitions from a given state."""
        return cls.TRANSITIONS.get(state, set())

    @classmethod
    def get_valid_sources(cls, target: StreamState) -> set[StreamState]:
        """Get all states that can transition to the target state."""
        return {state for state, targets in cls.TRANSITIONS.items() if target in targets}
