"""Tests for StreamStateMachine."""

import pytest

from camstream.domain.stream.stream_state_machine import StreamStateMachine
from camstream.schemas import StreamState


class TestStreamStateMachine:
    @pytest.mark.parametrize(
        "current,new",
        [
            (StreamState.IDLE, StreamState.RUNNING),
            (StreamState.RUNNING, StreamState.STOPPING),
            (StreamState.RUNNING, StreamState.IDLE),
            (StreamState.STOPPING, StreamState.IDLE),
        ],
    )
    def test_valid_transitions(self, current, new):
        assert StreamStateMachine.can_transition(current, new) is True

    @pytest.mark.parametrize(
        "current,new",
        [
            (StreamState.IDLE, StreamState.STOPPING),
            (StreamState.IDLE, StreamState.IDLE),
            (StreamState.STOPPING, StreamState.RUNNING),
            (StreamState.RUNNING, StreamState.RUNNING),
        ],
    )
    def test_invalid_transitions(self, current, new):
        assert StreamStateMachine.can_transition(current, new) is False

    def test_idle_is_only_reached_from_active_states(self):
        """Only a process exit (from RUNNING or STOPPING) leads back to IDLE."""
        assert StreamStateMachine.get_valid_sources(StreamState.IDLE) == set(StreamState.active_states())

    def test_get_valid_transitions(self):
        assert StreamStateMachine.get_valid_transitions(StreamState.IDLE) == {StreamState.RUNNING}
