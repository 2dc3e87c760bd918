"""Common enums used across schemas."""

from enum import Enum


class StreamState(str, Enum):
    """Transcoder session lifecycle states.

    State Transition Flow:

    IDLE → RUNNING → STOPPING → IDLE
             ↓
            IDLE (process exited on its own)

    State Descriptions:
    - IDLE: No process. Initial state, and the state after every process exit.
    - RUNNING: Process spawned with an admission slot, output flowing. Set by start().
    - STOPPING: Termination signal sent by stop(), waiting for the process to exit.
    """

    IDLE = "idle"
    RUNNING = "running"
    STOPPING = "stopping"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def active_states(cls) -> list["StreamState"]:
        """States in which the session owns a live process."""
        return [StreamState.RUNNING, StreamState.STOPPING]


__all__ = ["StreamState"]
