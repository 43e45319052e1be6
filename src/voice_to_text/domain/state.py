from dataclasses import dataclass
from enum import Enum, auto


class SessionState(Enum):
    IDLE = auto()
    RECORDING = auto()
    TRANSCRIBING = auto()
    DONE = auto()
    FAILED = auto()


class RecordingState(Enum):
    CLOSED = auto()
    IDLE = auto()
    RECORDING = auto()


VALID_TRANSITIONS: dict[SessionState, set[SessionState]] = {
    SessionState.IDLE: {SessionState.RECORDING, SessionState.FAILED},
    SessionState.RECORDING: {SessionState.TRANSCRIBING, SessionState.FAILED},
    SessionState.TRANSCRIBING: {SessionState.DONE, SessionState.FAILED},
    SessionState.DONE: {SessionState.RECORDING},
    SessionState.FAILED: {SessionState.RECORDING},
}


class InvalidTransitionError(Exception):
    pass


def validate_transition(current: SessionState, target: SessionState) -> None:
    if target not in VALID_TRANSITIONS.get(current, set()):
        raise InvalidTransitionError(f"Cannot transition from {current.name} to {target.name}")


@dataclass(frozen=True)
class SessionSnapshot:
    state: SessionState
    transcript: str = ""
    message: str = ""

    @property
    def is_busy(self) -> bool:
        return self.state in (SessionState.RECORDING, SessionState.TRANSCRIBING)

    def to_dict(self) -> dict:
        return {
            "state": self.state.name,
            "transcript": self.transcript,
            "message": self.message,
        }
