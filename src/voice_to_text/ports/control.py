from dataclasses import dataclass
from typing import AsyncIterator, Protocol

CONTROL_ACTIONS = ("press", "release", "status")


@dataclass(frozen=True)
class ControlCommand:
    """A press, release or status request from an external trigger."""

    action: str


class ControlPort(Protocol):
    async def start(self) -> None: ...
    async def stop(self) -> None: ...
    def commands(self) -> AsyncIterator[ControlCommand]: ...
    async def send_response(self, data: dict) -> None: ...
