from pathlib import Path
from typing import Protocol


class AudioRecorderPort(Protocol):
    async def open(self) -> None: ...
    async def start(self, path: Path) -> None: ...
    async def stop(self) -> None: ...
    async def close(self) -> None: ...
