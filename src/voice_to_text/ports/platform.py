from pathlib import Path
from typing import Protocol


class PlatformIO(Protocol):
    name: str
    has_permission_model: bool

    async def request_microphone_permission(self) -> bool: ...
    def allocate_artifact_path(self) -> Path: ...
