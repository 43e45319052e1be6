import logging
from pathlib import Path

logger = logging.getLogger(__name__)

ARTIFACT_FILENAME = "temp_audio.wav"


class HostManagedPlatform:
    """Environment where the host grants device access (browser, container, kiosk).

    There is no permission prompt to raise, and a single fixed artifact file is
    reused. That is safe because a new recording cannot start while the
    previous artifact is still being transcribed.
    """

    name = "host-managed"
    has_permission_model = False

    def __init__(self, directory: str | Path = "") -> None:
        self._directory = Path(directory) if directory else Path.cwd()

    async def request_microphone_permission(self) -> bool:
        return True

    def allocate_artifact_path(self) -> Path:
        self._directory.mkdir(parents=True, exist_ok=True)
        path = self._directory / ARTIFACT_FILENAME
        logger.debug("Reusing artifact path %s", path)
        return path
