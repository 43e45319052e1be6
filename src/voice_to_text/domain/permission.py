import logging
from enum import Enum, auto

from voice_to_text.ports.platform import PlatformIO

logger = logging.getLogger(__name__)

PERMISSION_DENIED_MESSAGE = "Microphone permission not granted"


class PermissionResult(Enum):
    GRANTED = auto()
    DENIED = auto()


class PermissionGate:
    def __init__(self, platform: PlatformIO) -> None:
        self._platform = platform
        self._result: PermissionResult | None = None

    @property
    def result(self) -> PermissionResult | None:
        return self._result

    @property
    def granted(self) -> bool:
        return self._result == PermissionResult.GRANTED

    async def acquire(self) -> PermissionResult:
        if not self._platform.has_permission_model:
            logger.debug("Platform %s has no permission model, granting", self._platform.name)
            self._result = PermissionResult.GRANTED
            return self._result

        logger.info("Requesting microphone permission (%s)", self._platform.name)
        granted = await self._platform.request_microphone_permission()
        self._result = PermissionResult.GRANTED if granted else PermissionResult.DENIED
        if granted:
            logger.info("Microphone permission granted")
        else:
            logger.warning(PERMISSION_DENIED_MESSAGE)
        return self._result
