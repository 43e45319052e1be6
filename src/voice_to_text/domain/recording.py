import logging

from voice_to_text.domain.artifact import AudioArtifact
from voice_to_text.domain.errors import DeviceError
from voice_to_text.domain.state import RecordingState
from voice_to_text.ports.audio import AudioRecorderPort
from voice_to_text.ports.platform import PlatformIO

logger = logging.getLogger(__name__)


class RecordingSession:
    """Owns the capture device handle and the artifact of the current recording.

    ``CLOSED -> IDLE`` on open, ``IDLE <-> RECORDING`` on start/stop, and any
    state back to ``CLOSED`` on close. Failed operations raise ``DeviceError``
    and leave the state where it was before the call.
    """

    def __init__(self, recorder: AudioRecorderPort, platform: PlatformIO) -> None:
        self._recorder = recorder
        self._platform = platform
        self._state = RecordingState.CLOSED
        self._artifact: AudioArtifact | None = None

    @property
    def state(self) -> RecordingState:
        return self._state

    @property
    def artifact(self) -> AudioArtifact | None:
        return self._artifact

    async def open(self) -> None:
        if self._state != RecordingState.CLOSED:
            logger.debug("Recorder already open")
            return
        try:
            await self._recorder.open()
        except OSError as exc:
            raise DeviceError(str(exc)) from exc
        self._state = RecordingState.IDLE
        logger.info("Recorder opened")

    async def start(self) -> AudioArtifact:
        if self._state == RecordingState.CLOSED:
            raise DeviceError("Recorder is not open")
        if self._state == RecordingState.RECORDING:
            raise DeviceError("Already recording")

        previous = self._artifact
        try:
            path = self._platform.allocate_artifact_path()
        except OSError as exc:
            raise DeviceError(f"Cannot allocate audio file: {exc}") from exc
        if previous is not None and previous.path != path:
            previous.discard()

        artifact = AudioArtifact(path=path)
        try:
            await self._recorder.start(path)
        except OSError as exc:
            artifact.discard()
            self._artifact = None
            raise DeviceError(str(exc)) from exc
        except DeviceError:
            artifact.discard()
            self._artifact = None
            raise

        self._artifact = artifact
        self._state = RecordingState.RECORDING
        logger.info("Recording to %s", path)
        return artifact

    async def stop(self) -> AudioArtifact:
        if self._state != RecordingState.RECORDING:
            raise DeviceError("Not recording")
        try:
            await self._recorder.stop()
        except OSError as exc:
            raise DeviceError(str(exc)) from exc
        finally:
            self._state = RecordingState.IDLE
        logger.info("Recording stopped")
        return self._artifact

    async def close(self) -> None:
        if self._state == RecordingState.CLOSED:
            return
        try:
            if self._state == RecordingState.RECORDING:
                try:
                    await self._recorder.stop()
                except (DeviceError, OSError) as exc:
                    logger.warning("Error stopping recording during close: %s", exc)
                if self._artifact is not None:
                    self._artifact.discard()
                    self._artifact = None
            await self._recorder.close()
        except (DeviceError, OSError) as exc:
            logger.warning("Error closing recorder: %s", exc)
        finally:
            self._state = RecordingState.CLOSED
            logger.info("Recorder closed")
