import asyncio
import logging
from collections.abc import Callable

from voice_to_text.domain.artifact import AudioArtifact
from voice_to_text.domain.errors import (
    ArtifactMissingError,
    ConfigurationMissingError,
    DeviceError,
    TranscriptionError,
)
from voice_to_text.domain.events import DomainEvent, RecordPressed, RecordReleased
from voice_to_text.domain.permission import PERMISSION_DENIED_MESSAGE, PermissionGate
from voice_to_text.domain.recording import RecordingSession
from voice_to_text.domain.state import SessionSnapshot, SessionState, validate_transition
from voice_to_text.ports.transcriber import TranscriberPort

logger = logging.getLogger(__name__)

READY_MESSAGE = "Ready to record"
RECORDING_MESSAGE = "Recording..."
PROCESSING_MESSAGE = "Processing..."
COMPLETE_MESSAGE = "Transcription complete"
NO_AUDIO_MESSAGE = "No audio file found"
CREDENTIAL_MISSING_MESSAGE = "OpenAI API key not found"
CREDENTIAL_MISSING_STARTUP_MESSAGE = (
    "OpenAI API key not found. Please set OPENAI_API_KEY environment variable."
)

SnapshotListener = Callable[[SessionSnapshot], None]


class SessionController:
    """Drives one idle -> recording -> transcribing -> done/failed cycle at a time.

    The controller is the only owner of the live session state and the cached
    credential. Press and release arrive as events; every error raised by the
    permission gate, recording session or transcriber is recovered here and
    turned into a ``FAILED`` snapshot carrying a readable message.
    """

    def __init__(
        self,
        permission_gate: PermissionGate,
        recording: RecordingSession,
        transcriber: TranscriberPort,
        credential: str,
    ) -> None:
        self._permission_gate = permission_gate
        self._recording = recording
        self._transcriber = transcriber
        self._credential = credential.strip() if credential else ""

        self._state = SessionState.IDLE
        self._transcript = ""
        self._message = READY_MESSAGE
        self._ready = False
        self._listeners: list[SnapshotListener] = []

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def transcript(self) -> str:
        return self._transcript

    @property
    def message(self) -> str:
        return self._message

    @property
    def ready(self) -> bool:
        return self._ready

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(state=self._state, transcript=self._transcript, message=self._message)

    def subscribe(self, listener: SnapshotListener) -> None:
        self._listeners.append(listener)

    async def initialize(self) -> bool:
        if not self._credential:
            logger.warning("No API credential configured")
            self._set_message(CREDENTIAL_MISSING_STARTUP_MESSAGE)

        if not self._permission_gate.granted:
            await self._permission_gate.acquire()
        if not self._permission_gate.granted:
            self._fail(PERMISSION_DENIED_MESSAGE)
            return False

        try:
            await self._recording.open()
        except DeviceError as exc:
            logger.error("Recorder initialization failed: %s", exc)
            self._fail(f"Error initializing recorder: {exc}")
            return False

        self._ready = True
        if self._credential:
            self._set_message(READY_MESSAGE)
        return True

    async def handle(self, event: DomainEvent) -> None:
        if isinstance(event, RecordPressed):
            await self.press()
        elif isinstance(event, RecordReleased):
            await self.release()
        else:
            logger.warning("Ignoring unknown event %s", type(event).__name__)

    async def press(self) -> None:
        if not self._ready:
            logger.warning("Press ignored: recorder not ready (%s)", self._message)
            return
        if self.snapshot().is_busy:
            logger.warning("Press ignored while %s", self._state.name)
            return

        self._transition_to(SessionState.RECORDING, RECORDING_MESSAGE)
        try:
            await self._recording.start()
        except DeviceError as exc:
            logger.error("Failed to start recording: %s", exc)
            self._fail(f"Error starting recording: {exc}")

    async def release(self) -> None:
        if self._state != SessionState.RECORDING:
            logger.debug("Release ignored while %s", self._state.name)
            return

        self._transition_to(SessionState.TRANSCRIBING, PROCESSING_MESSAGE)
        try:
            artifact = await self._recording.stop()
        except DeviceError as exc:
            logger.error("Failed to stop recording: %s", exc)
            self._fail(f"Error stopping recording: {exc}")
            if self._recording.artifact is not None:
                self._recording.artifact.discard()
            return

        await self._transcribe(artifact)

    async def close(self) -> None:
        self._ready = False
        await self._recording.close()

    async def _transcribe(self, artifact: AudioArtifact | None) -> None:
        if artifact is None:
            self._fail(NO_AUDIO_MESSAGE)
            return

        try:
            if not self._credential:
                raise ConfigurationMissingError(CREDENTIAL_MISSING_MESSAGE)
            text = await self._transcriber.transcribe(artifact, self._credential)
        except ConfigurationMissingError:
            self._fail(CREDENTIAL_MISSING_MESSAGE)
        except ArtifactMissingError:
            self._fail(NO_AUDIO_MESSAGE)
        except TranscriptionError as exc:
            if exc.body is not None:
                self._fail(f"Error transcribing audio: {exc.body}")
            else:
                self._fail(f"Error during transcription: {exc}")
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("Unexpected error during transcription")
            self._fail(f"Error during transcription: {exc}")
        else:
            logger.info("Transcript: %s", text)
            self._transcript = text
            self._transition_to(SessionState.DONE, COMPLETE_MESSAGE)
        finally:
            artifact.discard()

    def _transition_to(self, target: SessionState, message: str) -> None:
        validate_transition(self._state, target)
        logger.info("State: %s -> %s", self._state.name, target.name)
        self._state = target
        self._message = message
        self._notify()

    def _fail(self, message: str) -> None:
        if self._state != SessionState.FAILED:
            self._transition_to(SessionState.FAILED, message)
        else:
            self._set_message(message)
        logger.warning("Session failed: %s", message)

    def _set_message(self, message: str) -> None:
        self._message = message
        self._notify()

    def _notify(self) -> None:
        snapshot = self.snapshot()
        for listener in self._listeners:
            listener(snapshot)
