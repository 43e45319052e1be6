import io
import wave
from pathlib import Path

import numpy as np
import pytest

from voice_to_text.domain.artifact import AudioArtifact
from voice_to_text.domain.controller import SessionController
from voice_to_text.domain.errors import DeviceError
from voice_to_text.domain.permission import PermissionGate
from voice_to_text.domain.recording import RecordingSession


SAMPLE_RATE = 16000


def generate_silence(duration_ms: int = 32, sample_rate: int = SAMPLE_RATE) -> bytes:
    num_samples = int(sample_rate * duration_ms / 1000)
    return np.zeros(num_samples, dtype=np.int16).tobytes()


def generate_sine_wave(
    frequency: float = 440.0,
    duration_ms: int = 32,
    amplitude: float = 0.8,
    sample_rate: int = SAMPLE_RATE,
) -> bytes:
    num_samples = int(sample_rate * duration_ms / 1000)
    t = np.arange(num_samples) / sample_rate
    signal = np.sin(2 * np.pi * frequency * t) * amplitude
    return (signal * 32767).astype(np.int16).tobytes()


def pcm_to_wav_bytes(pcm_data: bytes, sample_rate: int = SAMPLE_RATE) -> bytes:
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm_data)
    return buffer.getvalue()


class FakeRecorder:
    """Writes ``payload`` to the artifact path when stopped."""

    def __init__(
        self,
        payload: bytes = b"\x01" * 1024,
        fail_open: bool = False,
        fail_start: bool = False,
        fail_stop: bool = False,
    ) -> None:
        self.payload = payload
        self.fail_open = fail_open
        self.fail_start = fail_start
        self.fail_stop = fail_stop
        self.opened = False
        self.recording_path: Path | None = None
        self.open_count = 0
        self.close_count = 0
        self.started_paths: list[Path] = []

    async def open(self) -> None:
        if self.fail_open:
            raise DeviceError("device busy")
        self.opened = True
        self.open_count += 1

    async def start(self, path: Path) -> None:
        if self.fail_start:
            raise DeviceError("cannot start input stream")
        self.recording_path = path
        self.started_paths.append(path)
        path.write_bytes(b"")

    async def stop(self) -> None:
        if self.fail_stop:
            self.recording_path = None
            raise DeviceError("stream stop failed")
        self.recording_path.write_bytes(self.payload)
        self.recording_path = None

    async def close(self) -> None:
        self.opened = False
        self.close_count += 1


class FakePlatform:
    def __init__(
        self,
        directory: Path,
        granted: bool = True,
        has_permission_model: bool = True,
        fixed_name: str | None = None,
    ) -> None:
        self.name = "fake"
        self.has_permission_model = has_permission_model
        self._directory = directory
        self._granted = granted
        self._fixed_name = fixed_name
        self._counter = 0
        self.permission_requests = 0
        self.allocated: list[Path] = []

    async def request_microphone_permission(self) -> bool:
        self.permission_requests += 1
        return self._granted

    def allocate_artifact_path(self) -> Path:
        if self._fixed_name:
            path = self._directory / self._fixed_name
        else:
            self._counter += 1
            path = self._directory / f"artifact-{self._counter}.wav"
        self.allocated.append(path)
        return path


class FakeTranscriber:
    def __init__(self, text: str = "hello world", error: Exception | None = None) -> None:
        self.text = text
        self.error = error
        self.calls: list[tuple[AudioArtifact, str, bytes]] = []

    async def transcribe(self, artifact: AudioArtifact, credential: str) -> str:
        self.calls.append((artifact, credential, artifact.read_bytes()))
        if self.error is not None:
            raise self.error
        return self.text


def build_controller(
    tmp_path: Path,
    recorder: FakeRecorder | None = None,
    platform: FakePlatform | None = None,
    transcriber: FakeTranscriber | None = None,
    credential: str = "sk-test",
) -> SessionController:
    platform = platform or FakePlatform(tmp_path)
    return SessionController(
        permission_gate=PermissionGate(platform),
        recording=RecordingSession(recorder=recorder or FakeRecorder(), platform=platform),
        transcriber=transcriber or FakeTranscriber(),
        credential=credential,
    )


@pytest.fixture
def fake_recorder():
    return FakeRecorder()


@pytest.fixture
def fake_platform(tmp_path):
    return FakePlatform(tmp_path)


@pytest.fixture
def fake_transcriber():
    return FakeTranscriber()


@pytest.fixture
def recording_session(fake_recorder, fake_platform):
    return RecordingSession(recorder=fake_recorder, platform=fake_platform)


@pytest.fixture
def wav_artifact(tmp_path):
    path = tmp_path / "recording.wav"
    path.write_bytes(pcm_to_wav_bytes(generate_sine_wave(duration_ms=200)))
    return AudioArtifact(path=path)
