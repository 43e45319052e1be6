import wave
from unittest.mock import patch

import numpy as np
import pytest

from voice_to_text.domain.errors import DeviceError

try:
    import sounddevice as sd
    from voice_to_text.adapters.sounddevice_recorder import SounddeviceRecorder
    HAS_SOUNDDEVICE = True
except (ImportError, OSError):
    HAS_SOUNDDEVICE = False

pytestmark = pytest.mark.skipif(not HAS_SOUNDDEVICE, reason="sounddevice not available")

MODULE = "voice_to_text.adapters.sounddevice_recorder"


class FakeInputStream:
    instances: list["FakeInputStream"] = []

    def __init__(self, **kwargs) -> None:
        self.kwargs = kwargs
        self.callback = kwargs["callback"]
        self.started = False
        self.closed = False
        FakeInputStream.instances.append(self)

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.started = False

    def close(self) -> None:
        self.closed = True

    def feed(self, samples: np.ndarray) -> None:
        self.callback(samples.reshape(-1, 1).astype(np.float32), len(samples), None, None)


@pytest.fixture
def fake_device():
    FakeInputStream.instances = []
    with patch(f"{MODULE}.sd.query_devices", return_value={"name": "Fake Mic"}), \
            patch(f"{MODULE}.sd.check_input_settings"), \
            patch(f"{MODULE}.sd.InputStream", FakeInputStream):
        yield FakeInputStream


class TestSounddeviceRecorder:
    @pytest.mark.asyncio
    async def test_records_wav_file(self, tmp_path, fake_device):
        recorder = SounddeviceRecorder(sample_rate=16000)
        await recorder.open()
        path = tmp_path / "out.wav"
        await recorder.start(path)

        stream = fake_device.instances[0]
        assert stream.started
        for _ in range(4):
            stream.feed(np.full(512, 0.5))
        await recorder.stop()

        assert stream.closed
        with wave.open(str(path), "rb") as wf:
            assert wf.getnchannels() == 1
            assert wf.getsampwidth() == 2
            assert wf.getframerate() == 16000
            assert wf.getnframes() == 2048
            samples = np.frombuffer(wf.readframes(4), dtype=np.int16)
        assert samples[0] == int(0.5 * 32767)

    @pytest.mark.asyncio
    async def test_gain_is_clipped(self, tmp_path, fake_device):
        recorder = SounddeviceRecorder(gain=4.0)
        await recorder.open()
        path = tmp_path / "loud.wav"
        await recorder.start(path)
        fake_device.instances[0].feed(np.full(16, 0.5))
        await recorder.stop()

        with wave.open(str(path), "rb") as wf:
            samples = np.frombuffer(wf.readframes(16), dtype=np.int16)
        assert samples.max() == 32767

    @pytest.mark.asyncio
    async def test_start_before_open_raises(self, tmp_path, fake_device):
        recorder = SounddeviceRecorder()
        with pytest.raises(DeviceError):
            await recorder.start(tmp_path / "out.wav")

    @pytest.mark.asyncio
    async def test_start_twice_raises(self, tmp_path, fake_device):
        recorder = SounddeviceRecorder()
        await recorder.open()
        await recorder.start(tmp_path / "a.wav")
        with pytest.raises(DeviceError):
            await recorder.start(tmp_path / "b.wav")
        assert len(fake_device.instances) == 1
        await recorder.close()

    @pytest.mark.asyncio
    async def test_stop_when_idle_raises(self, fake_device):
        recorder = SounddeviceRecorder()
        await recorder.open()
        with pytest.raises(DeviceError):
            await recorder.stop()

    @pytest.mark.asyncio
    async def test_open_failure_maps_to_device_error(self):
        with patch(f"{MODULE}.sd.query_devices", side_effect=sd.PortAudioError("Device unavailable")):
            with pytest.raises(DeviceError):
                await SounddeviceRecorder().open()

    @pytest.mark.asyncio
    async def test_stream_failure_maps_to_device_error(self, tmp_path, fake_device):
        recorder = SounddeviceRecorder()
        await recorder.open()
        with patch(f"{MODULE}.sd.InputStream", side_effect=sd.PortAudioError("busy")):
            with pytest.raises(DeviceError):
                await recorder.start(tmp_path / "out.wav")
        assert not recorder.is_recording

    @pytest.mark.asyncio
    async def test_close_stops_active_recording(self, tmp_path, fake_device):
        recorder = SounddeviceRecorder()
        await recorder.open()
        await recorder.start(tmp_path / "out.wav")
        await recorder.close()
        assert not recorder.is_recording
        assert fake_device.instances[0].closed

    @pytest.mark.asyncio
    async def test_write_failure_closes_file_and_queue(self, tmp_path, fake_device):
        recorder = SounddeviceRecorder()
        await recorder.open()
        await recorder.start(tmp_path / "out.wav")
        with patch.object(wave.Wave_write, "writeframes", side_effect=OSError(28, "No space left on device")):
            fake_device.instances[0].feed(np.full(512, 0.5))
            with pytest.raises(DeviceError, match="No space left"):
                await recorder.stop()

        assert not recorder.is_recording
        assert recorder._wav is None
        assert recorder._queue is None
        assert recorder._writer_task is None

        await recorder.start(tmp_path / "again.wav")
        await recorder.stop()
