import asyncio
import logging
import os
import wave
from pathlib import Path

import janus
import numpy as np
import sounddevice as sd

from voice_to_text.domain.errors import DeviceError

logger = logging.getLogger(__name__)

SAMPLE_WIDTH_BYTES = 2


class SounddeviceRecorder:
    """Records mono 16-bit PCM WAV files from a PortAudio input device."""

    def __init__(
        self,
        device: str | int | None = None,
        sample_rate: int = 16000,
        frame_duration_ms: int = 32,
        gain: float = 1.0,
    ) -> None:
        self._device = device
        self._sample_rate = sample_rate
        self._frame_size = int(sample_rate * frame_duration_ms / 1000)
        self._gain = gain
        self._resolved_device: str | int | None = None
        self._opened = False
        self._stream: sd.InputStream | None = None
        self._queue: janus.Queue[bytes | None] | None = None
        self._writer_task: asyncio.Task | None = None
        self._wav: wave.Wave_write | None = None

    @property
    def is_recording(self) -> bool:
        return self._stream is not None

    async def open(self) -> None:
        try:
            self._resolved_device = self._resolve_device()
            info = sd.query_devices(self._resolved_device, kind="input")
            sd.check_input_settings(
                device=self._resolved_device,
                channels=1,
                dtype="float32",
                samplerate=self._sample_rate,
            )
        except (sd.PortAudioError, ValueError) as exc:
            raise DeviceError(str(exc)) from exc
        self._opened = True
        logger.info("Input device ready: %s (rate=%d)", info["name"], self._sample_rate)

    async def start(self, path: Path) -> None:
        if not self._opened:
            raise DeviceError("Recorder is not open")
        if self._stream is not None:
            raise DeviceError("Already recording")

        try:
            self._wav = wave.open(str(path), "wb")
            self._wav.setnchannels(1)
            self._wav.setsampwidth(SAMPLE_WIDTH_BYTES)
            self._wav.setframerate(self._sample_rate)
        except OSError as exc:
            self._wav_cleanup()
            raise DeviceError(f"Cannot write {path}: {exc}") from exc

        self._queue = janus.Queue(maxsize=500)
        queue = self._queue
        gain = self._gain

        def audio_callback(indata: np.ndarray, frames: int, time_info, status) -> None:
            if status:
                logger.warning("Audio capture status: %s", status)
            samples = np.clip(indata[:, 0] * gain, -1.0, 1.0)
            pcm_bytes = (samples * 32767).astype(np.int16).tobytes()
            try:
                queue.sync_q.put_nowait(pcm_bytes)
            except janus.SyncQueueFull:
                logger.warning("Audio queue full, dropping frame")

        try:
            self._stream = sd.InputStream(
                device=self._resolved_device,
                samplerate=self._sample_rate,
                channels=1,
                dtype="float32",
                blocksize=self._frame_size,
                callback=audio_callback,
            )
            self._stream.start()
        except (sd.PortAudioError, ValueError) as exc:
            self._stream = None
            await self._discard_queue()
            self._wav_cleanup()
            raise DeviceError(str(exc)) from exc

        self._writer_task = asyncio.create_task(self._write_loop())
        logger.debug("Audio capture started (device=%s)", self._resolved_device)

    async def stop(self) -> None:
        if self._stream is None:
            raise DeviceError("Not recording")

        stream = self._stream
        self._stream = None
        try:
            stream.stop()
            stream.close()
            if self._queue is not None:
                await self._queue.async_q.put(None)
            if self._writer_task is not None:
                await self._writer_task
                self._writer_task = None
            self._close_wav()
        except (sd.PortAudioError, OSError) as exc:
            raise DeviceError(str(exc)) from exc
        finally:
            await self._discard_queue()
            self._wav_cleanup()
        logger.debug("Audio capture stopped")

    async def close(self) -> None:
        if self._stream is not None:
            await self.stop()
        self._opened = False

    async def _write_loop(self) -> None:
        queue = self._queue
        while True:
            chunk = await queue.async_q.get()
            if chunk is None:
                break
            if self._wav is not None:
                self._wav.writeframes(chunk)

    async def _discard_queue(self) -> None:
        if self._writer_task is not None and not self._writer_task.done():
            self._writer_task.cancel()
            try:
                await self._writer_task
            except asyncio.CancelledError:
                pass
        self._writer_task = None
        if self._queue is not None:
            self._queue.close()
            await self._queue.wait_closed()
            self._queue = None

    def _close_wav(self) -> None:
        if self._wav is not None:
            wav = self._wav
            self._wav = None
            wav.close()

    def _wav_cleanup(self) -> None:
        try:
            self._close_wav()
        except OSError as exc:
            logger.warning("Error closing WAV file: %s", exc)

    def _resolve_device(self) -> str | int | None:
        if self._device is None or self._device == "":
            return None
        if isinstance(self._device, int):
            return self._device
        try:
            return int(self._device)
        except ValueError:
            pass
        for i, dev in enumerate(sd.query_devices()):
            if self._device.lower() in dev["name"].lower() and dev["max_input_channels"] > 0:
                logger.info("Resolved device '%s' -> %d (%s)", self._device, i, dev["name"])
                return i
        os.environ["PIPEWIRE_NODE"] = self._device
        logger.info("Device '%s' not in PortAudio, set PIPEWIRE_NODE for PipeWire routing", self._device)
        return None
