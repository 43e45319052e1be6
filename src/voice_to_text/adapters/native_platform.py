import asyncio
import logging
import os
import tempfile
import threading
from pathlib import Path

import sounddevice as sd

logger = logging.getLogger(__name__)

ARTIFACT_PREFIX = "voice-to-text-"
ARTIFACT_SUFFIX = ".wav"
PROBE_DURATION_SECONDS = 0.2
PROBE_TIMEOUT_SECONDS = 30.0


class NativePlatform:
    """Desktop OS access: permission is requested by opening the input device.

    macOS and Windows raise their microphone prompt the first time a process
    opens an input stream and deliver no audio (or fail) until the user
    answers, so a short probe stream blocks until the decision is known.
    Artifacts get a unique name per recording in the temp directory.
    """

    name = "native"
    has_permission_model = True

    def __init__(
        self,
        temp_dir: str | Path = "",
        device: str | int | None = None,
        sample_rate: int = 16000,
    ) -> None:
        self._temp_dir = Path(temp_dir) if temp_dir else Path(tempfile.gettempdir())
        self._device = device if device != "" else None
        self._sample_rate = sample_rate

    async def request_microphone_permission(self) -> bool:
        return await asyncio.to_thread(self._probe_input)

    def allocate_artifact_path(self) -> Path:
        self._temp_dir.mkdir(parents=True, exist_ok=True)
        fd, path = tempfile.mkstemp(prefix=ARTIFACT_PREFIX, suffix=ARTIFACT_SUFFIX, dir=self._temp_dir)
        os.close(fd)
        return Path(path)

    def _probe_input(self) -> bool:
        received = threading.Event()

        def callback(indata, frames, time_info, status) -> None:
            if frames:
                received.set()

        device = self._device
        if isinstance(device, str):
            device = int(device) if device.isdigit() else _find_input_device(device)

        try:
            stream = sd.InputStream(
                device=device,
                samplerate=self._sample_rate,
                channels=1,
                dtype="float32",
                callback=callback,
            )
            with stream:
                received.wait(timeout=PROBE_TIMEOUT_SECONDS)
                sd.sleep(int(PROBE_DURATION_SECONDS * 1000))
        except (sd.PortAudioError, ValueError) as exc:
            logger.warning("Microphone probe failed: %s", exc)
            return False

        if not received.is_set():
            logger.warning("Microphone probe received no audio")
            return False
        return True


def _find_input_device(name: str) -> int | None:
    for i, dev in enumerate(sd.query_devices()):
        if name.lower() in dev["name"].lower() and dev["max_input_channels"] > 0:
            return i
    return None
