import logging

from voice_to_text.config import VoiceToTextConfig
from voice_to_text.adapters.sounddevice_recorder import SounddeviceRecorder
from voice_to_text.domain.controller import SessionController
from voice_to_text.domain.permission import PermissionGate
from voice_to_text.domain.recording import RecordingSession
from voice_to_text.ports.control import ControlPort
from voice_to_text.ports.platform import PlatformIO
from voice_to_text.ports.transcriber import TranscriberPort

logger = logging.getLogger(__name__)

TRANSCRIPTIONS_PATH_SUFFIX = "/audio/transcriptions"


def create_platform(config: VoiceToTextConfig) -> PlatformIO:
    if config.platform == "host-managed":
        from voice_to_text.adapters.host_managed_platform import HostManagedPlatform

        return HostManagedPlatform(directory=config.temp_dir)

    from voice_to_text.adapters.native_platform import NativePlatform

    return NativePlatform(
        temp_dir=config.temp_dir,
        device=config.capture_device or None,
        sample_rate=config.sample_rate,
    )


def create_recorder(config: VoiceToTextConfig) -> SounddeviceRecorder:
    return SounddeviceRecorder(
        device=config.capture_device or None,
        sample_rate=config.sample_rate,
        gain=config.capture_gain,
    )


def create_transcriber(config: VoiceToTextConfig) -> TranscriberPort:
    if config.stt_engine == "openai-sdk":
        from voice_to_text.adapters.openai_sdk_transcriber import OpenAISdkTranscriber

        return OpenAISdkTranscriber(
            model=config.model,
            language=config.language,
            timeout_seconds=config.request_timeout_seconds,
            max_retries=config.max_retries,
            base_url=_sdk_base_url(config.transcription_url),
        )

    from voice_to_text.adapters.http_transcriber import HttpTranscriber

    return HttpTranscriber(
        url=config.transcription_url,
        model=config.model,
        language=config.language,
        timeout_seconds=config.request_timeout_seconds,
        max_retries=config.max_retries,
    )


def create_controller(config: VoiceToTextConfig) -> SessionController:
    platform = create_platform(config)
    recording = RecordingSession(recorder=create_recorder(config), platform=platform)
    logger.debug("Using platform=%s engine=%s", platform.name, config.stt_engine)
    return SessionController(
        permission_gate=PermissionGate(platform),
        recording=recording,
        transcriber=create_transcriber(config),
        credential=config.credential(),
    )


def create_app(config: VoiceToTextConfig) -> tuple[SessionController, ControlPort]:
    from voice_to_text.adapters.unix_control import UnixSocketControlServer

    controller = create_controller(config)
    control = UnixSocketControlServer(socket_path=config.socket_path)
    return controller, control


def _sdk_base_url(transcription_url: str) -> str:
    url = transcription_url.rstrip("/")
    if url.endswith(TRANSCRIPTIONS_PATH_SUFFIX):
        return url[: -len(TRANSCRIPTIONS_PATH_SUFFIX)]
    return url
