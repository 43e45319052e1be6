from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

OPENAI_TRANSCRIPTION_URL = "https://api.openai.com/v1/audio/transcriptions"


class VoiceToTextConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="VOICE_TO_TEXT_",
        env_file=".env",
        extra="ignore",
    )

    openai_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("VOICE_TO_TEXT_OPENAI_API_KEY", "OPENAI_API_KEY"),
    )
    openai_api_key_file: str = ""

    stt_engine: Literal["http", "openai-sdk"] = "http"
    transcription_url: str = OPENAI_TRANSCRIPTION_URL
    model: str = "whisper-1"
    language: str = ""
    request_timeout_seconds: float = 30.0
    max_retries: int = Field(default=1, ge=0, le=1)

    platform: Literal["native", "host-managed"] = "native"
    capture_device: str = ""
    sample_rate: int = 16000
    capture_gain: float = 1.0
    temp_dir: str = ""

    socket_path: str = "/tmp/voice-to-text.sock"
    log_file: str = ""

    def read_secret(self, path: str) -> str:
        if not path:
            return ""
        try:
            with open(path) as f:
                return f.read().strip()
        except FileNotFoundError:
            return ""

    def credential(self) -> str:
        if self.openai_api_key.strip():
            return self.openai_api_key.strip()
        return self.read_secret(self.openai_api_key_file)
