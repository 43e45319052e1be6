import io
import logging

import openai
from openai import AsyncOpenAI

from voice_to_text.domain.artifact import AudioArtifact
from voice_to_text.domain.errors import ConfigurationMissingError, TranscriptionError

logger = logging.getLogger(__name__)


class OpenAISdkTranscriber:
    def __init__(
        self,
        model: str = "whisper-1",
        language: str = "",
        timeout_seconds: float = 30.0,
        max_retries: int = 1,
        base_url: str | None = None,
    ) -> None:
        self._model = model
        self._language = language
        self._timeout = timeout_seconds
        self._max_retries = max_retries
        self._base_url = base_url

    def _client(self, credential: str) -> AsyncOpenAI:
        return AsyncOpenAI(
            api_key=credential,
            base_url=self._base_url,
            timeout=self._timeout,
            max_retries=self._max_retries,
        )

    async def transcribe(self, artifact: AudioArtifact, credential: str) -> str:
        if not credential:
            raise ConfigurationMissingError("OpenAI API key not found")

        audio_file = io.BytesIO(artifact.read_bytes())
        audio_file.name = artifact.filename

        kwargs: dict = {"model": self._model, "file": audio_file}
        if self._language:
            kwargs["language"] = self._language

        client = self._client(credential)
        try:
            result = await client.audio.transcriptions.create(**kwargs)
        except openai.APIStatusError as exc:
            logger.error("OpenAI API error: %s", exc.status_code)
            raise TranscriptionError(
                f"Transcription failed with status {exc.status_code}",
                body=exc.response.text,
                status_code=exc.status_code,
            ) from exc
        except openai.APIError as exc:
            logger.error("OpenAI request failed: %s", exc)
            raise TranscriptionError(f"network error ({type(exc).__name__})") from exc
        finally:
            await client.close()

        return result.text.strip()
