import asyncio
import json
import logging

import httpx

from voice_to_text.config import OPENAI_TRANSCRIPTION_URL
from voice_to_text.domain.artifact import AudioArtifact
from voice_to_text.domain.errors import ConfigurationMissingError, TranscriptionError

logger = logging.getLogger(__name__)

AUDIO_CONTENT_TYPE = "audio/wav"


class HttpTranscriber:
    """Uploads an artifact as multipart/form-data and returns the transcript.

    One logical request per recording. A transport failure (connect error,
    timeout, reset) is retried at most ``max_retries`` times; an HTTP response
    of any status is final.
    """

    def __init__(
        self,
        url: str = OPENAI_TRANSCRIPTION_URL,
        model: str = "whisper-1",
        language: str = "",
        timeout_seconds: float = 30.0,
        max_retries: int = 1,
        retry_delay_seconds: float = 0.5,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url
        self._model = model
        self._language = language
        self._timeout = httpx.Timeout(timeout_seconds)
        self._max_retries = max_retries
        self._retry_delay = retry_delay_seconds
        self._transport = transport

    async def transcribe(self, artifact: AudioArtifact, credential: str) -> str:
        if not credential:
            raise ConfigurationMissingError("OpenAI API key not found")

        audio = artifact.read_bytes()
        headers = {"Authorization": f"Bearer {credential}"}
        data = {"model": self._model}
        if self._language:
            data["language"] = self._language
        files = {"file": (artifact.filename, audio, AUDIO_CONTENT_TYPE)}

        logger.info("Uploading %d bytes to %s", len(audio), self._url)
        response = await self._post(headers=headers, data=data, files=files)

        if response.status_code != httpx.codes.OK:
            logger.error("Transcription HTTP error: %s", response.status_code)
            raise TranscriptionError(
                f"Transcription failed with status {response.status_code}",
                body=response.text,
                status_code=response.status_code,
            )
        return _extract_text(response)

    async def _post(self, headers: dict, data: dict, files: dict) -> httpx.Response:
        attempt = 0
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            while True:
                try:
                    return await client.post(self._url, headers=headers, data=data, files=files)
                except httpx.TransportError as exc:
                    if attempt < self._max_retries:
                        attempt += 1
                        logger.warning("Transcription request failed (%s), retrying", exc)
                        await asyncio.sleep(self._retry_delay)
                        continue
                    logger.error("Transcription request failed: %s", exc)
                    raise TranscriptionError(f"network error ({type(exc).__name__})") from exc
                except httpx.HTTPError as exc:
                    logger.error("Transcription request failed: %s", exc)
                    raise TranscriptionError(f"request error ({type(exc).__name__})") from exc


def _extract_text(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return response.text.strip()

    if isinstance(payload, dict):
        text = payload.get("text")
        if not isinstance(text, str):
            raise TranscriptionError("malformed response: no 'text' field")
        return text.strip()
    if isinstance(payload, str):
        return payload.strip()
    raise TranscriptionError("malformed response")
