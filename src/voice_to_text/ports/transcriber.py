from typing import Protocol

from voice_to_text.domain.artifact import AudioArtifact


class TranscriberPort(Protocol):
    async def transcribe(self, artifact: AudioArtifact, credential: str) -> str: ...
