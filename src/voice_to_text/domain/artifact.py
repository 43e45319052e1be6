import logging
from dataclasses import dataclass
from pathlib import Path

from voice_to_text.domain.errors import ArtifactMissingError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AudioArtifact:
    """One temporary audio file produced by a single recording cycle."""

    path: Path

    @property
    def filename(self) -> str:
        return self.path.name

    def exists(self) -> bool:
        return self.path.is_file() and self.path.stat().st_size > 0

    def read_bytes(self) -> bytes:
        try:
            if not self.exists():
                raise ArtifactMissingError(f"No audio file found at {self.path}")
            return self.path.read_bytes()
        except OSError as exc:
            raise ArtifactMissingError(f"Cannot read {self.path}: {exc}") from exc

    def discard(self) -> None:
        try:
            self.path.unlink()
            logger.debug("Discarded artifact %s", self.path)
        except FileNotFoundError:
            pass
