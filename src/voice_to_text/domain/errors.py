class VoiceToTextError(Exception):
    """Base class for failures surfaced to the user as a status message."""


class PermissionDeniedError(VoiceToTextError):
    pass


class DeviceError(VoiceToTextError):
    """Audio device could not be opened, started or stopped."""


class ArtifactMissingError(VoiceToTextError):
    """The recorded audio file is absent or empty."""


class ConfigurationMissingError(VoiceToTextError):
    pass


class TranscriptionError(VoiceToTextError):
    """Non-200 response or network failure talking to the endpoint.

    ``body`` holds the remote response body verbatim when there was one.
    """

    def __init__(self, message: str, body: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.body = body
        self.status_code = status_code
