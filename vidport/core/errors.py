from typing import Optional


class MediaError(Exception):
    """
    Base class for failures inside the metadata/download pipeline.

    Carries the HTTP status the request boundary should answer with and the
    i18n key of the user-facing message. `details` holds diagnostic text such
    as the captured stderr of yt-dlp.
    """
    status_code: int = 500
    message_key: str = "error.operation_failed"
    details_key: Optional[str] = None
    requires_credential: bool = False

    def __init__(self, details: Optional[str] = None):
        super().__init__(details or self.message_key)
        self.details = details


class ToolInvocationFailed(MediaError):
    """yt-dlp exited with a non-zero status."""
    message_key = "error.tool_failed"


class VerificationRequired(ToolInvocationFailed):
    """The platform answered with a bot check / sign-in wall."""
    status_code = 429
    message_key = "error.verification_required"
    details_key = "error.verification_details"
    requires_credential = True


class NegotiationFailed(MediaError):
    message_key = "error.parse_failed"


class OutputMissing(MediaError):
    """yt-dlp reported success but the expected file is not on disk."""
    message_key = "error.output_missing"


class ToolTimeout(MediaError):
    status_code = 504
    message_key = "error.timeout"


class StreamFailure(MediaError):
    message_key = "error.stream_failed"
