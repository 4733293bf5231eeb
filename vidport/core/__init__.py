from .errors import (
    MediaError,
    NegotiationFailed,
    OutputMissing,
    StreamFailure,
    ToolInvocationFailed,
    ToolTimeout,
    VerificationRequired,
)

__all__ = [
    "MediaError",
    "NegotiationFailed",
    "OutputMissing",
    "StreamFailure",
    "ToolInvocationFailed",
    "ToolTimeout",
    "VerificationRequired",
]
