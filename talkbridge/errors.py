from __future__ import annotations

from typing import Optional

DETAIL_MAX_CHARS = 100


class TalkbridgeError(RuntimeError):
    pass


class MicPermissionError(TalkbridgeError, PermissionError):
    """Capture device is missing, busy, or access was denied."""


class EncodingError(TalkbridgeError):
    """Captured audio could not be decoded."""


class EmptyResultError(TalkbridgeError):
    """The recognizer returned no usable transcript. An expected outcome, not a failure."""

    def __init__(self, message: str = "No speech detected", *, status: Optional[str] = None) -> None:
        super().__init__(message)
        self.status = status


class ProviderError(TalkbridgeError):
    """Non-success response (or transport failure) from a remote provider."""

    def __init__(self, message: str, *, status: Optional[int] = None, detail: str = "") -> None:
        self.status = status
        self.detail = (detail or "")[:DETAIL_MAX_CHARS]
        text = message
        if self.detail:
            text = f"{message}: {self.detail}"
        super().__init__(text)


class MalformedResponseError(TalkbridgeError):
    """Provider payload did not have the expected shape."""


class SessionBusyError(TalkbridgeError):
    pass
