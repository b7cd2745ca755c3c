from __future__ import annotations

from talkbridge.errors import (
    EmptyResultError,
    EncodingError,
    MalformedResponseError,
    MicPermissionError,
    ProviderError,
)


def summarize_exception(detail: str, *, max_len: int = 220) -> str:
    text = str(detail or "").strip()
    if not text:
        return "Unknown runtime error."
    lines = [ln.strip() for ln in text.splitlines() if ln.strip()]
    if not lines:
        return "Unknown runtime error."
    for ln in reversed(lines):
        if ln.startswith("File "):
            continue
        if ln.startswith("^"):
            continue
        if ln.startswith("Traceback "):
            continue
        out = ln
        break
    else:
        out = lines[-1]
    if len(out) > max_len:
        return out[: max_len - 3].rstrip() + "..."
    return out


def hint_for_exception(summary: str) -> str:
    s = str(summary or "").lower()
    if "no module named" in s:
        return "A required package is missing in this virtualenv. Reinstall dependencies and retry."
    if "config file not found" in s:
        return "Configured JSON file is missing. Update the config path or restore the file."
    if "microphone" in s or "portaudio" in s:
        return "Microphone init failed. Check input device selection and app mic permissions."
    if "401" in s or "403" in s:
        return "Provider rejected the credentials. Check AZURE_* keys and regions."
    if "timed out" in s or "unreachable" in s:
        return "Provider could not be reached. Check network access and region settings."
    return "Check logs for full traceback."


def user_message_for(exc: BaseException) -> tuple[str, str]:
    """(title, description) shown to the user when an utterance fails."""
    if isinstance(exc, EmptyResultError):
        return "Couldn't detect speech", "Try speaking louder or closer to the microphone."
    if isinstance(exc, MicPermissionError):
        return "Microphone access denied", "Please allow microphone access and try again."
    if isinstance(exc, (ProviderError, MalformedResponseError)):
        return "Service unavailable", "The speech service did not respond correctly. Please try again shortly."
    if isinstance(exc, EncodingError):
        return "Recording unreadable", "The recording could not be processed. Please try again."
    return "Something went wrong", "Please try recording again."
