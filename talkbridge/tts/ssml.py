from __future__ import annotations

from xml.sax.saxutils import escape, quoteattr

DEFAULT_PROSODY_RATE = "-10%"


def escape_text(text: str) -> str:
    """Escape markup-significant characters (&, <, >) for element content."""
    return escape(text)


def build_ssml(text: str, voice: str, locale: str, *, rate: str | None = DEFAULT_PROSODY_RATE) -> str:
    body = escape_text(text)
    if rate:
        body = f"<prosody rate={quoteattr(rate)}>{body}</prosody>"
    return (
        f"<speak version='1.0' xml:lang={quoteattr(locale)}>"
        f"<voice name={quoteattr(voice)}>{body}</voice>"
        "</speak>"
    )
