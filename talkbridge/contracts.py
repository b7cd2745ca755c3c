from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence

CANONICAL_SAMPLE_RATE = 16000


@dataclass(frozen=True)
class CapturedAudio:
    """
    One finished recording session.
    data: compressed container bytes (FLAC by default) at the device's native rate.
    """
    data: bytes
    mime_type: str
    sample_rate: int
    duration: float  # seconds


@dataclass(frozen=True)
class EncodedUtterance:
    wav_bytes: bytes
    data_uri: str
    trim_start: int
    trim_end: int
    sample_rate: int = CANONICAL_SAMPLE_RATE

    @property
    def sample_count(self) -> int:
        return (len(self.wav_bytes) - 44) // 2

    @property
    def duration(self) -> float:
        return self.sample_count / float(self.sample_rate)


@dataclass(frozen=True)
class RecognitionResult:
    text: str
    # Detected locale tag (e.g. "es-ES"); None when identification was not possible.
    language: Optional[str]
    confidence: float = 1.0
    requested_language: str = "auto"


@dataclass(frozen=True)
class TranslationRequest:
    text: str
    target_langs: Sequence[str]
    source_lang: Optional[str] = None


@dataclass(frozen=True)
class TranslationItem:
    code: str
    text: str


@dataclass(frozen=True)
class TranslationResult:
    source_text: str
    items: Sequence[TranslationItem]
    provider: str

    @property
    def codes(self) -> list[str]:
        return [item.code for item in self.items]


@dataclass(frozen=True)
class SynthesisRequest:
    text: str
    voice: str
    locale: str

    @property
    def cache_key(self) -> tuple[str, str, str]:
        return (self.locale, self.voice, self.text)


@dataclass(frozen=True)
class SynthesisResult:
    audio: bytes
    content_type: str = "audio/mpeg"


class BubbleRole(str, Enum):
    SUBJECT = "subject"
    TRANSLATED = "translated"


@dataclass(frozen=True)
class MessageBubble:
    role: BubbleRole
    text: str
    language: Optional[str]
    timestamp: float


@dataclass(frozen=True)
class PipelineOutcome:
    original_text: str
    detected_language: Optional[str]
    translations: Sequence[TranslationItem]
    audio: dict[str, SynthesisResult] = field(default_factory=dict)

    @property
    def translated_text(self) -> str:
        return self.translations[0].text if self.translations else ""

    @property
    def audio_bytes(self) -> bytes:
        if not self.translations:
            return b""
        res = self.audio.get(self.translations[0].code)
        return res.audio if res is not None else b""
