from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Optional, Sequence
from talkbridge.contracts import TranslationRequest, TranslationResult

class Translator(ABC):
    @property
    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    def translate_request(self, req: TranslationRequest) -> TranslationResult: ...

    def translate(
        self,
        text: str,
        target_codes: Sequence[str],
        source_code: Optional[str] = None,
    ) -> TranslationResult:
        text = (text or "").strip()
        if not text:
            raise ValueError("text must be non-empty")
        targets = [str(c).strip() for c in target_codes if str(c).strip()]
        if not targets:
            raise ValueError("at least one target language is required")
        return self.translate_request(
            TranslationRequest(text=text, target_langs=tuple(targets), source_lang=source_code or None)
        )
