from __future__ import annotations
from .base import Translator
from talkbridge.contracts import TranslationItem, TranslationRequest, TranslationResult

class MockTranslator(Translator):
    @property
    def name(self) -> str:
        return "mock"

    def translate_request(self, req: TranslationRequest) -> TranslationResult:
        # Deterministic, test-friendly
        items = [TranslationItem(code=code, text=f"[MOCK {code}] {req.text}") for code in req.target_langs]
        return TranslationResult(source_text=req.text, items=items, provider=self.name)
