from __future__ import annotations

from typing import Mapping, Optional

BUILTIN_LOCALES: dict[str, str] = {
    "es": "es-ES",
    "fr": "fr-FR",
    "ar": "ar-SA",
    "fa": "fa-IR",
    "ru": "ru-RU",
    "zh": "zh-CN",
    "it": "it-IT",
    "pt": "pt-PT",
    "nl": "nl-NL",
    "tr": "tr-TR",
    "da": "da-DK",
    "lv": "lv-LV",
    "en": "en-US",
}


class LocaleTable:
    """Expand short language codes (``es``) to locale tags (``es-ES``)."""

    def __init__(self, overrides: Optional[Mapping[str, str]] = None) -> None:
        self._table = dict(BUILTIN_LOCALES)
        if overrides:
            self._table.update({str(k): str(v) for k, v in overrides.items()})

    def expand(self, code: str) -> str:
        code = (code or "").strip()
        if not code:
            raise ValueError("language code must be non-empty")
        if code in self._table:
            return self._table[code]
        # Script or region subtags (Translator reports Simplified Chinese as zh-Hans) are
        # already full tags; upper-casing them would yield invalid locales like zh-HANS-ZH-HANS.
        if "-" in code:
            return code
        return f"{code}-{code.upper()}"

    def __contains__(self, code: object) -> bool:
        return code in self._table


def short_code(locale: Optional[str]) -> Optional[str]:
    if not locale:
        return None
    return locale.split("-")[0]
