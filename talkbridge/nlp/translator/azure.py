from __future__ import annotations

import logging
import time
from typing import Optional

import httpx

from .base import Translator
from .stub import MockTranslator
from talkbridge.app.config import ProviderCredentials
from talkbridge.app.logging_setup import log_event
from talkbridge.contracts import TranslationItem, TranslationRequest, TranslationResult
from talkbridge.errors import MalformedResponseError, ProviderError
from talkbridge.net import make_http_client, post, read_json

TRANSLATOR_ENDPOINT = "https://api.cognitive.microsofttranslator.com"


class AzureTranslator(Translator):
    """
    Batched multi-target translation (Azure Translator v3). All targets go out in a
    single request; without credentials the mock transform is used instead.
    """

    def __init__(
        self,
        credentials: ProviderCredentials,
        *,
        timeout: float = 30.0,
        http: Optional[httpx.Client] = None,
        endpoint: str = TRANSLATOR_ENDPOINT,
        logger: logging.Logger | None = None,
    ) -> None:
        self.credentials = credentials
        self.endpoint = endpoint.rstrip("/")
        self.logger = logger
        self._http = http or make_http_client(timeout)
        self._fallback = MockTranslator()

    @property
    def name(self) -> str:
        return "azure"

    def translate_request(self, req: TranslationRequest) -> TranslationResult:
        targets = list(req.target_langs)
        if not self.credentials.has_translator:
            log_event(self.logger, logging.WARNING, "translate_mock", targets=targets)
            return self._fallback.translate_request(req)

        params: list[tuple[str, str]] = [("api-version", "3.0")]
        if req.source_lang:
            params.append(("from", req.source_lang))
        params.extend(("to", code) for code in targets)

        t0 = time.perf_counter()
        resp = post(
            self._http,
            f"{self.endpoint}/translate",
            provider="translator",
            params=params,
            headers={
                "Ocp-Apim-Subscription-Key": self.credentials.translator_key or "",
                "Ocp-Apim-Subscription-Region": self.credentials.translator_region or "",
                "Content-Type": "application/json",
            },
            json=[{"text": req.text}],
        )
        if not resp.is_success:
            raise ProviderError(_error_message(resp), status=resp.status_code, detail=f"Status {resp.status_code}")

        payload = read_json(resp, provider="translator")
        if not isinstance(payload, list) or not payload or not isinstance(payload[0], dict):
            raise MalformedResponseError("invalid translation response")
        translations = payload[0].get("translations")
        if not isinstance(translations, list) or len(translations) != len(targets):
            raise MalformedResponseError(
                f"expected {len(targets)} translations, got "
                f"{len(translations) if isinstance(translations, list) else 'none'}"
            )

        items: list[TranslationItem] = []
        # Provider preserves request order; the requested codes are reported as-is.
        for code, entry in zip(targets, translations):
            if not isinstance(entry, dict) or not isinstance(entry.get("text"), str) or not entry["text"].strip():
                raise MalformedResponseError(f"translation entry for {code!r} has no text")
            items.append(TranslationItem(code=code, text=entry["text"]))

        log_event(
            self.logger,
            logging.INFO,
            "translate_done",
            targets=targets,
            source=req.source_lang,
            chars=len(req.text),
            ms=round((time.perf_counter() - t0) * 1000.0, 2),
        )
        return TranslationResult(source_text=req.text, items=items, provider=self.name)

    def close(self) -> None:
        self._http.close()


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
    return f"Translation failed (HTTP {resp.status_code})"
