from __future__ import annotations

import logging
from typing import Any, Optional, Union

import httpx

from talkbridge.app.config import ProviderCredentials
from talkbridge.app.logging_setup import log_event
from talkbridge.asr.base import AUTO_LANGUAGE, Recognizer
from talkbridge.asr.locales import LocaleTable
from talkbridge.audio.encoder import decode_data_uri
from talkbridge.contracts import EncodedUtterance, RecognitionResult
from talkbridge.errors import EmptyResultError, MalformedResponseError, ProviderError
from talkbridge.net import make_http_client, normalize_region, post, read_json

STT_PATH = "/speech/recognition/conversation/cognitiveservices/v1"
TRANSLATOR_ENDPOINT = "https://api.cognitive.microsofttranslator.com"
MOCK_TRANSCRIPT = "[Mock] Recognized speech from audio"


def _first_nbest(payload: dict[str, Any]) -> dict[str, Any]:
    nbest = payload.get("NBest")
    if isinstance(nbest, list) and nbest and isinstance(nbest[0], dict):
        return nbest[0]
    return {}


class AzureRecognitionClient(Recognizer):
    """
    Speech-to-text over the Azure Speech REST API.

    With ``requested_language="auto"`` the audio is first recognized with a bootstrap
    locale, then the transcript goes through Translator ``/detect`` to find the
    spoken language.
    """

    def __init__(
        self,
        credentials: ProviderCredentials,
        *,
        bootstrap_language: str = "en-US",
        locales: Optional[LocaleTable] = None,
        timeout: float = 30.0,
        http: Optional[httpx.Client] = None,
        translator_endpoint: str = TRANSLATOR_ENDPOINT,
        logger: logging.Logger | None = None,
    ) -> None:
        self.credentials = credentials
        self.bootstrap_language = bootstrap_language
        self.locales = locales or LocaleTable()
        self.translator_endpoint = translator_endpoint.rstrip("/")
        self.logger = logger
        self._http = http or make_http_client(timeout)

    @property
    def name(self) -> str:
        return "azure"

    def _stt_url(self) -> str:
        region = normalize_region(self.credentials.speech_region or "")
        return f"https://{region}.stt.speech.microsoft.com{STT_PATH}"

    def submit(
        self,
        utterance: Union[EncodedUtterance, str],
        requested_language: str = AUTO_LANGUAGE,
    ) -> RecognitionResult:
        requested_language = (requested_language or AUTO_LANGUAGE).strip()
        auto = requested_language == AUTO_LANGUAGE

        if not self.credentials.has_speech:
            log_event(self.logger, logging.WARNING, "recognize_mock", requested=requested_language)
            return RecognitionResult(
                text=MOCK_TRANSCRIPT,
                language=None if auto else requested_language,
                confidence=1.0,
                requested_language=requested_language,
            )

        wav = utterance.wav_bytes if isinstance(utterance, EncodedUtterance) else decode_data_uri(utterance)
        language = self.bootstrap_language if auto else requested_language

        resp = post(
            self._http,
            self._stt_url(),
            provider="recognizer",
            params={"language": language, "format": "detailed"},
            headers={
                "Ocp-Apim-Subscription-Key": self.credentials.speech_key or "",
                "Content-Type": "audio/wav; codecs=audio/pcm; samplerate=16000",
                "Accept": "application/json",
            },
            content=wav,
        )
        if not resp.is_success:
            raise ProviderError(
                f"Speech recognition failed: {resp.status_code}",
                status=resp.status_code,
                detail=resp.text,
            )

        payload = read_json(resp, provider="recognizer")
        if not isinstance(payload, dict):
            raise MalformedResponseError("recognizer payload is not an object")

        status = str(payload.get("RecognitionStatus") or "")
        best = _first_nbest(payload)
        text = str(payload.get("DisplayText") or best.get("Display") or "").strip()
        if status.lower() != "success" or not text:
            log_event(self.logger, logging.INFO, "recognize_empty", status=status, language=language)
            raise EmptyResultError(status=status or None)

        confidence = payload.get("Confidence", best.get("Confidence", 1.0))
        try:
            confidence = float(confidence)
        except (TypeError, ValueError):
            confidence = 1.0

        detected = self.detect_language(text) if auto else requested_language
        log_event(
            self.logger,
            logging.INFO,
            "recognize_done",
            chars=len(text),
            requested=requested_language,
            detected=detected,
            confidence=confidence,
        )
        return RecognitionResult(
            text=text,
            language=detected,
            confidence=confidence,
            requested_language=requested_language,
        )

    def detect_language(self, text: str) -> Optional[str]:
        """Identify the language of `text`; None when identification is unavailable."""
        creds = self.credentials
        if not creds.has_translator:
            log_event(self.logger, logging.WARNING, "detect_skipped_no_credentials")
            return None
        try:
            resp = post(
                self._http,
                f"{self.translator_endpoint}/detect",
                provider="language-detect",
                params={"api-version": "3.0"},
                headers={
                    "Ocp-Apim-Subscription-Key": creds.translator_key or "",
                    "Ocp-Apim-Subscription-Region": creds.translator_region or "",
                    "Content-Type": "application/json",
                },
                json=[{"text": text}],
            )
            if not resp.is_success:
                raise ProviderError(
                    f"Language detection failed: {resp.status_code}",
                    status=resp.status_code,
                    detail=resp.text,
                )
            payload = read_json(resp, provider="language-detect")
        except (ProviderError, MalformedResponseError) as e:
            log_event(self.logger, logging.WARNING, "detect_failed", error=str(e))
            return None

        code = None
        if isinstance(payload, list) and payload and isinstance(payload[0], dict):
            code = payload[0].get("language")
        if not code:
            log_event(self.logger, logging.WARNING, "detect_failed", error="no language in payload")
            return None
        return self.locales.expand(str(code))

    def close(self) -> None:
        self._http.close()
