from __future__ import annotations

import logging
from typing import Optional, Protocol

import httpx

from talkbridge.app.config import ProviderCredentials
from talkbridge.app.logging_setup import log_event
from talkbridge.contracts import SynthesisRequest, SynthesisResult
from talkbridge.errors import ProviderError
from talkbridge.net import make_http_client, normalize_region, post
from talkbridge.tts.ssml import DEFAULT_PROSODY_RATE, build_ssml

DEFAULT_OUTPUT_FORMAT = "audio-24khz-48kbitrate-mono-mp3"


class SynthesisProvider(Protocol):
    def synthesize(self, req: SynthesisRequest) -> SynthesisResult:
        ...


class AzureSynthesisProvider:
    def __init__(
        self,
        credentials: ProviderCredentials,
        *,
        output_format: str = DEFAULT_OUTPUT_FORMAT,
        prosody_rate: Optional[str] = DEFAULT_PROSODY_RATE,
        timeout: float = 30.0,
        http: Optional[httpx.Client] = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.credentials = credentials
        self.output_format = output_format
        self.prosody_rate = prosody_rate
        self.logger = logger
        self._http = http or make_http_client(timeout)

    def endpoint(self) -> str:
        region = normalize_region(self.credentials.speech_region or "")
        return f"https://{region}.tts.speech.microsoft.com/cognitiveservices/v1"

    def synthesize(self, req: SynthesisRequest) -> SynthesisResult:
        if not self.credentials.has_speech:
            log_event(self.logger, logging.WARNING, "synthesize_mock", locale=req.locale, voice=req.voice)
            return SynthesisResult(audio=b"", content_type="audio/mpeg")

        ssml = build_ssml(req.text, req.voice, req.locale, rate=self.prosody_rate)
        resp = post(
            self._http,
            self.endpoint(),
            provider="synthesizer",
            headers={
                "Ocp-Apim-Subscription-Key": self.credentials.speech_key or "",
                "Content-Type": "application/ssml+xml",
                "X-Microsoft-OutputFormat": self.output_format,
                "User-Agent": "talkbridge",
            },
            content=ssml.encode("utf-8"),
        )
        if not resp.is_success:
            raise ProviderError(
                f"Speech synthesis failed: {resp.status_code}",
                status=resp.status_code,
                detail=resp.text,
            )
        content_type = resp.headers.get("content-type", "audio/mpeg").split(";")[0].strip()
        return SynthesisResult(audio=resp.content, content_type=content_type or "audio/mpeg")

    def close(self) -> None:
        self._http.close()
