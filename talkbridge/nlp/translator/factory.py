from __future__ import annotations
import logging
import os
from typing import Optional
from .base import Translator
from .azure import AzureTranslator
from .stub import MockTranslator
from talkbridge.app.config import ProviderCredentials

def get_translator(
    provider: str | None = None,
    *,
    credentials: Optional[ProviderCredentials] = None,
    timeout: float = 30.0,
    logger: logging.Logger | None = None,
) -> Translator:
    provider = (provider or os.getenv("TALKBRIDGE_TRANSLATOR", "azure")).lower().strip()

    if provider == "mock":
        return MockTranslator()
    if provider == "azure":
        return AzureTranslator(
            credentials or ProviderCredentials.from_env(),
            timeout=timeout,
            logger=logger,
        )

    raise ValueError(f"Unknown translator provider: {provider}")
