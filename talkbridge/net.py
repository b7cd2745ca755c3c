from __future__ import annotations

from typing import Any, Optional

import httpx

from talkbridge.errors import MalformedResponseError, ProviderError


def make_http_client(timeout: float = 30.0, transport: Optional[httpx.BaseTransport] = None) -> httpx.Client:
    return httpx.Client(timeout=timeout, transport=transport)


def post(client: httpx.Client, url: str, *, provider: str, **kwargs: Any) -> httpx.Response:
    """POST and map transport failures (including timeouts) to ProviderError."""
    try:
        return client.post(url, **kwargs)
    except httpx.TimeoutException as e:
        raise ProviderError(f"{provider} request timed out", detail=str(e)) from e
    except httpx.TransportError as e:
        raise ProviderError(f"{provider} unreachable", detail=str(e)) from e


def read_json(resp: httpx.Response, *, provider: str) -> Any:
    try:
        return resp.json()
    except ValueError as e:
        raise MalformedResponseError(
            f"{provider} returned non-JSON payload: {resp.text[:100]!r}"
        ) from e


def normalize_region(region: str) -> str:
    # Service hosts use the region without separators (uae-north -> uaenorth).
    return "".join(ch for ch in region.lower() if ch.isalnum())
