from __future__ import annotations

import threading
import time
import xml.etree.ElementTree as ET

import httpx
import pytest

from talkbridge.app.config import ProviderCredentials
from talkbridge.contracts import SynthesisRequest, SynthesisResult
from talkbridge.errors import ProviderError
from talkbridge.tts.azure_rest import AzureSynthesisProvider
from talkbridge.tts.dispatcher import ConcurrencyGate, SynthesisCache, SynthesisDispatcher
from talkbridge.tts.ssml import build_ssml


def _wait_until(pred, timeout: float = 5.0) -> None:
    deadline = time.monotonic() + timeout
    while not pred():
        if time.monotonic() > deadline:
            raise AssertionError("condition not reached in time")
        time.sleep(0.002)


class _FailOnSecondCall:
    def __init__(self) -> None:
        self.calls = 0

    def synthesize(self, req: SynthesisRequest) -> SynthesisResult:
        self.calls += 1
        if self.calls > 1:
            raise ProviderError("mock provider failure", status=500)
        return SynthesisResult(audio=b"ID3-good-work", content_type="audio/mpeg")


def test_second_identical_call_is_served_from_cache():
    provider = _FailOnSecondCall()
    dispatcher = SynthesisDispatcher(provider)

    first = dispatcher.synthesize("Good work!", "en-US-JennyNeural", "en-US")
    second = dispatcher.synthesize("Good work!", "en-US-JennyNeural", "en-US")

    assert first == second == b"ID3-good-work"
    assert provider.calls == 1
    stats = dispatcher.stats()
    assert (stats.provider_calls, stats.cache_hits, stats.cached) == (1, 1, 1)


def test_cache_key_includes_locale_and_voice():
    provider = _FailOnSecondCall()
    dispatcher = SynthesisDispatcher(provider)
    dispatcher.synthesize("Hi", "en-US-JennyNeural", "en-US")
    with pytest.raises(ProviderError):
        dispatcher.synthesize("Hi", "en-GB-SoniaNeural", "en-GB")


class _BlockingProvider:
    def __init__(self, fail_texts: frozenset[str] = frozenset()) -> None:
        self.lock = threading.Lock()
        self.proceed = threading.Semaphore(0)
        self.started: list[str] = []
        self.inflight = 0
        self.max_inflight = 0
        self.fail_texts = fail_texts

    def synthesize(self, req: SynthesisRequest) -> SynthesisResult:
        with self.lock:
            self.inflight += 1
            self.max_inflight = max(self.max_inflight, self.inflight)
            self.started.append(req.text)
        self.proceed.acquire()
        with self.lock:
            self.inflight -= 1
        if req.text in self.fail_texts:
            raise ProviderError("synthesis rejected", status=400)
        return SynthesisResult(audio=req.text.encode("utf-8"))


def test_concurrency_limit_and_fifo_admission():
    provider = _BlockingProvider()
    dispatcher = SynthesisDispatcher(provider, concurrency=3)
    texts = [f"phrase-{i}" for i in range(7)]
    results: dict[str, bytes] = {}

    def _run(text: str) -> None:
        results[text] = dispatcher.synthesize(text, "en-US-JennyNeural", "en-US")

    threads = []
    for i, text in enumerate(texts):
        t = threading.Thread(target=_run, args=(text,), daemon=True)
        t.start()
        threads.append(t)
        if i < 3:
            _wait_until(lambda: len(provider.started) == i + 1)
        else:
            _wait_until(lambda: dispatcher.gate.queued == i - 2)

    assert dispatcher.gate.active == 3
    for n in range(4, 8):
        provider.proceed.release()
        _wait_until(lambda: len(provider.started) == n)
    for _ in range(3):
        provider.proceed.release()
    for t in threads:
        t.join(timeout=5)

    assert provider.max_inflight == 3
    assert provider.started == texts
    assert results == {text: text.encode("utf-8") for text in texts}
    assert dispatcher.gate.active == 0
    assert dispatcher.gate.queued == 0


def test_failure_is_isolated_and_not_cached():
    provider = _BlockingProvider(fail_texts=frozenset({"bad"}))
    dispatcher = SynthesisDispatcher(provider, concurrency=1)
    outcome: dict[str, object] = {}

    def _run(text: str) -> None:
        try:
            outcome[text] = dispatcher.synthesize(text, "v", "en-US")
        except ProviderError as e:
            outcome[text] = e

    bad = threading.Thread(target=_run, args=("bad",), daemon=True)
    bad.start()
    _wait_until(lambda: provider.started == ["bad"])
    good = threading.Thread(target=_run, args=("good",), daemon=True)
    good.start()
    _wait_until(lambda: dispatcher.gate.queued == 1)

    provider.proceed.release()
    provider.proceed.release()
    bad.join(timeout=5)
    good.join(timeout=5)

    assert isinstance(outcome["bad"], ProviderError)
    assert outcome["good"] == b"good"
    assert len(dispatcher.cache) == 1
    assert dispatcher.gate.active == 0

    # nothing cached for the failed key: a retry reaches the provider again
    provider.fail_texts = frozenset()
    provider.proceed.release()
    assert dispatcher.synthesize("bad", "v", "en-US") == b"bad"
    assert provider.started.count("bad") == 2


def test_empty_text_rejected():
    with pytest.raises(ValueError):
        SynthesisDispatcher(_FailOnSecondCall()).synthesize("  ", "v", "en-US")


def test_gate_release_without_acquire_raises():
    gate = ConcurrencyGate(2)
    with pytest.raises(RuntimeError):
        gate.release()


def test_cache_evicts_least_recently_used():
    cache = SynthesisCache(max_entries=2)
    a, b, c = ("en-US", "v", "a"), ("en-US", "v", "b"), ("en-US", "v", "c")
    cache.put(a, SynthesisResult(b"a"))
    cache.put(b, SynthesisResult(b"b"))
    assert cache.get(a) is not None  # a is now most recent
    cache.put(c, SynthesisResult(b"c"))
    assert cache.get(b) is None
    assert cache.get(a) is not None
    assert cache.get(c) is not None
    assert len(cache) == 2


def test_cache_entries_expire_after_ttl():
    now = [100.0]
    cache = SynthesisCache(max_entries=4, ttl_sec=10.0, clock=lambda: now[0])
    key = ("en-US", "v", "x")
    cache.put(key, SynthesisResult(b"x"))
    now[0] = 109.0
    assert cache.get(key) is not None
    now[0] = 110.0
    assert cache.get(key) is None
    assert len(cache) == 0


def test_ssml_escapes_markup_characters():
    text = "Tom & Jerry say 3 < 4 > 2"
    doc = build_ssml(text, "en-US-JennyNeural", "en-US")
    root = ET.fromstring(doc)
    assert root.tag == "speak"
    assert root.get("{http://www.w3.org/XML/1998/namespace}lang") == "en-US"
    voice = root.find("voice")
    assert voice is not None and voice.get("name") == "en-US-JennyNeural"
    assert "".join(root.itertext()) == text
    assert "&amp;" in doc and "&lt;" in doc and "&gt;" in doc


def test_provider_posts_well_formed_ssml():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, content=b"mp3-bytes", headers={"content-type": "audio/mpeg"})

    provider = AzureSynthesisProvider(
        ProviderCredentials(speech_key="k", speech_region="uae-north"),
        http=httpx.Client(transport=httpx.MockTransport(handler)),
    )
    result = provider.synthesize(SynthesisRequest(text="<b>A & B</b>", voice="en-US-JennyNeural", locale="en-US"))

    assert result == SynthesisResult(audio=b"mp3-bytes", content_type="audio/mpeg")
    req = seen[0]
    assert req.url.host == "uaenorth.tts.speech.microsoft.com"
    assert req.headers["Content-Type"] == "application/ssml+xml"
    assert req.headers["X-Microsoft-OutputFormat"] == "audio-24khz-48kbitrate-mono-mp3"
    root = ET.fromstring(req.content.decode("utf-8"))
    assert "".join(root.itertext()) == "<b>A & B</b>"
    prosody = root.find("voice/prosody")
    assert prosody is not None and prosody.get("rate") == "-10%"


def test_provider_error_response():
    provider = AzureSynthesisProvider(
        ProviderCredentials(speech_key="k", speech_region="eastus"),
        http=httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(400, text="bad ssml"))),
    )
    with pytest.raises(ProviderError) as err:
        provider.synthesize(SynthesisRequest(text="hi", voice="v", locale="en-US"))
    assert err.value.status == 400
    assert err.value.detail == "bad ssml"
