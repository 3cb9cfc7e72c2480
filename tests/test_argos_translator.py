from __future__ import annotations

import threading
import time

import pytest

from lingualive.contracts import TranslationRequest
from lingualive.errors import ProviderFailure
from lingualive.nlp.translator.argos import ArgosTranslator
from lingualive.nlp.translator.factory import get_translator

REQ = TranslationRequest(text="good morning", source_lang="en", target_lang="es")


def test_slow_call_times_out_and_later_recovers(monkeypatch) -> None:
    release = threading.Event()
    translator = ArgosTranslator(timeout=0.05)

    def stalled_download(req: TranslationRequest) -> str:
        release.wait(timeout=5.0)
        return "buenos días"

    monkeypatch.setattr(translator, "_translate_blocking", stalled_download)

    started = time.monotonic()
    with pytest.raises(ProviderFailure, match="timed out"):
        translator.translate(REQ)
    assert time.monotonic() - started < 1.0

    # the abandoned call still holds the worker; fail fast instead of queueing
    with pytest.raises(ProviderFailure, match="still running"):
        translator.translate(REQ)

    release.set()
    deadline = time.monotonic() + 3.0
    while translator._pending is not None and not translator._pending.done():
        assert time.monotonic() < deadline
        time.sleep(0.01)
    assert translator.translate(REQ) == "buenos días"


def test_errors_from_the_worker_propagate(monkeypatch) -> None:
    translator = ArgosTranslator(timeout=1.0)

    def missing_package(req: TranslationRequest) -> str:
        raise ProviderFailure("argos", "no package for en->xx")

    monkeypatch.setattr(translator, "_translate_blocking", missing_package)
    with pytest.raises(ProviderFailure, match="no package"):
        translator.translate(REQ)


def test_factory_passes_provider_timeout() -> None:
    translator = get_translator("argos", {"provider_timeout": 3.5, "argos_auto_install": False})
    assert isinstance(translator, ArgosTranslator)
    assert translator.timeout == 3.5
    assert translator.auto_install is False


def test_timeout_must_be_positive() -> None:
    with pytest.raises(ValueError):
        ArgosTranslator(timeout=0)
