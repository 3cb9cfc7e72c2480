from __future__ import annotations

import concurrent.futures
import threading
from typing import Optional, Set, Tuple

from lingualive.contracts import TranslationRequest
from lingualive.errors import ProviderFailure

from .base import Translator


class ArgosTranslator(Translator):
    """
    Offline translation with Argos Translate; language packages are installed on first use.

    Each call runs on a private worker thread and is abandoned after `timeout`
    seconds. An abandoned call (typically a package download) keeps running and
    the pair becomes usable once it finishes; until then calls fail fast.
    """

    def __init__(self, auto_install: bool = True, timeout: float = 8.0):
        if timeout <= 0:
            raise ValueError("timeout must be > 0")
        self.auto_install = auto_install
        self.timeout = float(timeout)
        self._ready: Set[Tuple[str, str]] = set()
        self._lock = threading.Lock()
        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=1,
            thread_name_prefix="lingualive-argos",
        )
        self._pending: Optional[concurrent.futures.Future] = None

    @property
    def name(self) -> str:
        return "argos"

    def _ensure_ready(self, from_code: str, to_code: str) -> None:
        if (from_code, to_code) in self._ready:
            return

        import argostranslate.package
        import argostranslate.translate

        installed = argostranslate.translate.get_installed_languages()
        have_from = any(l.code == from_code for l in installed)
        have_to = any(l.code == to_code for l in installed)

        if not (have_from and have_to):
            if not self.auto_install:
                raise ProviderFailure(self.name, "model not installed and auto_install=False")

            argostranslate.package.update_package_index()
            available = argostranslate.package.get_available_packages()

            pkg = None
            for p in available:
                if p.from_code == from_code and p.to_code == to_code:
                    pkg = p
                    break
            if pkg is None:
                raise ProviderFailure(self.name, f"no package for {from_code}->{to_code}")

            path = pkg.download()
            argostranslate.package.install_from_path(path)

        self._ready.add((from_code, to_code))

    def _translate_blocking(self, req: TranslationRequest) -> str:
        self._ensure_ready(req.source_lang, req.target_lang)
        import argostranslate.translate

        return argostranslate.translate.translate(req.text, req.source_lang, req.target_lang)

    def translate(self, req: TranslationRequest) -> str:
        with self._lock:
            if self._pending is not None and not self._pending.done():
                raise ProviderFailure(self.name, "previous call still running")
            future = self._executor.submit(self._translate_blocking, req)
            self._pending = future
        try:
            return future.result(timeout=self.timeout)
        except concurrent.futures.TimeoutError as e:
            raise ProviderFailure(self.name, f"timed out after {self.timeout:g}s") from e
