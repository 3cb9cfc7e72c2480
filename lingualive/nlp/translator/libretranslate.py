from __future__ import annotations

from typing import Optional

import requests

from lingualive.contracts import TranslationRequest
from lingualive.errors import ProviderFailure

from .base import Translator

LIBRETRANSLATE_URL = "https://libretranslate.de/translate"


class LibreTranslateTranslator(Translator):
    def __init__(
        self,
        *,
        url: str = LIBRETRANSLATE_URL,
        api_key: Optional[str] = None,
        timeout: float = 8.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.url = url
        self.api_key = api_key
        self.timeout = float(timeout)
        self.session = session or requests.Session()

    @property
    def name(self) -> str:
        return "libretranslate"

    def translate(self, req: TranslationRequest) -> str:
        body = {
            "q": req.text,
            "source": req.source_lang or "auto",
            "target": req.target_lang,
            "format": "text",
        }
        if self.api_key:
            body["api_key"] = self.api_key
        resp = self.session.post(self.url, json=body, timeout=self.timeout)
        if not resp.ok:
            raise ProviderFailure(self.name, f"HTTP {resp.status_code}")
        try:
            data = resp.json()
        except ValueError as e:
            raise ProviderFailure(self.name, "response is not JSON") from e
        if not isinstance(data, dict):
            raise ProviderFailure(self.name, "unexpected response shape")
        translated = data.get("translatedText")
        if not translated:
            raise ProviderFailure(self.name, str(data.get("error") or "no translation in response"))
        return str(translated)
