from __future__ import annotations

import html
from typing import Optional

import requests

from lingualive.contracts import TranslationRequest
from lingualive.errors import ProviderFailure

from .base import Translator

GOOGLE_TRANSLATE_URL = "https://translation.googleapis.com/language/translate/v2"


class GoogleCloudTranslator(Translator):
    """Credentialed Google Cloud Translation (v2 REST)."""

    requires_credential = True

    def __init__(
        self,
        api_key: Optional[str],
        *,
        timeout: float = 8.0,
        url: str = GOOGLE_TRANSLATE_URL,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.api_key = (api_key or "").strip()
        self.timeout = float(timeout)
        self.url = url
        self.session = session or requests.Session()

    @property
    def name(self) -> str:
        return "google"

    @property
    def available(self) -> bool:
        return bool(self.api_key)

    def translate(self, req: TranslationRequest) -> str:
        if not self.api_key:
            raise ProviderFailure(self.name, "no API key configured")
        body = {"q": req.text, "target": req.target_lang, "format": "text"}
        if req.source_lang:
            body["source"] = req.source_lang
        resp = self.session.post(
            self.url,
            params={"key": self.api_key},
            json=body,
            timeout=self.timeout,
        )
        if not resp.ok:
            raise ProviderFailure(self.name, f"HTTP {resp.status_code}")
        try:
            translated = resp.json()["data"]["translations"][0]["translatedText"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ProviderFailure(self.name, "unexpected response shape") from e
        return html.unescape(str(translated or ""))
