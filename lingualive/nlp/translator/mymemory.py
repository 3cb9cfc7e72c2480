from __future__ import annotations

from typing import Optional

import requests

from lingualive.contracts import TranslationRequest
from lingualive.errors import ProviderFailure

from .base import Translator

MYMEMORY_URL = "https://api.mymemory.translated.net/get"
MAX_QUERY_CHARS = 500


class MyMemoryTranslator(Translator):
    failure_markers = (
        "MYMEMORY WARNING",
        "QUERY LENGTH LIMIT EXCEEDED",
        "INVALID LANGUAGE PAIR",
        "PLEASE SELECT TWO DISTINCT LANGUAGES",
    )

    def __init__(
        self,
        *,
        timeout: float = 8.0,
        url: str = MYMEMORY_URL,
        email: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.timeout = float(timeout)
        self.url = url
        self.email = email
        self.session = session or requests.Session()

    @property
    def name(self) -> str:
        return "mymemory"

    def translate(self, req: TranslationRequest) -> str:
        query = req.text if len(req.text) <= MAX_QUERY_CHARS else req.text[:MAX_QUERY_CHARS]
        params = {"q": query, "langpair": f"{req.source_lang}|{req.target_lang}"}
        if self.email:
            params["de"] = self.email
        resp = self.session.get(self.url, params=params, timeout=self.timeout)
        if not resp.ok:
            raise ProviderFailure(self.name, f"HTTP {resp.status_code}")
        try:
            data = resp.json()
        except ValueError as e:
            raise ProviderFailure(self.name, "response is not JSON") from e
        if not isinstance(data, dict):
            raise ProviderFailure(self.name, "unexpected response shape")

        status = str(data.get("responseStatus", ""))
        translated = (data.get("responseData") or {}).get("translatedText")
        if status != "200" or not translated:
            raise ProviderFailure(self.name, f"no valid translation (status={status or 'missing'})")
        return str(translated)
