from __future__ import annotations

import logging
from typing import Optional, Sequence, Tuple

from lingualive.contracts import AUTO, PASSTHROUGH, TranslationOutcome, TranslationRequest
from lingualive.fallback import Attempt, first_accepted

from .base import Translator

DEFAULT_SOURCE_LANGUAGE = "en"


def resolve_source_language(
    source: str,
    detected: Optional[str],
    default: str = DEFAULT_SOURCE_LANGUAGE,
) -> str:
    if source and source != AUTO:
        return source
    return detected or default


class TranslationResolver:
    """
    Walk the provider chain in priority order and keep the first usable reply.
    Providers that need a credential are skipped while none is configured.
    """

    def __init__(
        self,
        providers: Sequence[Translator],
        *,
        default_source: str = DEFAULT_SOURCE_LANGUAGE,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.providers = tuple(providers)
        self.default_source = default_source
        self.logger = logger or logging.getLogger(__name__)

    @staticmethod
    def _usable(provider: Translator, result: str, original: str) -> bool:
        text = (result or "").strip()
        if not text:
            return False
        if text.casefold() == original.casefold():
            return False
        return not provider.is_marked_failure(text)

    def translate(
        self,
        text: str,
        source_language: str,
        target_language: str,
        detected_language: Optional[str] = None,
    ) -> TranslationOutcome:
        source = resolve_source_language(source_language, detected_language, self.default_source)
        original = text.strip()

        def _passthrough() -> TranslationOutcome:
            return TranslationOutcome(
                text=original,
                provider_used=PASSTHROUGH,
                source_language=source,
                target_language=target_language,
            )

        if not original or source == target_language:
            return _passthrough()

        req = TranslationRequest(text=original, source_lang=source, target_lang=target_language)
        attempts = []
        for provider in self.providers:
            if not provider.available:
                self.logger.debug("provider_skipped", extra={"provider": provider.name})
                continue
            attempts.append(Attempt(provider.name, lambda p=provider: (p, p.translate(req))))

        picked = first_accepted(
            attempts,
            accept=lambda reply: self._usable(reply[0], reply[1], original),
            on_failure=self._log_failure,
            on_rejected=self._log_rejected,
        )
        if picked is not None:
            name, (_provider, translated) = picked
            return TranslationOutcome(
                text=translated.strip(),
                provider_used=name,
                source_language=source,
                target_language=target_language,
            )

        self.logger.warning(
            "translation_exhausted",
            extra={"source": source, "target": target_language, "chars": len(original)},
        )
        return _passthrough()

    def _log_failure(self, provider: str, e: Exception) -> None:
        self.logger.warning("provider_failed", extra={"provider": provider, "error": str(e)})

    def _log_rejected(self, provider: str, reply: Tuple[Translator, str]) -> None:
        self.logger.info("provider_rejected", extra={"provider": provider, "chars": len(reply[1] or "")})
