from __future__ import annotations

from typing import Any, List, Mapping, Optional

import requests

from .argos import ArgosTranslator
from .base import Translator
from .google_cloud import GoogleCloudTranslator
from .libretranslate import LIBRETRANSLATE_URL, LibreTranslateTranslator
from .mymemory import MyMemoryTranslator


def get_translator(provider: str, settings: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> Translator:
    cfg = dict(settings or {})
    provider = provider.lower().strip()
    timeout = float(cfg.get("provider_timeout", 8.0))
    session = kwargs.get("session")

    if provider == "google":
        return GoogleCloudTranslator(kwargs.get("api_key"), timeout=timeout, session=session)
    if provider == "mymemory":
        return MyMemoryTranslator(timeout=timeout, email=cfg.get("mymemory_email"), session=session)
    if provider == "libretranslate":
        return LibreTranslateTranslator(
            url=str(cfg.get("libretranslate_url") or LIBRETRANSLATE_URL),
            api_key=cfg.get("libretranslate_api_key"),
            timeout=timeout,
            session=session,
        )
    if provider == "argos":
        return ArgosTranslator(auto_install=bool(cfg.get("argos_auto_install", True)), timeout=timeout)

    raise ValueError(f"Unknown translator provider: {provider}")


def build_provider_chain(
    settings: Optional[Mapping[str, Any]] = None,
    *,
    api_key: Optional[str] = None,
) -> List[Translator]:
    """
    Fixed priority: credentialed Google first, then the free HTTP services,
    then offline Argos when enabled.
    """
    cfg = dict(settings or {})
    session = requests.Session()
    chain: List[Translator] = [
        get_translator("google", cfg, api_key=api_key, session=session),
        get_translator("mymemory", cfg, session=session),
        get_translator("libretranslate", cfg, session=session),
    ]
    if cfg.get("offline_translator", False):
        chain.append(get_translator("argos", cfg))
    return chain
