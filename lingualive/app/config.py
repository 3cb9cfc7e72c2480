from __future__ import annotations

import argparse
import copy
import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from platformdirs import user_config_dir

APP_NAME = "LinguaLive"
CREDENTIAL_ENV = "LINGUALIVE_GOOGLE_API_KEY"

DEFAULTS: dict[str, Any] = {
    "list_devices": False,
    "device": None,
    "sr": 16000,
    "channels": 1,
    "segment_sec": 5.0,
    "model": "base",
    "load_timeout": None,
    "force_fallback": False,
    "source_language": "auto",
    "target_language": "en",
    "default_source": "en",
    "auto_speak": False,
    "print_console": True,
    "remember_settings": True,
    "console_commands": True,
    "debug": False,
    "min_chars": 2,
    "max_char_run": 5,
    "max_word_run": 4,
    "max_token_len": 4,
    "max_char_ratio": 0.7,
    "min_segment_sec": 0.5,
    "silence_rms": 0.005,
    "saturation_rms": 0.5,
    "min_energy_variation": 0.05,
    "provider_timeout": 8.0,
    "mymemory_email": None,
    "libretranslate_url": "https://libretranslate.de/translate",
    "libretranslate_api_key": None,
    "offline_translator": False,
    "argos_auto_install": True,
    "history_limit": 50,
    "queue_maxsize": 100,
    "max_pending_transcripts": 20,
    "poll_ms": 100,
    "max_updates_per_tick": 20,
}
CONFIG_KEYS: tuple[str, ...] = tuple(DEFAULTS.keys())


@dataclass(frozen=True)
class AppPaths:
    config_dir: Path
    config_path: Path
    history_path: Path
    credentials_path: Path


def app_paths() -> AppPaths:
    config_dir = Path(user_config_dir(APP_NAME, APP_NAME))
    return AppPaths(
        config_dir=config_dir,
        config_path=config_dir / "config.json",
        history_path=config_dir / "history.json",
        credentials_path=config_dir / "credentials.json",
    )


def _load_json_dict(path: Path) -> dict[str, Any]:
    # Accept UTF-8 with or without BOM for Windows-edited config files.
    with path.open("r", encoding="utf-8-sig") as f:
        loaded = json.load(f)
    if not isinstance(loaded, dict):
        raise ValueError(f"config must be a JSON object: {path}")
    return loaded


def _write_json_dict(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)
        f.write("\n")


def _known_only(payload: dict[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key in CONFIG_KEYS:
        if key in payload:
            out[key] = payload[key]
    return out


def load_default_config() -> dict[str, Any]:
    return copy.deepcopy(DEFAULTS)


def load_user_config(config_path: str | None = None) -> tuple[dict[str, Any], Path]:
    defaults = load_default_config()
    if config_path:
        chosen = Path(config_path)
        if not chosen.exists():
            raise SystemExit(f"Config file not found: {chosen}")
    else:
        chosen = ensure_user_config_exists(defaults)
    merged = dict(defaults)
    merged.update(_known_only(_load_json_dict(chosen)))
    return merged, chosen


def save_user_config(values: dict[str, Any], config_path: str | None = None) -> Path:
    payload = _known_only(values)
    defaults = load_default_config()
    if config_path:
        path = Path(config_path)
        existing = _known_only(_load_json_dict(path)) if path.exists() else {}
    else:
        path = ensure_user_config_exists(defaults)
        existing = _known_only(_load_json_dict(path))
    merged = dict(defaults)
    merged.update(existing)
    merged.update(payload)
    _write_json_dict(path, _known_only(merged))
    return path


def ensure_user_config_exists(defaults: dict[str, Any] | None = None) -> Path:
    paths = app_paths()
    if paths.config_path.exists():
        return paths.config_path
    _write_json_dict(paths.config_path, defaults or load_default_config())
    return paths.config_path


def resolve_defaults(config_path: str | None = None) -> tuple[dict[str, Any], Path]:
    return load_user_config(config_path=config_path)


def load_credential() -> str | None:
    """Primary-provider API key: environment first, then the credentials file."""
    env_key = os.getenv(CREDENTIAL_ENV, "").strip()
    if env_key:
        return env_key
    path = app_paths().credentials_path
    if not path.exists():
        return None
    key = str(_load_json_dict(path).get("google_api_key") or "").strip()
    return key or None


def save_credential(api_key: str | None) -> Path:
    """Store the key; an empty key removes the stored credential."""
    path = app_paths().credentials_path
    key = (api_key or "").strip()
    if key:
        _write_json_dict(path, {"google_api_key": key})
    elif path.exists():
        path.unlink()
    return path


def parser_with_defaults(defaults: dict[str, Any]) -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="lingualive")
    p.add_argument("--config", default=None, help="JSON config path (CLI flags override config)")
    p.add_argument("--list-devices", action="store_true", help="print audio devices and exit")
    p.add_argument("--device", type=int, default=defaults["device"], help="sounddevice input device id")
    p.add_argument("--sr", type=int, default=defaults["sr"], help="capture sample rate (Hz)")
    p.add_argument("--channels", type=int, default=defaults["channels"], help="input channels")
    p.add_argument(
        "--segment-sec",
        type=float,
        default=defaults["segment_sec"],
        help="capture segment length in seconds (4-8)",
    )
    p.add_argument("--model", default=defaults["model"], help="faster-whisper model size")
    p.add_argument(
        "--load-timeout",
        type=float,
        default=defaults["load_timeout"],
        help="seconds to wait for the local model before falling back",
    )
    p.add_argument(
        "--force-fallback",
        action=argparse.BooleanOptionalAction,
        default=defaults["force_fallback"],
        help="skip the local model and use the streaming recognizer",
    )
    p.add_argument("--source", dest="source_language", default=defaults["source_language"],
                   help="spoken language tag, or 'auto'")
    p.add_argument("--target", dest="target_language", default=defaults["target_language"],
                   help="translation target language tag")
    p.add_argument("--default-source", default=defaults["default_source"],
                   help="source language assumed when 'auto' has not detected one yet")
    p.add_argument(
        "--auto-speak",
        action=argparse.BooleanOptionalAction,
        default=defaults["auto_speak"],
        help="speak translations aloud",
    )
    p.add_argument(
        "--print-console",
        action=argparse.BooleanOptionalAction,
        default=defaults["print_console"],
        help="print transcripts and translations to console",
    )
    p.add_argument(
        "--remember-settings",
        action=argparse.BooleanOptionalAction,
        default=defaults["remember_settings"],
        help="save language and auto-speak choices back to the config file",
    )
    p.add_argument(
        "--console-commands",
        action=argparse.BooleanOptionalAction,
        default=defaults["console_commands"],
        help="read :source, :target and :speak commands from stdin while listening",
    )
    p.add_argument("--debug", action="store_true", help="log segment decisions at debug level")
    p.add_argument("--min-chars", type=int, default=defaults["min_chars"], help="shortest accepted transcript")
    p.add_argument("--max-char-run", type=int, default=defaults["max_char_run"],
                   help="reject when one character repeats more than this")
    p.add_argument("--max-word-run", type=int, default=defaults["max_word_run"],
                   help="reject when one word repeats more than this")
    p.add_argument("--max-token-len", type=int, default=defaults["max_token_len"],
                   help="longest unspaced token checked for back-to-back repeats")
    p.add_argument("--max-char-ratio", type=float, default=defaults["max_char_ratio"],
                   help="reject when one letter exceeds this share of all letters")
    p.add_argument("--min-segment-sec", type=float, default=defaults["min_segment_sec"],
                   help="segments shorter than this are skipped")
    p.add_argument("--silence-rms", type=float, default=defaults["silence_rms"],
                   help="RMS floor below which a segment counts as silence")
    p.add_argument("--saturation-rms", type=float, default=defaults["saturation_rms"],
                   help="RMS ceiling above which a segment counts as saturated")
    p.add_argument("--min-energy-variation", type=float, default=defaults["min_energy_variation"],
                   help="minimum energy variation across 100ms windows")
    p.add_argument("--provider-timeout", type=float, default=defaults["provider_timeout"],
                   help="per-provider translation timeout (seconds)")
    p.add_argument("--libretranslate-url", default=defaults["libretranslate_url"], help="LibreTranslate endpoint")
    p.add_argument(
        "--offline-translator",
        action=argparse.BooleanOptionalAction,
        default=defaults["offline_translator"],
        help="try Argos Translate after the online providers",
    )
    p.add_argument("--queue-maxsize", type=int, default=defaults["queue_maxsize"],
                   help="max display lines buffered between worker and console")
    p.add_argument("--max-pending-transcripts", type=int, default=defaults["max_pending_transcripts"],
                   help="final transcripts buffered in fallback mode before the oldest is dropped")
    p.add_argument("--poll-ms", type=int, default=defaults["poll_ms"], help="console poll interval (ms)")
    p.add_argument("--max-updates-per-tick", type=int, default=defaults["max_updates_per_tick"],
                   help="max display lines printed per poll")
    p.add_argument("--set-api-key", default=None, help="store the Google Translate API key ('' removes it)")
    p.add_argument("--show-history", action="store_true", help="print saved translation history and exit")
    p.add_argument("--clear-history", action="store_true", help="delete saved translation history and exit")
    return p


def resolve_args(argv: list[str] | None = None) -> argparse.Namespace:
    pre = argparse.ArgumentParser(add_help=False)
    pre.add_argument("--config", default=None)
    pre_args, _ = pre.parse_known_args(argv)
    defaults, _ = resolve_defaults(config_path=pre_args.config)
    parser = parser_with_defaults(defaults)
    args = parser.parse_args(argv)
    if defaults.get("list_devices"):
        args.list_devices = True
    if defaults.get("debug"):
        args.debug = True
    # settings-only keys without a CLI flag still reach the services
    for key in ("mymemory_email", "libretranslate_api_key", "argos_auto_install", "history_limit"):
        setattr(args, key, defaults.get(key))
    return args
