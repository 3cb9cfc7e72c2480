from __future__ import annotations

import queue
import sys
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Any, Optional

from lingualive.app.config import save_user_config
from lingualive.app.state import SessionManager

COMMAND_HELP = (
    "Commands: :source <lang|auto>  :target <lang>  :speak on|off  :status  :help  :quit"
)


@dataclass(frozen=True)
class CommandResult:
    message: str
    settings_changed: bool = False
    quit: bool = False


class ConsoleCommandReader:
    """Reads console lines on a daemon thread; the poll loop picks them up without blocking."""

    def __init__(self, stream: Optional[IO[str]] = None) -> None:
        self.stream = stream if stream is not None else sys.stdin
        self.lines: "queue.Queue[str]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name="lingualive-console", daemon=True)
        self._thread.start()

    def _run(self) -> None:
        for line in self.stream:
            self.lines.put(line)

    def poll(self) -> Optional[str]:
        try:
            return self.lines.get_nowait()
        except queue.Empty:
            return None


def session_settings(session: SessionManager, auto_speak: bool) -> dict[str, Any]:
    snap = session.snapshot()
    return {
        "source_language": snap.source_language,
        "target_language": snap.target_language,
        "auto_speak": bool(auto_speak),
    }


def save_session_settings(session: SessionManager, auto_speak: bool, config_path: str | None = None) -> Path:
    return save_user_config(session_settings(session, auto_speak), config_path=config_path)


def _status(session: SessionManager, pipeline: Any) -> str:
    snap = session.snapshot()
    detected = f" (detected {snap.detected_language})" if snap.detected_language else ""
    speak = "on" if pipeline.auto_speak else "off"
    return f"source={snap.source_language}{detected} target={snap.target_language} speak={speak}"


def apply_console_command(line: str, *, session: SessionManager, pipeline: Any) -> Optional[CommandResult]:
    text = (line or "").strip()
    if not text:
        return None
    if not text.startswith(":"):
        return CommandResult(f"Unknown input. {COMMAND_HELP}")

    name, _, value = text[1:].partition(" ")
    name = name.lower()
    value = value.strip().lower()

    if name in ("q", "quit", "exit"):
        return CommandResult("Stopping...", quit=True)
    if name == "help":
        return CommandResult(COMMAND_HELP)
    if name == "status":
        return CommandResult(_status(session, pipeline))
    if name == "source":
        if not value:
            return CommandResult("Usage: :source <lang|auto>")
        session.set_source_language(value)
        return CommandResult(f"Source language: {value}", settings_changed=True)
    if name == "target":
        if not value:
            return CommandResult("Usage: :target <lang>")
        try:
            session.set_target_language(value)
        except ValueError as e:
            return CommandResult(f"Error: {e}")
        return CommandResult(f"Target language: {value}", settings_changed=True)
    if name == "speak":
        if value not in ("on", "off"):
            return CommandResult("Usage: :speak on|off")
        pipeline.auto_speak = value == "on"
        return CommandResult(f"Auto-speak {value}", settings_changed=True)
    return CommandResult(f"Unknown command ':{name}'. {COMMAND_HELP}")
