from __future__ import annotations

import queue
import sys
import time
import traceback

from lingualive.app.commands import ConsoleCommandReader, apply_console_command, save_session_settings
from lingualive.app.config import app_paths, resolve_args, save_credential
from lingualive.app.diagnostics import hint_for_exception, summarize_exception
from lingualive.app.history import HistoryStore
from lingualive.app.logging_setup import setup_app_logger
from lingualive.app.services import build_live_services
from lingualive.asr.faster_whisper_local import default_load_timeout
from lingualive.audio.mic import SoundDeviceMicSource
from lingualive.errors import CaptureUnavailable
from lingualive.live.bus import DisplayBus, DisplayLine, LineKind


def format_line(line: DisplayLine) -> str:
    if line.kind == LineKind.INTERIM:
        return f"  ... {line.text}"
    if line.kind == LineKind.ORIGINAL:
        lang = f" [{line.language}]" if line.language else ""
        return f"SRC{lang}: {line.text}"
    if line.kind == LineKind.TRANSLATION:
        via = f" (via {line.provider})" if line.provider else ""
        return f"DST [{line.language}]{via}: {line.text}"
    return f"-- {line.text}"


def drain_display(bus: DisplayBus, max_items: int, out=None, echo: bool = True) -> int:
    out = out or sys.stdout
    drained = 0
    while drained < max_items:
        line = bus.pop()
        if line is None:
            break
        if echo:
            print(format_line(line), file=out, flush=True)
        drained += 1
    return drained


def _print_progress(percent: int, message: str) -> None:
    print(f"[{percent:3d}%] {message}", flush=True)


def _report_fatal(exc: BaseException) -> None:
    detail = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    summary = summarize_exception(detail)
    print(f"Error: {summary}", file=sys.stderr)
    print(f"Hint: {hint_for_exception(f'{type(exc).__name__}: {summary}')}", file=sys.stderr)


def _remember_settings(services, args, logger) -> None:
    if not args.remember_settings:
        return
    try:
        path = save_session_settings(services.session, services.pipeline.auto_speak, config_path=args.config)
    except (OSError, ValueError):
        logger.exception("settings_save_failed")
        return
    logger.info("settings_saved", extra={"config_path": str(path)})


def handle_console_commands(reader: ConsoleCommandReader, services, args, logger, out=None) -> bool:
    """Apply every pending console line. Returns True when the user asked to quit."""
    out = out or sys.stdout
    while True:
        line = reader.poll()
        if line is None:
            return False
        result = apply_console_command(line, session=services.session, pipeline=services.pipeline)
        if result is None:
            continue
        print(result.message, file=out, flush=True)
        if result.settings_changed:
            _remember_settings(services, args, logger)
        if result.quit:
            return True


def main(argv: list[str] | None = None) -> int:
    args = resolve_args(argv)
    logger, _log_dir, log_path = setup_app_logger(debug=bool(args.debug))
    logger.info("app_start", extra={"config_path": str(getattr(args, "config", "")), "argv": argv or []})

    if args.list_devices:
        print(SoundDeviceMicSource.list_devices())
        return 0
    if args.set_api_key is not None:
        path = save_credential(args.set_api_key)
        print("API key saved." if args.set_api_key.strip() else "API key removed.", f"({path})")
        return 0
    history = HistoryStore(app_paths().history_path, limit=int(args.history_limit or 50))
    if args.clear_history:
        history.clear()
        print("History cleared.")
        return 0
    if args.show_history:
        for entry in history.load():
            print(f"{entry.timestamp} [{entry.source_language}->{entry.target_language} via {entry.provider}]")
            print(f"  {entry.original}")
            print(f"  {entry.translation}")
        return 0

    fatal: "queue.Queue[CaptureUnavailable]" = queue.Queue(maxsize=1)

    def _on_fatal(exc: CaptureUnavailable) -> None:
        try:
            fatal.put_nowait(exc)
        except queue.Full:
            pass

    services = build_live_services(args, logger=logger, on_fatal=_on_fatal)
    timeout = args.load_timeout if args.load_timeout is not None else default_load_timeout(args.model)
    kind = services.backend.select(
        progress=_print_progress,
        timeout=float(timeout),
        force_fallback=bool(args.force_fallback),
    )
    if services.backend.demotion_reason:
        print(f"Local model unavailable ({services.backend.demotion_reason}) - using fallback recognizer.")
    print(f"Backend: {kind.value}. Logs: {log_path}", flush=True)
    _remember_settings(services, args, logger)

    scheduler = services.scheduler
    try:
        scheduler.start()
    except CaptureUnavailable as e:
        logger.exception("capture_start_failed")
        _report_fatal(e)
        return 2

    reader = None
    if args.console_commands:
        reader = ConsoleCommandReader()
        reader.start()
        print("Listening... type :help for commands, Ctrl+C to stop.", flush=True)
    else:
        print("Listening... press Ctrl+C to stop.", flush=True)
    exit_code = 0
    try:
        while True:
            drain_display(services.display, max(1, int(args.max_updates_per_tick)), echo=bool(args.print_console))
            try:
                exc = fatal.get_nowait()
            except queue.Empty:
                exc = None
            if exc is not None:
                _report_fatal(exc)
                exit_code = 2
                break
            if reader is not None and handle_console_commands(reader, services, args, logger):
                logger.info("app_quit_command")
                break
            time.sleep(max(10, int(args.poll_ms)) / 1000.0)
    except KeyboardInterrupt:
        logger.info("app_keyboard_interrupt")
    finally:
        scheduler.close()
        services.speech.cancel()
        drain_display(services.display, max(1, int(args.queue_maxsize)), echo=bool(args.print_console))
        logger.info("app_stop", extra={"exit_code": exit_code})
    return exit_code


if __name__ == "__main__":
    raise SystemExit(main())
