from __future__ import annotations


def summarize_exception(detail: str, *, max_len: int = 220) -> str:
    text = str(detail or "").strip()
    if not text:
        return "Unknown runtime error."
    lines = [ln.strip() for ln in text.splitlines() if ln.strip()]
    skip = ("File ", "^", "Traceback ", "The above exception", "During handling")
    meaningful = [ln for ln in lines if not ln.startswith(skip)]
    out = meaningful[-1] if meaningful else lines[-1]
    if len(out) > max_len:
        return out[: max_len - 3].rstrip() + "..."
    return out


def hint_for_exception(summary: str) -> str:
    s = str(summary or "").lower()
    # most specific cause first: a missing PyAudio surfaces as a microphone failure
    if "pyaudio" in s:
        return "The fallback recognizer needs PyAudio. Install with: python -m pip install 'lingualive[fallback]'"
    if "captureunavailable" in s or "microphone" in s or "not-allowed" in s:
        return "Microphone unavailable. Check the input device (--list-devices, --device) and mic permissions."
    if "no module named" in s:
        return "A required package is missing in this virtualenv. Reinstall dependencies and retry."
    if "config file not found" in s:
        return "Configured JSON file is missing. Update the config path or restore the file."
    if "timed out" in s and "model" in s:
        return "Local model load timed out. Try a smaller --model or raise --load-timeout."
    return "Check logs for full traceback."
