from __future__ import annotations


class LinguaLiveError(RuntimeError):
    pass


class CaptureUnavailable(LinguaLiveError):
    """The capture device could not be opened or stopped delivering audio."""


class BackendUnavailable(LinguaLiveError):
    """The local backend cannot serve requests; the session falls back for good."""


# Name used by the load path: a failed load is the same event as an unusable backend.
BackendLoadFailure = BackendUnavailable


class SegmentDecodeError(LinguaLiveError):
    pass


class ProviderFailure(LinguaLiveError):
    def __init__(self, provider: str, detail: str) -> None:
        super().__init__(f"{provider}: {detail}")
        self.provider = provider
        self.detail = detail


class SynthesisFailure(LinguaLiveError):
    pass
