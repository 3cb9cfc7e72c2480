from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generic, Iterable, Optional, Tuple, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Attempt(Generic[T]):
    name: str
    run: Callable[[], T]


def first_accepted(
    attempts: Iterable[Attempt[T]],
    *,
    accept: Callable[[T], bool] = lambda _result: True,
    on_failure: Optional[Callable[[str, Exception], None]] = None,
    on_rejected: Optional[Callable[[str, T], None]] = None,
) -> Optional[Tuple[str, T]]:
    """
    Run attempts in order and return (name, result) of the first accepted one.
    Exceptions never escape: they are reported to on_failure and the next
    attempt runs. Returns None when every attempt failed or was rejected.
    """
    for attempt in attempts:
        try:
            result = attempt.run()
        except Exception as e:
            if on_failure is not None:
                on_failure(attempt.name, e)
            continue
        if accept(result):
            return attempt.name, result
        if on_rejected is not None:
            on_rejected(attempt.name, result)
    return None
