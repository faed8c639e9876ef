"""Cancellation of in-flight catalogue writes.

The gateway hands the store a token per request; handlers check it as their
last step, so a write whose caller went away is rolled back instead of committed.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

from shared.exceptions import RequestCancelledError

CancellationToken = threading.Event

_current_token: ContextVar[CancellationToken | None] = ContextVar("cancellation_token", default=None)


@contextmanager
def cancellable(token: CancellationToken | None) -> Iterator[None]:
    reset = _current_token.set(token)
    try:
        yield
    finally:
        _current_token.reset(reset)


def raise_if_cancelled() -> None:
    token = _current_token.get()
    if token is not None and token.is_set():
        raise RequestCancelledError()
