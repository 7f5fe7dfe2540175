from __future__ import annotations
import threading
import time
from typing import Optional
from .exceptions import ApiTransportError, RequestCancelled, RequestTimeout


class RequestContext:
    """Cancellation flag plus an optional deadline shared by one or more requests.

    Usage:
        ctx = RequestContext(timeout=5)
        client.request('GET', 'rides', out=dict, ctx=ctx)
        # from another thread: ctx.cancel()
    """

    def __init__(self, timeout: Optional[float] = None, parent: Optional['RequestContext'] = None):
        self._cancelled = threading.Event()
        self._parent = parent
        deadline = time.monotonic() + timeout if timeout is not None else None
        if parent is not None and parent.deadline is not None:
            deadline = parent.deadline if deadline is None else min(deadline, parent.deadline)
        self.deadline: Optional[float] = deadline

    @classmethod
    def background(cls) -> 'RequestContext':
        return cls()

    def with_timeout(self, timeout: float) -> 'RequestContext':
        """Child context that is cancelled with this one and expires no later than `timeout`."""
        return RequestContext(timeout=timeout, parent=self)

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        if self._cancelled.is_set():
            return True
        return self._parent is not None and self._parent.cancelled

    def remaining(self) -> Optional[float]:
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def err(self) -> Optional[ApiTransportError]:
        """The error a request bound to this context must fail with, or None while it is live."""
        if self.cancelled:
            return RequestCancelled('request context cancelled')
        if self.deadline is not None and time.monotonic() >= self.deadline:
            return RequestTimeout('request context deadline exceeded')
        return None
