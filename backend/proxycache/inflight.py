# backend/proxycache/inflight.py
import logging
from threading import Lock, Event
from typing import Any, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class CoalesceTimeout(TimeoutError):
    """A waiter gave up on an in-flight fetch owned by another thread."""


class InflightRequest:
    """An upstream fetch currently running for one cache key."""
    def __init__(self):
        self.event = Event()  # waiters block on this
        self.result: Any = None
        self.error: Optional[BaseException] = None


class InflightTable:
    """
    Request coalescing: while one thread fetches a key, every other thread
    asking for the same key waits for that fetch instead of starting its own,
    and gets the same result or the same exception.
    """

    def __init__(self):
        self.requests: Dict[str, InflightRequest] = {}
        self.lock = Lock()

    def __len__(self):
        with self.lock:
            return len(self.requests)

    def run(self, key: str, fetcher: Callable[[], Any],
            wait_timeout: Optional[float] = None) -> Tuple[Any, bool]:
        """
        Run `fetcher` for `key` unless a fetch for it is already in flight.

        Returns (result, performed_fetch). Raises whatever the fetch raised,
        in the owner and in every waiter. A waiter still blocked after
        `wait_timeout` seconds raises CoalesceTimeout; the fetch itself goes on.
        """
        with self.lock:
            req = self.requests.get(key)
            if req is None:
                # owner: register before the upstream call goes out
                req = InflightRequest()
                self.requests[key] = req
                owner = True
            else:
                owner = False

        if not owner:
            logger.debug("Waiting on in-flight fetch for %s", key)
            if not req.event.wait(wait_timeout):
                raise CoalesceTimeout(f"in-flight fetch for {key} did not finish in {wait_timeout}s")
            if req.error is not None:
                raise req.error
            return req.result, False

        try:
            req.result = fetcher()
        except BaseException as e:
            req.error = e
            raise
        finally:
            # unregister first so a request arriving after release starts fresh
            with self.lock:
                if self.requests.get(key) is req:
                    del self.requests[key]
            req.event.set()

        return req.result, True
