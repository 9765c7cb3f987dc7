"""
Extractor registry and notification dispatch.

Each attached extractor gets a dedicated single-worker executor. Events are
submitted to every worker in commit order, so one extractor sees the
batches of a session in the order they were written, while a slow or
failing extractor never holds up the writer or the other extractors.
Dispatch runs outside the caller's request, with its own deadline policy.
"""

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import TYPE_CHECKING, Dict, Optional, Set, Tuple

from memstore.memory.schemas import MessageEvent
from memstore.telemetry import get_logger
from .base import BaseExtractor

if TYPE_CHECKING:
    from memstore.memory.store import MemoryStore

log = get_logger(__name__)


class ExtractorRegistry:
    """
    Copy-on-write set of attached extractors.

    Args:
        deadline: Seconds an event may wait in an extractor's queue before it
            is dropped; extraction running longer than this is reported.
            None disables both checks.
    """

    def __init__(self, deadline: Optional[float] = 300.0):
        self.deadline = deadline
        self.store: Optional["MemoryStore"] = None

        # Reentrant: add_done_callback runs _discard inline for already-finished futures
        self._lock = threading.RLock()
        self._extractors: Tuple[BaseExtractor, ...] = ()
        self._executors: Dict[int, ThreadPoolExecutor] = {}
        self._pending: Set[Future] = set()
        self._closed = False

    def bind(self, store: "MemoryStore") -> None:
        """Set the store handed to extractors for callbacks."""
        self.store = store

    @property
    def extractors(self) -> Tuple[BaseExtractor, ...]:
        """Snapshot of the attached extractors."""
        return self._extractors

    def attach(self, extractor: BaseExtractor) -> None:
        """Register an extractor. Attaching the same instance twice is a no-op."""
        with self._lock:
            if self._closed:
                raise RuntimeError("extractor registry is closed")
            if id(extractor) in self._executors:
                return
            self._executors[id(extractor)] = ThreadPoolExecutor(
                max_workers=1, thread_name_prefix=f"extractor-{extractor.name}"
            )
            self._extractors = self._extractors + (extractor,)
        log.info("extractor_attached", extractor=extractor.name)

    def detach(self, extractor: BaseExtractor) -> bool:
        """
        Unregister an extractor.

        Events already queued for it are still delivered.
        """
        with self._lock:
            executor = self._executors.pop(id(extractor), None)
            if executor is None:
                return False
            self._extractors = tuple(e for e in self._extractors if e is not extractor)
        executor.shutdown(wait=False)
        log.info("extractor_detached", extractor=extractor.name)
        return True

    def notify(self, event: MessageEvent, suppress: bool = False) -> int:
        """
        Fan an event out to every attached extractor.

        Args:
            event: Committed batch
            suppress: Deliver to nobody (used by extractor callbacks)

        Returns:
            Number of extractors the event was queued for
        """
        if suppress:
            return 0

        enqueued_at = time.monotonic()
        with self._lock:
            if self._closed:
                log.warning("notify_after_close", session_id=event.session_id)
                return 0
            targets = [(e, self._executors[id(e)]) for e in self._extractors]
            for extractor, executor in targets:
                future = executor.submit(self._deliver, extractor, event, enqueued_at)
                self._pending.add(future)
                future.add_done_callback(self._discard)
        return len(targets)

    def _discard(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def _deliver(self, extractor: BaseExtractor, event: MessageEvent, enqueued_at: float) -> None:
        waited = time.monotonic() - enqueued_at
        if self.deadline is not None and waited > self.deadline:
            log.warning(
                "extractor_event_expired",
                extractor=extractor.name,
                session_id=event.session_id,
                waited_s=round(waited, 3),
            )
            return

        started = time.monotonic()
        try:
            extractor.extract(self.store, event)
        except Exception:
            log.exception(
                "extractor_failed",
                extractor=extractor.name,
                session_id=event.session_id,
                messages=len(event.messages),
            )
            return

        elapsed = time.monotonic() - started
        if self.deadline is not None and elapsed > self.deadline:
            log.warning(
                "extractor_deadline_exceeded",
                extractor=extractor.name,
                session_id=event.session_id,
                elapsed_s=round(elapsed, 3),
            )

    def drain(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for queued deliveries to finish.

        Returns:
            True if nothing is left pending
        """
        with self._lock:
            pending = list(self._pending)
        if not pending:
            return True
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def close(self, timeout: Optional[float] = 5.0) -> None:
        """Stop accepting events, wait up to `timeout` for in-flight work, release workers."""
        with self._lock:
            if self._closed:
                return
            self._closed = True

        if not self.drain(timeout):
            log.warning("extractor_close_timeout", timeout_s=timeout)

        with self._lock:
            executors = list(self._executors.values())
            self._executors.clear()
            self._extractors = ()
        for executor in executors:
            executor.shutdown(wait=False, cancel_futures=True)
