import time
import logging
import threading
from dataclasses import dataclass, field
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Any, Callable, Dict, List, Optional, Sequence, Set

logger = logging.getLogger(__name__)

# Longest single wait while collecting, so a newly started item's deadline is picked up
POLL_SECONDS = 0.05


@dataclass
class FanOutResult:
    """Per-item results in input order, plus warnings for items that fell back."""
    results: List[Any] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    failed_indices: List[int] = field(default_factory=list)


class _Slot:
    """One item's claim on the fan-out width.

    Released exactly once: by the worker when the item returns, or by the
    collector when it stops waiting on the item, whichever happens first.
    """

    def __init__(self, semaphore: threading.Semaphore):
        self._semaphore = semaphore
        self._lock = threading.Lock()
        self._released = False
        self.started_at: Optional[float] = None

    def run(self, fn: Callable[[Any], Any], item: Any) -> Any:
        self._semaphore.acquire()
        self.started_at = time.monotonic()
        try:
            return fn(item)
        finally:
            self.release()

    def release(self) -> None:
        with self._lock:
            if self._released:
                return
            self._released = True
        self._semaphore.release()


class FanOutExecutor:
    """Run a function once per item with bounded concurrency.

    One item's failure never cancels the others: a failing (or timed-out)
    item is replaced by `default_factory(item)` and a warning is recorded.
    Output order matches input order; completion order is irrelevant.

    Args:
        max_workers: Fan-out width. Items beyond the width queue until a slot
            frees up; they are never rejected.
        item_timeout_seconds: Soft budget per item, measured from when that item
            starts running. An item over budget is defaulted and its slot goes
            to the next queued item; its thread finishes in the background.
    """

    def __init__(self, max_workers: int = 5, item_timeout_seconds: Optional[float] = None):
        self.max_workers = max(1, max_workers)
        self.item_timeout_seconds = item_timeout_seconds

    def run_each(
        self,
        items: Sequence[Any],
        fn: Callable[[Any], Any],
        default_factory: Callable[[Any], Any],
        describe: Callable[[Any], str] = str,
    ) -> FanOutResult:
        items = list(items or [])
        if not items:
            return FanOutResult()

        results: List[Any] = [None] * len(items)
        reasons: Dict[int, str] = {}
        semaphore = threading.Semaphore(self.max_workers)
        slots = [_Slot(semaphore) for _ in items]
        # One thread per item; the semaphore is what bounds concurrency
        pool = ThreadPoolExecutor(max_workers=len(items), thread_name_prefix="fan-out")
        try:
            futures: Dict[Future, int] = {
                pool.submit(slot.run, fn, item): i for i, (slot, item) in enumerate(zip(slots, items))
            }
            pending: Set[Future] = set(futures)
            while pending:
                done, pending = wait(pending, timeout=self._next_wait(pending, futures, slots),
                                     return_when=FIRST_COMPLETED)
                for future in done:
                    idx = futures[future]
                    try:
                        results[idx] = future.result()
                    except Exception as e:
                        reasons[idx] = str(e) or e.__class__.__name__

                for future in self._expired(pending, futures, slots):
                    idx = futures[future]
                    pending.discard(future)
                    slots[idx].release()
                    reasons[idx] = f"timed out after {self.item_timeout_seconds:g}s"
        finally:
            pool.shutdown(wait=False)

        outcome = FanOutResult()
        # Walk in input order so warnings are reproducible
        for idx in sorted(reasons):
            results[idx] = self._fallback(items[idx], idx, reasons[idx], default_factory, describe, outcome)
        outcome.results = results
        return outcome

    def _next_wait(self, pending: Set[Future], futures: Dict[Future, int], slots: List[_Slot]) -> Optional[float]:
        if self.item_timeout_seconds is None:
            return None
        now = time.monotonic()
        waits = [POLL_SECONDS]
        for future in pending:
            started_at = slots[futures[future]].started_at
            if started_at is not None:
                waits.append(max(0.0, started_at + self.item_timeout_seconds - now))
        return min(waits)

    def _expired(self, pending: Set[Future], futures: Dict[Future, int], slots: List[_Slot]) -> List[Future]:
        if self.item_timeout_seconds is None:
            return []
        now = time.monotonic()
        expired = []
        for future in pending:
            started_at = slots[futures[future]].started_at
            if started_at is not None and not future.done() and now - started_at >= self.item_timeout_seconds:
                expired.append(future)
        return expired

    def _fallback(self, item, idx, reason, default_factory, describe, outcome: FanOutResult):
        label = self._describe(item, describe)
        message = f"Could not analyze {label}: {reason}"
        logger.warning(message, extra={"item_index": idx})
        outcome.warnings.append(message)
        outcome.failed_indices.append(idx)
        return default_factory(item)

    @staticmethod
    def _describe(item: Any, describe: Callable[[Any], str]) -> str:
        try:
            return describe(item)
        except Exception:
            return repr(item)
