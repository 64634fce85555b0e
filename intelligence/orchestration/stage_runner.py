import time
import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError
from typing import Any, Callable, List, Optional

from intelligence.core.types import StageExecutionResult

logger = logging.getLogger(__name__)

StageListener = Callable[[StageExecutionResult], None]


class StageRunner:
    """Runs one stage's compute function and converts any failure into data.

    This is the only place where collaborator exceptions are trapped: `run()`
    never raises. When `timeout_seconds` is set the function runs on a worker
    thread and the runner stops waiting after the budget; the thread is not
    killed and is left to finish on its own.

    Listeners receive every StageExecutionResult after it is logged. They are
    a side channel only; a listener that raises is logged and ignored.
    """

    def __init__(self, timeout_seconds: Optional[float] = None, listeners: Optional[List[StageListener]] = None):
        self.timeout_seconds = timeout_seconds
        self.listeners: List[StageListener] = list(listeners or [])

    def add_listener(self, listener: StageListener) -> None:
        self.listeners.append(listener)

    def run(self, stage_key: str, fn: Callable[[], Any]) -> StageExecutionResult:
        """Invoke `fn` and wrap its outcome; records duration regardless of outcome."""
        start = time.perf_counter()
        try:
            data = self._call(fn)
            result = StageExecutionResult(
                key=stage_key,
                success=True,
                data=data,
                duration_ms=self._elapsed_ms(start),
            )
        except TimeoutError:
            result = StageExecutionResult(
                key=stage_key,
                success=False,
                error_message=f"exceeded soft time budget of {self.timeout_seconds:g}s",
                duration_ms=self._elapsed_ms(start),
            )
        except Exception as e:
            result = StageExecutionResult(
                key=stage_key,
                success=False,
                error_message=str(e) or e.__class__.__name__,
                duration_ms=self._elapsed_ms(start),
            )
        self._emit(result)
        return result

    def _call(self, fn: Callable[[], Any]) -> Any:
        if self.timeout_seconds is None:
            return fn()
        pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="stage")
        try:
            future = pool.submit(fn)
            return future.result(timeout=self.timeout_seconds)
        finally:
            pool.shutdown(wait=False)

    @staticmethod
    def _elapsed_ms(start: float) -> float:
        return round((time.perf_counter() - start) * 1000.0, 3)

    def _emit(self, result: StageExecutionResult) -> None:
        extra = {
            "stage": result.key,
            "duration_ms": result.duration_ms,
            "success": result.success,
            "error": result.error_message,
        }
        if result.success:
            logger.debug("[Step] %s completed in %.1fms", result.key, result.duration_ms, extra=extra)
        else:
            logger.error(
                "[Step] %s failed after %.1fms: %s",
                result.key, result.duration_ms, result.error_message, extra=extra,
            )
        for listener in self.listeners:
            try:
                listener(result)
            except Exception:
                logger.debug("Stage listener failed", extra={"stage": result.key}, exc_info=True)
