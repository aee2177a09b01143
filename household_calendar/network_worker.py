"""
Network Worker - runs blocking per-source operations in background threads.

Uses ThreadPoolExecutor so that total latency tracks the slowest source
instead of the sum of all sources. Every batch is bounded by a deadline;
tasks still running at the deadline are reported as timed out.
"""

from concurrent.futures import ThreadPoolExecutor, Future, wait
from dataclasses import dataclass
from typing import Any, Callable, Optional


@dataclass
class TaskResult:
    """Outcome of one task: either a value or the exception it raised."""
    key: str
    value: Any = None
    error: Optional[BaseException] = None
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


class NetworkWorker:
    """Runs batches of blocking operations concurrently."""

    def __init__(self, max_workers: int = 5):
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="network")

    def run_all(
        self,
        tasks: dict[str, Callable[[], Any]],
        timeout: Optional[float] = None
    ) -> dict[str, TaskResult]:
        """
        Run all tasks concurrently and wait for them.

        Args:
            tasks: Mapping of task key to zero-argument callable
            timeout: Seconds to wait for the whole batch (None: no limit)

        Returns:
            Dict mapping task key to its TaskResult, in the order of ``tasks``.
        """
        futures: dict[str, Future] = {
            key: self._executor.submit(func) for key, func in tasks.items()
        }
        _, not_done = wait(futures.values(), timeout=timeout)

        results = {}
        for key, future in futures.items():
            if future in not_done:
                # Only stops the task if it hasn't started
                future.cancel()
                results[key] = TaskResult(
                    key=key,
                    error=TimeoutError(f"no result within {timeout} seconds"),
                    timed_out=True,
                )
                continue
            try:
                results[key] = TaskResult(key=key, value=future.result())
            except Exception as e:
                results[key] = TaskResult(key=key, error=e)
        return results

    def shutdown(self, wait: bool = True) -> None:
        """Shutdown the executor, optionally waiting for pending operations."""
        self._executor.shutdown(wait=wait)


# Global worker instance (created lazily)
_global_worker: Optional[NetworkWorker] = None


def get_network_worker() -> NetworkWorker:
    """Get the global NetworkWorker instance."""
    global _global_worker
    if _global_worker is None:
        _global_worker = NetworkWorker()
    return _global_worker
