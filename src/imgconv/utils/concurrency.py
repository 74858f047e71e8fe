"""Concurrency management for batch processing."""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from imgconv.utils.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class TaskResult(Generic[T]):
    """Result of a concurrent task."""

    item: T
    success: bool
    result: Any | None = None
    error: str | None = None


class ConcurrencyManager:
    """Bounded concurrent execution of per-file tasks."""

    def __init__(self, file_workers: int = 4) -> None:
        """Initialize the concurrency manager.

        Args:
            file_workers: Maximum number of files processed at once
        """
        self.file_workers = file_workers
        self._file_semaphore: asyncio.Semaphore | None = None

    def _get_file_semaphore(self) -> asyncio.Semaphore:
        # Created lazily so it binds to the running event loop
        if self._file_semaphore is None:
            self._file_semaphore = asyncio.Semaphore(self.file_workers)
        return self._file_semaphore

    async def map_file_tasks(
        self,
        items: list[T],
        func: Callable[[T], Awaitable[R]],
        on_progress: Callable[[T, R | None, Exception | None], None] | None = None,
    ) -> list[TaskResult[T]]:
        """Process items concurrently, at most ``file_workers`` at a time.

        Results come back in input order. A task that raises is reported as
        a failed TaskResult; cancellation propagates.

        Args:
            items: Items to process
            func: Async function to apply to each item
            on_progress: Optional callback invoked as each item finishes

        Returns:
            List of TaskResult objects
        """
        semaphore = self._get_file_semaphore()

        async def process_item(item: T) -> TaskResult[T]:
            async with semaphore:
                try:
                    result = await func(item)
                except Exception as e:
                    log.warning("Task failed", item=str(item), error=str(e))
                    if on_progress:
                        on_progress(item, None, e)
                    return TaskResult(item=item, success=False, error=str(e))
                if on_progress:
                    on_progress(item, result, None)
                return TaskResult(item=item, success=True, result=result)

        return list(await asyncio.gather(*(process_item(item) for item in items)))
