"""Batch coordinator - runs independent agent tasks concurrently."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Optional, Sequence

from ..errors import InvalidBatchError
from .invoker import AgentInvoker
from .protocol import BatchResult, BatchTask, BatchTaskResult, generate_execution_id

if TYPE_CHECKING:
    from ..observability import AgentObserver

logger = logging.getLogger(__name__)

DEFAULT_MAX_TASKS = 10


class BatchCoordinator:
    """Fans a list of tasks out to the invoker and waits for all of them.

    Every task is a fresh root invocation. One failing task never cancels
    or hides the others; it becomes a failed entry in the result.
    """

    def __init__(
        self,
        invoker: AgentInvoker,
        max_tasks: int = DEFAULT_MAX_TASKS,
        observer: Optional[AgentObserver] = None,
    ):
        self.invoker = invoker
        self.max_tasks = max_tasks
        self.observer = observer

    async def run_batch(
        self,
        tasks: Sequence[BatchTask],
        max_tasks: Optional[int] = None,
    ) -> BatchResult:
        """Run all tasks concurrently.

        Args:
            tasks: Tasks to run
            max_tasks: Overrides the coordinator limit for this call

        Raises:
            InvalidBatchError: If ``tasks`` is empty or longer than ``max_tasks``
        """
        limit = max_tasks if max_tasks is not None else self.max_tasks
        if not tasks:
            raise InvalidBatchError("Batch must contain at least one task")
        if len(tasks) > limit:
            raise InvalidBatchError(
                f"Batch has {len(tasks)} tasks, maximum is {limit}",
                details={"count": len(tasks), "max_tasks": limit},
            )

        batch_id = generate_execution_id()
        logger.info("[batch:%s] Starting %d tasks in parallel", batch_id, len(tasks))
        started = time.perf_counter()

        results = await asyncio.gather(
            *(self._run_one(task, index) for index, task in enumerate(tasks))
        )

        total_ms = (time.perf_counter() - started) * 1000
        batch = BatchResult(results=tuple(results), total_duration_ms=total_ms)
        logger.info(
            "[batch:%s] Completed: %d/%d succeeded in %.0fms",
            batch_id,
            batch.succeeded,
            len(tasks),
            total_ms,
        )
        if self.observer:
            self.observer.log_batch(batch_id, len(tasks), batch.failed, total_ms)
        return batch

    async def _run_one(self, task: BatchTask, index: int) -> BatchTaskResult:
        task_id = task.id or f"task-{index}"
        started = time.perf_counter()
        try:
            result = await self.invoker.invoke(task.agent, task.task)
        except Exception as e:
            message = str(e) or type(e).__name__
            logger.warning("Batch task %s (%s) failed: %s", task_id, task.agent, message)
            return BatchTaskResult(
                id=task_id,
                success=False,
                session_id="failed",
                summary=f"Failed: {message}",
                duration_ms=(time.perf_counter() - started) * 1000,
                error=message,
            )

        return BatchTaskResult(
            id=task_id,
            success=result.success,
            session_id=result.session_id,
            summary=result.summary,
            duration_ms=(time.perf_counter() - started) * 1000,
            artifacts=tuple(result.artifacts) if result.artifacts else None,
            error=result.error,
        )
