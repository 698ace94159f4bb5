"""
Priority task queue for upgrade operations.

The queue orders operations by their fixed per-type priority, so whichever
order the planner enqueues them in, the device sees:

    reset before upload -> upload -> test / confirm -> erase storage
    -> reset -> confirm after reset

Operations with equal priority keep their enqueue order.
"""

import heapq
import itertools
import logging
from typing import Any, List, Optional, Protocol, Tuple, runtime_checkable

from smp_dfu.models import UpgradeSettings
from .operations import Operation, UpgradeState

logger = logging.getLogger(__name__)


@runtime_checkable
class TaskPerformer(Protocol):
    """What the validate step needs from whoever runs the upgrade."""
    client: Any
    settings: UpgradeSettings

    def enqueue(self, operation: Operation) -> None: ...

    def on_task_completed(self) -> None: ...

    def on_task_failed(self, error: Exception) -> None: ...


class TaskQueue:
    """
    In-memory task sequencer.

    Implements the performer interface used by the validate step:
    `enqueue`, `on_task_completed`, `on_task_failed`, `settings`, `client`.
    Executing operations is up to the caller, which pops them with `drain()`.
    """

    def __init__(self, client=None, settings: Optional[UpgradeSettings] = None):
        self.client = client
        self.settings = settings or UpgradeSettings()
        self.state = UpgradeState.NONE
        self.error: Optional[Exception] = None
        self.completed = False
        self._heap: List[Tuple[int, int, Operation]] = []
        self._counter = itertools.count()

    def enqueue(self, operation: Operation) -> None:
        """Add an operation; its type decides when it runs."""
        logger.debug(f"Enqueue {operation.describe()} (priority {operation.priority})")
        heapq.heappush(self._heap, (operation.priority, next(self._counter), operation))

    def on_task_completed(self) -> None:
        self.completed = True
        logger.debug(f"Task completed, {len(self._heap)} operation(s) queued")

    def on_task_failed(self, error: Exception) -> None:
        self.error = error
        self._heap.clear()
        logger.error(f"Upgrade failed in state {self.state.value}: {error}")

    @property
    def failed(self) -> bool:
        return self.error is not None

    def pending(self) -> List[Operation]:
        """Queued operations in execution order, without removing them."""
        return [op for _, _, op in sorted(self._heap)]

    def pop(self) -> Optional[Operation]:
        """Next operation to run, or None when the queue is empty."""
        if not self._heap:
            return None
        _, _, operation = heapq.heappop(self._heap)
        self.state = operation.state
        return operation

    def drain(self) -> List[Operation]:
        """Pop all operations in execution order."""
        ops = []
        while self._heap:
            ops.append(self.pop())
        return ops

    def __len__(self) -> int:
        return len(self._heap)
