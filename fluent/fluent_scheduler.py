"""
Schedulers decide when a continuation deferred by the interpreter runs.

The interpreter defers exactly one kind of work: resuming a chain at a jump
target when it is not running in blocking mode. It hands a zero-argument
callback to a scheduler instead of calling a host primitive directly, so a
test can hold the continuation and release it by hand.
"""

import asyncio
import collections
from abc import ABC, abstractmethod
from typing import Callable


class Scheduler(ABC):
    """Accepts continuations to run on a later tick."""

    @abstractmethod
    def call_soon(self, callback: Callable[[], None]) -> None:
        raise NotImplementedError


class LoopScheduler(Scheduler):
    """Runs continuations on the next iteration of the running asyncio loop."""

    def call_soon(self, callback: Callable[[], None]) -> None:
        asyncio.get_running_loop().call_soon(callback)


class TaskQueue(Scheduler):
    """A single-consumer continuation queue that is drained explicitly.

    Nothing runs until `step()` or `run_until_idle()` is called, which makes
    jump resumption deterministic under test.
    """

    def __init__(self):
        self._queue: collections.deque = collections.deque()

    def call_soon(self, callback: Callable[[], None]) -> None:
        self._queue.append(callback)

    @property
    def pending(self) -> int:
        return len(self._queue)

    def step(self) -> bool:
        """Runs the oldest continuation. Returns False when the queue was empty."""
        if not self._queue:
            return False
        callback = self._queue.popleft()
        callback()
        return True

    def run_until_idle(self) -> int:
        """Runs continuations until the queue is empty and returns how many ran."""
        count = 0
        while self.step():
            count += 1
        return count
