"""
The chain interpreter.

Runs a chain against a capability table, threading each call's result into
the next call. The synchronous driver runs calls back to back; the moment a
call returns something awaitable, or a non-blocking jump is taken, the rest
of the chain is handed to the asynchronous driver and `run` returns a
coroutine instead of a value.
"""

import asyncio
import collections.abc
import logging
from typing import Any, Optional, Tuple

from fluent.fluent_datatypes import (
    Chain, ChainItem, JumpItem, ExecutionOptions, Immediate, Deferred, as_outcome
)
from fluent.fluent_table import CapabilityTable
from fluent.fluent_codec import decode_items, signature
from fluent.fluent_scheduler import LoopScheduler

logger = logging.getLogger(__name__)


def find_jump_target(chain: Chain, index: int) -> Optional[int]:
    """Finds the call that the jump at `index` resumes at.

    Searches forward from the jump, then from the start of the chain up to
    the jump. Calls match when their method and JSON-encoded args are equal.
    """
    jump = chain[index]
    wanted = signature(jump.target, jump.args)
    candidates = list(range(index + 1, len(chain))) + list(range(0, index))
    for j in candidates:
        item = chain[j]
        if isinstance(item, ChainItem) and item.method == jump.target and signature(item.method, item.args) == wanted:
            return j
    return None


class Interpreter:
    """Executes chains against a capability table."""

    def __init__(self, table: CapabilityTable, options: Optional[ExecutionOptions] = None, scheduler=None):
        self.table = table
        self.options = options if options is not None else ExecutionOptions()
        self.scheduler = scheduler if scheduler is not None else LoopScheduler()

    def run(self, chain, initial: Any = None):
        """Runs `chain` from `initial`; returns the value or a coroutine resolving to it."""
        if not isinstance(chain, Chain):
            chain = decode_items(chain)
        return self._run_sync(chain, initial, 0)

    # --- Stepping ---

    def _next_call(self, chain: Chain, cursor: int) -> Tuple[Optional[int], int, bool]:
        """Decides which call runs for the item at `cursor`.

        Returns (index of the call to run or None, cursor after it, jumped).
        A taken jump runs the matched call and then continues after whichever
        of the jump and the call comes later in the chain.
        """
        item = chain[cursor]
        if isinstance(item, ChainItem):
            return cursor, cursor + 1, False
        target = find_jump_target(chain, cursor)
        if target is None:
            logger.warning("unmatched jump to %s at item %d; continuing", item.target, cursor)
            return None, cursor + 1, False
        logger.debug("jump at item %d resumes at item %d", cursor, target)
        return target, max(cursor, target) + 1, True

    def _materialize(self, arg: Any) -> Any:
        # Nested chains reach the operation as navigators it can run
        from fluent.fluent_navigator import Navigator

        match arg:
            case Chain():
                return Navigator(self.table, arg, (), self.options, self.scheduler)
            case list() | tuple():
                return [self._materialize(a) for a in arg]
            case collections.abc.Mapping():
                return {k: self._materialize(v) for k, v in arg.items()}
        return arg

    def _invoke(self, item: ChainItem, value: Any):
        operation = self.table.resolve(item.method)
        args = [self._materialize(a) for a in item.args]
        logger.debug("call %s", item.method)
        return as_outcome(operation(value, *args))

    @staticmethod
    def _apply(outcome: Immediate, value: Any) -> Any:
        # A call that returns nothing leaves the value as it was
        return value if outcome.value is None else outcome.value

    # --- Drivers ---

    def _run_sync(self, chain: Chain, value: Any, cursor: int):
        while cursor < len(chain):
            index, after, jumped = self._next_call(chain, cursor)
            if index is None:
                cursor = after
                continue
            if jumped and not self.options.blocking:
                logger.debug("non-blocking jump at item %d; switching to async driver", cursor)
                return self._run_async(chain, value, cursor)
            match self._invoke(chain[index], value):
                case Deferred() as pending:
                    logger.debug("item %d is pending; switching to async driver", index)
                    return self._run_async(chain, value, after, pending)
                case Immediate() as outcome:
                    value = self._apply(outcome, value)
            cursor = after
        return value

    async def _run_async(self, chain: Chain, value: Any, cursor: int, pending: Optional[Deferred] = None):
        if pending is not None:
            value = await self._settle(pending, value)
        while cursor < len(chain):
            index, after, jumped = self._next_call(chain, cursor)
            if index is None:
                cursor = after
                continue
            if jumped and not self.options.blocking:
                await self._yield_to_scheduler()
            value = await self._settle(self._invoke(chain[index], value), value)
            cursor = after
        return value

    async def _settle(self, outcome, value: Any) -> Any:
        while isinstance(outcome, Deferred):
            outcome = as_outcome(await outcome.awaitable)
        return self._apply(outcome, value)

    async def _yield_to_scheduler(self):
        loop = asyncio.get_running_loop()
        waiter = loop.create_future()

        def _resume():
            if not waiter.done():
                waiter.set_result(None)

        self.scheduler.call_soon(_resume)
        await waiter


def run(table, chain, initial: Any = None, options: Optional[ExecutionOptions] = None, scheduler=None):
    """Runs `chain` against `table` (a mapping or CapabilityTable)."""
    if not isinstance(table, CapabilityTable):
        table = CapabilityTable(table)
    return Interpreter(table, options, scheduler).run(chain, initial)
