# fluent_runtime.py

import inspect
import json
import logging
from dataclasses import dataclass
from typing import Any, Literal, Optional

from fluent.fluent_datatypes import (
    Chain, ChainItem, JumpItem, ChainError, ExecutionOptions,
    MethodNotFound, InvalidGoto, ExpressionEvaluationError
)
from fluent.fluent_table import CapabilityTable
from fluent.fluent_codec import decode, decode_item
from fluent.fluent_navigator import Navigator
from fluent.fluent_serialize import loads

logger = logging.getLogger(__name__)


# ===================================================================
# 1. Entry Point
# ===================================================================

def _as_table(table: Any, context: Any) -> CapabilityTable:
    if isinstance(table, CapabilityTable):
        if context is None or context is table.context:
            return table
        return table.rebind(context)
    return CapabilityTable(table, context)


def fluent(table: Any, context: Any = None, chain: Any = None, *,
           options: Optional[ExecutionOptions] = None, scheduler=None) -> Navigator:
    """Creates a Navigator over `table` with operations bound to `context`.

    `chain` may be omitted, a Chain (or encoded list), or a textual expression
    like "math.add(2).double()". Execution options come from `options`, or
    else from the context's reserved `fluent` field.
    """
    caps = _as_table(table, context)
    if options is None:
        options = ExecutionOptions.from_context(caps.context)
    parsed = decode(caps, caps.context, chain)
    return Navigator(caps, parsed, (), options, scheduler)


def to_chain(source: Any, navigator: Navigator) -> Navigator:
    """Replays a serialized chain through `navigator`, one navigation step at a time.

    `source` is JSON/YAML text or an encoded list. Every method path is
    walked through the navigator, so unknown names fail here rather than
    when the chain runs.
    """
    raw = loads(source) if isinstance(source, (str, bytes, bytearray)) else source
    current = navigator
    for entry in raw:
        item = decode_item(entry)
        args = [_replay_arg(a, navigator) for a in item.args]
        if isinstance(item, JumpItem):
            current = current.goto(Chain([ChainItem(item.target, args)]))
            continue
        *namespaces, last = item.method.split(".")
        for segment in namespaces:
            current = current[segment]
            if not isinstance(current, Navigator):
                raise MethodNotFound(item.method, "operation, not a namespace")
        member = current[last]
        if isinstance(member, Navigator):
            raise MethodNotFound(item.method, "namespace, not an operation")
        current = member(*args)
    return current


def _replay_arg(arg: Any, navigator: Navigator) -> Any:
    # Sub-chains are replayed through a fresh root navigator
    root = Navigator(navigator.table, None, (), navigator.options, navigator.scheduler)
    match arg:
        case Chain():
            return to_chain([*arg], root).chain
        case list():
            return [_replay_arg(a, navigator) for a in arg]
        case dict():
            return {k: _replay_arg(v, navigator) for k, v in arg.items()}
    return arg


# ===================================================================
# 2. Chain Execution
# ===================================================================

@dataclass
class ExecutionResult:
    """The structured result of a chain execution."""
    status: Literal['success', 'error']
    value: Any = None
    error_message: Optional[str] = None
    error_kind: Optional[str] = None

    def format_error(self) -> str:
        if self.status != 'error':
            return ""
        return str(self.error_message or "Unknown error")


class ChainRunner:
    """Loads serialized chains and runs them against a capability table."""

    def __init__(self, table: Any, context: Any = None, *,
                 options: Optional[ExecutionOptions] = None, scheduler=None):
        self.table = _as_table(table, context)
        self.options = options
        self.scheduler = scheduler

    def load(self, source: Any) -> Navigator:
        """Builds a navigator from chain text (JSON, YAML or an expression) or data."""
        if isinstance(source, (bytes, bytearray)):
            source = source.decode('utf-8', errors='replace')
        if isinstance(source, str):
            try:
                source = loads(source)
            except ValueError:
                # Not serialized data; treat it as an expression
                pass
        return fluent(self.table, None, source, options=self.options, scheduler=self.scheduler)

    def _format_error(self, e: Exception) -> tuple[str, str]:
        match e:
            case MethodNotFound() as mnf:
                kind, msg = "MethodNotFound", mnf.path
            case InvalidGoto():
                kind, msg = "InvalidGoto", str(e)
            case ExpressionEvaluationError() as ee:
                kind, msg = "ExpressionEvaluationError", str(ee)
                if ee.source:
                    msg = f"{msg}\nIn expression: {ee.source}"
            case ChainError():
                kind, msg = "ChainError", str(e)
            case ValueError() | TypeError():
                kind, msg = type(e).__name__, str(e)
            case _:
                kind, msg = "OperationError", f"{type(e).__name__}: {e}"
        return kind, f"{kind}: {msg}"

    async def run_source(self, source: Any, initial: Any = None) -> ExecutionResult:
        """The main entry point to run a serialized chain. Never raises for chain errors."""
        try:
            navigator = self.load(source)
            logger.debug("running %d item chain", len(navigator.chain))
            result = navigator.run(initial)
            if inspect.isawaitable(result):
                result = await result
            return ExecutionResult(status='success', value=result)
        except Exception as e:
            logger.debug("chain failed", exc_info=True)
            kind, msg = self._format_error(e)
            return ExecutionResult(status='error', error_message=msg, error_kind=kind)


def dumps_result(result: ExecutionResult) -> str:
    """Renders a successful result value as JSON, falling back to repr."""
    try:
        return json.dumps(result.value, ensure_ascii=False, default=repr)
    except (TypeError, ValueError):
        return repr(result.value)
