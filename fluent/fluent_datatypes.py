"""
Defines the core data types for the fluent chain engine.

A chain is plain data: an ordered, immutable sequence of call items and
jump items. Nothing in this module knows about a capability table, so
chains can be stored, compared and shipped around freely.
"""

import collections.abc
import inspect
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Tuple, Union


# =================================================================
# Errors
# =================================================================

class ChainError(Exception):
    """Base class for errors raised by the chain engine."""


class MethodNotFound(ChainError, AttributeError):
    """A method path does not resolve to an operation in the capability table."""
    def __init__(self, path: str, detail: Optional[str] = None):
        msg = f"method not found: {path}"
        if detail:
            msg = f"{msg} ({detail})"
        super().__init__(msg)
        self.path = path


class InvalidGoto(ChainError, ValueError):
    """goto() was given a chain that is empty or does not start with a call."""


class ExpressionEvaluationError(ChainError, ValueError):
    """A textual chain expression failed to parse or evaluate."""
    def __init__(self, message: str, source: Optional[str] = None):
        super().__init__(message)
        self.source = source


# =================================================================
# Chain Items
# =================================================================

@dataclass(frozen=True)
class ChainItem:
    """One invocation step: a dotted method path and its arguments."""
    method: str
    args: Tuple[Any, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "args", tuple(self.args))


@dataclass(frozen=True)
class JumpItem:
    """A control transfer: resume at the call matching `target(*args)`."""
    target: str
    args: Tuple[Any, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "args", tuple(self.args))


Item = Union[ChainItem, JumpItem]


class Chain(collections.abc.Sequence):
    """An immutable, ordered sequence of ChainItem and JumpItem values.

    Extending a chain always produces a new chain; the original is never
    touched. Chains carry no binding to a table and no interpretation
    state, so the same chain can be run any number of times.
    """
    __slots__ = ("_items",)

    def __init__(self, items: Iterable[Item] = ()):
        items = tuple(items)
        for item in items:
            if not isinstance(item, (ChainItem, JumpItem)):
                raise TypeError(f"Chain items must be ChainItem or JumpItem, not {type(item).__name__}")
        self._items = items

    def __getitem__(self, index):
        if isinstance(index, slice):
            return Chain(self._items[index])
        return self._items[index]

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(self._items)

    def __eq__(self, other):
        if not isinstance(other, Chain):
            return NotImplemented
        return self._items == other._items

    __hash__ = None

    def extend(self, *items: Item) -> 'Chain':
        """Returns a new chain with `items` appended."""
        return Chain(self._items + items)

    @property
    def items(self) -> Tuple[Item, ...]:
        return self._items

    def __repr__(self) -> str:
        return f"Chain({list(self._items)!r})"


# =================================================================
# Execution Options
# =================================================================

# Reserved context field that carries ExecutionOptions.
OPTIONS_FIELD = "fluent"


@dataclass(frozen=True)
class ExecutionOptions:
    """Interpreter options.

    blocking: resume from a jump target immediately instead of yielding
    to the scheduler first.
    """
    blocking: bool = False

    @classmethod
    def from_context(cls, context: Any) -> 'ExecutionOptions':
        """Reads the reserved `fluent` field from a context mapping or object."""
        if context is None:
            return cls()
        if isinstance(context, collections.abc.Mapping):
            raw = context.get(OPTIONS_FIELD)
        else:
            raw = getattr(context, OPTIONS_FIELD, None)
        match raw:
            case None:
                return cls()
            case ExecutionOptions():
                return raw
            case collections.abc.Mapping():
                blocking = raw.get("blocking", False)
            case _:
                blocking = getattr(raw, "blocking", False)
        if not isinstance(blocking, bool):
            raise TypeError(f"{OPTIONS_FIELD}.blocking must be a bool, not {type(blocking).__name__}")
        return cls(blocking=blocking)


# =================================================================
# Operation Outcomes
# =================================================================

@dataclass(frozen=True)
class Immediate:
    """A result that is available now. None means 'leave the value unchanged'."""
    value: Any = None


@dataclass(frozen=True)
class Deferred:
    """A result that will be available once `awaitable` completes."""
    awaitable: Any


Outcome = Union[Immediate, Deferred]


def as_outcome(result: Any) -> Outcome:
    """Classifies a raw operation result as Immediate or Deferred."""
    if isinstance(result, (Immediate, Deferred)):
        return result
    if inspect.isawaitable(result):
        return Deferred(result)
    return Immediate(result)
