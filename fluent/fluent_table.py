"""
Capability tables: the registry of operations a chain is allowed to call.

A capability table starts life as a nested mapping of names to callables
(operations) and further mappings (namespaces). Building a CapabilityTable
binds every operation to a context and flattens the tree into an explicit
registry keyed by dotted path, so a bad path is caught as soon as somebody
tries to navigate to it.
"""

import collections.abc
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Tuple

from fluent.fluent_datatypes import Chain, ChainItem, MethodNotFound

logger = logging.getLogger(__name__)

Path = Tuple[str, ...]


# ===================================================================
# Context Binding
# ===================================================================

def capability(func):
    """A decorator to mark host-object methods as chain operations."""
    func._is_capability = True
    return func


def host_members(host: Any) -> Dict[str, Any]:
    """Collects the @capability methods of a host object into a table mapping."""
    members = {}
    for name, member in inspect.getmembers(host):
        if not callable(member):
            continue
        # Decorator may mark the bound method or the underlying function
        is_api = getattr(member, "_is_capability", False)
        if not is_api:
            func = getattr(member, "__func__", None)
            if func is not None:
                is_api = getattr(func, "_is_capability", False)
        if is_api:
            members[name] = member
    return members


def _accepts_context(func) -> bool:
    """True when `func` declares a parameter that can take `context=`."""
    needs = getattr(func, "_fluent_accepts_context", None)
    if needs is not None:
        return needs
    try:
        sig = inspect.signature(func)
    except (TypeError, ValueError):
        return False
    param = sig.parameters.get("context")
    needs = param is not None and param.kind in (
        inspect.Parameter.POSITIONAL_OR_KEYWORD,
        inspect.Parameter.KEYWORD_ONLY,
    )
    try:
        setattr(func, "_fluent_accepts_context", needs)
    except (AttributeError, TypeError):
        # bound methods and builtins do not take attributes
        pass
    return needs


class BoundOperation:
    """An operation with a context attached as its implicit receiver."""
    __slots__ = ("func", "context", "_wants_context")

    def __init__(self, func: Callable, context: Any):
        self.func = func
        self.context = context
        self._wants_context = _accepts_context(func)

    def __call__(self, *args, **kwargs):
        if self._wants_context:
            kwargs.setdefault("context", self.context)
        return self.func(*args, **kwargs)

    def __repr__(self) -> str:
        name = getattr(self.func, "__qualname__", None) or repr(self.func)
        return f"<BoundOperation {name}>"


def bind(table: collections.abc.Mapping, context: Any) -> Dict[str, Any]:
    """Returns a copy of `table` whose operations are bound to `context`.

    Operations are wrapped, nested mappings are bound recursively, and any
    other value is copied across unchanged.
    """
    bound: Dict[str, Any] = {}
    for key, member in table.items():
        if isinstance(member, BoundOperation):
            bound[key] = BoundOperation(member.func, context)
        elif isinstance(member, collections.abc.Mapping):
            bound[key] = bind(member, context)
        elif callable(member):
            bound[key] = BoundOperation(member, context)
        else:
            bound[key] = member
    return bound


# ===================================================================
# Registry
# ===================================================================

@dataclass(frozen=True)
class Operation:
    """A resolved table entry: the dotted path and the bound callable."""
    path: str
    func: Callable

    def __call__(self, value, *args):
        return self.func(value, *args)


class CapabilityTable(collections.abc.Mapping):
    """A bound, validated, read-only view of a nested operation mapping."""

    def __init__(self, members: Any, context: Any = None):
        if isinstance(members, CapabilityTable):
            members = members.source
        elif not isinstance(members, collections.abc.Mapping):
            members = host_members(members)
        self.source = members
        self.context = context
        self.members = bind(members, context)
        self.operations: Dict[str, Operation] = {}
        self.namespaces: Dict[str, Dict[str, Any]] = {"": self.members}
        self._index(self.members, ())
        logger.debug("capability table: %d operations, %d namespaces",
                     len(self.operations), len(self.namespaces) - 1)

    def _index(self, node: collections.abc.Mapping, prefix: Path):
        for key, member in node.items():
            if not isinstance(key, str):
                raise TypeError(f"Capability table keys must be str, not {type(key).__name__}")
            if not key or "." in key:
                raise ValueError(f"Invalid capability table key: {key!r}")
            path = prefix + (key,)
            dotted = ".".join(path)
            if isinstance(member, collections.abc.Mapping):
                self.namespaces[dotted] = member
                self._index(member, path)
            elif callable(member):
                self.operations[dotted] = Operation(dotted, member)

    # --- Mapping over the bound root namespace ---

    def __getitem__(self, key):
        return self.members[key]

    def __iter__(self):
        return iter(self.members)

    def __len__(self) -> int:
        return len(self.members)

    # --- Lookup ---

    def is_namespace(self, path: Path) -> bool:
        return ".".join(path) in self.namespaces

    def is_operation(self, path: Path) -> bool:
        return ".".join(path) in self.operations

    def lookup(self, namespace: Path, key: str) -> Tuple[Path, bool]:
        """Finds `key` from `namespace`, falling back to the root.

        Returns the full path and whether it names a namespace. The current
        namespace wins over the root when both hold the key.
        """
        candidates = [namespace + (key,)]
        if namespace:
            candidates.append((key,))
        for path in candidates:
            if self.is_operation(path):
                return path, False
            if self.is_namespace(path):
                return path, True
        raise MethodNotFound(".".join(candidates[0]))

    def keys_at(self, namespace: Path) -> list:
        """Names reachable from `namespace`: its own keys plus the root's."""
        keys = list(self.namespaces.get(".".join(namespace), {}))
        for key in self.members:
            if key not in keys:
                keys.append(key)
        return keys

    def resolve(self, method: str) -> Operation:
        """Returns the operation registered under a dotted method path."""
        operation = self.operations.get(method)
        if operation is None:
            detail = "namespace, not an operation" if method in self.namespaces else None
            raise MethodNotFound(method, detail)
        return operation

    def validate(self, chain: Chain) -> None:
        """Raises MethodNotFound for the first call in `chain` that cannot resolve."""
        for item in chain:
            if isinstance(item, ChainItem):
                self.resolve(item.method)
                for arg in item.args:
                    if isinstance(arg, Chain):
                        self.validate(arg)

    def rebind(self, context: Any) -> 'CapabilityTable':
        """Returns a table over the same operations bound to a different context."""
        return CapabilityTable(self.source, context)

    def __repr__(self) -> str:
        return f"<CapabilityTable operations={sorted(self.operations)!r}>"
