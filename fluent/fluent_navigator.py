"""
The Navigator: an immutable builder that records calls against a table.

    nav = fluent(table, context)
    nav.math.add(2).double().chain
    # Chain([ChainItem('math.add', (2,)), ChainItem('double', ())])

Navigating into a namespace or calling an operation never executes
anything; it returns a new Navigator whose chain is one item longer.
"""

from typing import Any, Optional, Tuple

from fluent.fluent_datatypes import (
    Chain, ChainItem, JumpItem, ExecutionOptions, InvalidGoto, MethodNotFound
)
from fluent.fluent_table import CapabilityTable
from fluent.fluent_codec import encode, normalize_arg
from fluent.fluent_printer import Printer


class OperationRef:
    """A table operation reached through navigation, waiting for its arguments."""
    __slots__ = ("navigator", "path")

    def __init__(self, navigator: 'Navigator', path: str):
        self.navigator = navigator
        self.path = path

    def __call__(self, *args) -> 'Navigator':
        item = ChainItem(self.path, [normalize_arg(a) for a in args])
        return self.navigator._append(item)

    def __repr__(self) -> str:
        return f"<OperationRef {self.path}>"


class Navigator:
    """A callable view over a capability table that builds a Chain.

    Members reserved by the navigator itself (`chain`, `run`, `goto`, ...)
    shadow table keys of the same name; those keys stay reachable through
    `nav['name']`, `into()` and `call()`.
    """
    __slots__ = ("_table", "_chain", "_namespace", "_options", "_scheduler")

    def __init__(self, table: CapabilityTable, chain: Optional[Chain] = None,
                 namespace: Tuple[str, ...] = (), options: Optional[ExecutionOptions] = None,
                 scheduler=None):
        self._table = table
        self._chain = chain if chain is not None else Chain()
        self._namespace = tuple(namespace)
        self._options = options if options is not None else ExecutionOptions()
        self._scheduler = scheduler

    # --- State ---

    @property
    def chain(self) -> Chain:
        return self._chain

    @property
    def table(self) -> CapabilityTable:
        return self._table

    @property
    def context(self) -> Any:
        return self._table.context

    @property
    def options(self) -> ExecutionOptions:
        return self._options

    @property
    def scheduler(self):
        return self._scheduler

    @property
    def path(self) -> str:
        """Dotted path of the namespace the navigator is positioned in."""
        return ".".join(self._namespace)

    def _derive(self, chain: Chain, namespace: Tuple[str, ...]) -> 'Navigator':
        return Navigator(self._table, chain, namespace, self._options, self._scheduler)

    def _append(self, item) -> 'Navigator':
        # After a call, navigation starts over from the root
        return self._derive(self._chain.extend(item), ())

    # --- Navigation ---

    def __getitem__(self, name: str):
        """Returns a Navigator for a namespace key or an OperationRef for an operation key."""
        path, is_namespace = self._table.lookup(self._namespace, name)
        if is_namespace:
            return self._derive(self._chain, path)
        return OperationRef(self, ".".join(path))

    def __getattr__(self, name: str):
        if name.startswith("_"):
            raise AttributeError(name)
        return self[name]

    def into(self, name: str) -> 'Navigator':
        """Enters a namespace. The chain is unchanged."""
        member = self
        for segment in name.split("."):
            member = member[segment]
            if not isinstance(member, Navigator):
                raise MethodNotFound(name, "operation, not a namespace")
        return member

    def call(self, name: str, *args) -> 'Navigator':
        """Appends a call to the operation `name` (dotted paths allowed)."""
        *namespaces, last = name.split(".")
        member = self.into(".".join(namespaces)) if namespaces else self
        ref = member[last]
        if not isinstance(ref, OperationRef):
            raise MethodNotFound(name, "namespace, not an operation")
        return ref(*args)

    def goto(self, other) -> 'Navigator':
        """Appends a jump to the first call of `other` (a Navigator or Chain)."""
        chain = normalize_arg(other)
        if not isinstance(chain, Chain):
            raise InvalidGoto(f"goto() needs a navigator or chain, not {type(other).__name__}")
        if not chain:
            raise InvalidGoto("goto() needs a non-empty chain")
        first = chain[0]
        if not isinstance(first, ChainItem):
            raise InvalidGoto("goto() needs a chain that starts with a call")
        return self._append(JumpItem(first.method, first.args))

    # --- Execution & Serialization ---

    def run(self, initial: Any = None):
        """Runs the chain. Returns the final value, or an awaitable when any step is pending."""
        from fluent.fluent_interpreter import Interpreter
        return Interpreter(self._table, self._options, self._scheduler).run(self._chain, initial)

    def to_json(self) -> list:
        return encode(self._chain)

    def __str__(self) -> str:
        return Printer().pformat(self._chain)

    def __repr__(self) -> str:
        where = f" at {self.path}" if self._namespace else ""
        return f"<Navigator{where} {self}>"

    def __dir__(self):
        reserved = ["chain", "table", "context", "options", "scheduler", "path",
                    "into", "call", "goto", "run", "to_json"]
        return reserved + [k for k in self._table.keys_at(self._namespace) if k not in reserved]
