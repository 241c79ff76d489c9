"""
Conversion between chains and their external forms.

Two external forms are supported:
  - a JSON-compatible list of `{"method": ..., "args": [...]}` and
    `{"goto": ..., "args": [...]}` objects (lossless, both directions);
  - a textual expression such as `math.add(2).double()`, evaluated in a
    sandbox that only exposes a navigator over the capability table
    (one way, expression to chain).
"""

import ast
import collections.abc
import json
from typing import Any, List

from fluent.fluent_datatypes import (
    Chain, ChainItem, JumpItem, ExpressionEvaluationError, MethodNotFound
)
from fluent.fluent_table import CapabilityTable


# --------------------------
# Normalization
# --------------------------

def _is_item_list(value) -> bool:
    return bool(value) and all(isinstance(v, (ChainItem, JumpItem)) for v in value)


def normalize_arg(arg: Any) -> Any:
    """Prepares a call argument for storage in a chain.

    Navigators and chains collapse to their Chain, sequences of items become
    an embedded Chain, other sequences and mappings are normalized element
    by element, and everything else passes through.
    """
    # local import to avoid a cycle: the navigator normalizes its own args
    from fluent.fluent_navigator import Navigator

    match arg:
        case None | bool() | int() | float() | str():
            return arg
        case Chain():
            return arg
        case Navigator():
            return arg.chain
        case ChainItem() | JumpItem():
            return Chain([arg])
        case list() | tuple():
            if _is_item_list(arg):
                return Chain(arg)
            return [normalize_arg(a) for a in arg]
        case collections.abc.Mapping():
            return {k: normalize_arg(v) for k, v in arg.items()}
    return arg


# --------------------------
# Encoding
# --------------------------

def _encode_nested(chain: Chain) -> Any:
    # An empty list would read back as plain data
    return encode(chain) if chain else {"chain": []}


def encode_value(value: Any) -> Any:
    match value:
        case Chain():
            return _encode_nested(value)
        case ChainItem() | JumpItem():
            return encode(Chain([value]))
        case list() | tuple():
            return [encode_value(v) for v in value]
        case collections.abc.Mapping():
            return {k: encode_value(v) for k, v in value.items()}
    chain = getattr(value, "chain", None)
    if isinstance(chain, Chain):
        return _encode_nested(chain)
    return value


def encode_item(item) -> dict:
    match item:
        case ChainItem(method=method, args=args):
            return {"method": method, "args": [encode_value(a) for a in args]}
        case JumpItem(target=target, args=args):
            return {"goto": target, "args": [encode_value(a) for a in args]}
    raise TypeError(f"Cannot encode chain item of type {type(item).__name__}")


def encode(chain) -> List[dict]:
    """Serializes a chain into a JSON-compatible list."""
    return [encode_item(item) for item in chain]


def signature(method: str, args) -> str:
    """A canonical JSON text for a call signature, used to match jumps to calls."""
    encoded = [method, [encode_value(a) for a in args]]
    return json.dumps(encoded, sort_keys=True, separators=(",", ":"), default=repr)


# --------------------------
# Decoding
# --------------------------

def _is_encoded_item(value) -> bool:
    if not isinstance(value, collections.abc.Mapping):
        return False
    if isinstance(value.get("method"), str):
        head = "method"
    elif isinstance(value.get("goto"), str):
        head = "goto"
    else:
        return False
    return set(value) <= {head, "args"}


def _decode_value(value: Any) -> Any:
    match value:
        case Chain():
            return decode_items(value)
        case list() | tuple():
            if value and all(_is_encoded_item(v) or isinstance(v, (ChainItem, JumpItem)) for v in value):
                return decode_items(value)
            return [_decode_value(v) for v in value]
        case collections.abc.Mapping():
            if set(value) == {"chain"} and isinstance(value["chain"], (list, tuple, Chain)):
                return decode_items(value["chain"])
            return {k: _decode_value(v) for k, v in value.items()}
    return normalize_arg(value)


def decode_item(raw) -> ChainItem | JumpItem:
    match raw:
        case ChainItem(method=method, args=args):
            return ChainItem(method, [_decode_value(a) for a in args])
        case JumpItem(target=target, args=args):
            return JumpItem(target, [_decode_value(a) for a in args])
    if not _is_encoded_item(raw):
        raise ValueError(f"Not a chain item: {raw!r}")
    args = raw.get("args") or []
    if not isinstance(args, (list, tuple)):
        raise ValueError(f"Chain item args must be a list: {raw!r}")
    decoded = [_decode_value(a) for a in args]
    if "method" in raw:
        return ChainItem(raw["method"], decoded)
    return JumpItem(raw["goto"], decoded)


def decode_items(items) -> Chain:
    """Rebuilds a Chain from items or encoded item dicts, re-normalizing args."""
    return Chain(decode_item(raw) for raw in items)


def decode(table: Any, context: Any = None, source: Any = None) -> Chain:
    """Builds a Chain from `source`.

    `source` may be None (empty chain), a Chain or list of items/encoded
    items, or a textual expression evaluated against `table`.
    """
    if source is None:
        return Chain()
    if isinstance(source, str):
        return evaluate_expression(table, context, source)
    chain = getattr(source, "chain", None)
    if isinstance(chain, Chain):
        return decode_items(chain)
    if isinstance(source, collections.abc.Mapping) and "chain" in source:
        return decode_items(source["chain"])
    return decode_items(source)


# --------------------------
# Textual Expressions
# --------------------------

# JSON spellings of the literals, so printed chains read back in.
_LITERAL_NAMES = {"true": True, "false": False, "null": None}


class _ExpressionEvaluator:
    """Evaluates a restricted Python expression against a root navigator.

    Only names, attribute access, calls, literals, list/tuple/dict displays
    and unary signs are allowed. Names resolve through the navigator, so the
    expression can reach the capability table and nothing else.
    """

    def __init__(self, root, source: str):
        self.root = root
        self.source = source

    def fail(self, message: str, node=None):
        if node is not None and hasattr(node, "col_offset"):
            message = f"{message} (line {node.lineno}, col {node.col_offset + 1})"
        raise ExpressionEvaluationError(message, self.source)

    def eval(self, node):
        from fluent.fluent_navigator import Navigator, OperationRef

        match node:
            case ast.Expression(body=body):
                return self.eval(body)
            case ast.Constant(value=value):
                if value is not None and not isinstance(value, (str, int, float, bool)):
                    self.fail(f"unsupported literal {value!r}", node)
                return value
            case ast.Name(id=name):
                if name in _LITERAL_NAMES:
                    return _LITERAL_NAMES[name]
                if name == "goto":
                    return self.root.goto
                return self.member(self.root, name, node)
            case ast.Attribute(value=inner, attr=attr):
                target = self.eval(inner)
                if not isinstance(target, Navigator):
                    self.fail(f"cannot access .{attr} here", node)
                if attr == "goto":
                    return target.goto
                return self.member(target, attr, node)
            case ast.Call(func=func, args=args, keywords=keywords):
                if keywords:
                    self.fail("keyword arguments are not supported", node)
                target = self.eval(func)
                is_goto = getattr(target, "__func__", None) is Navigator.goto
                if not isinstance(target, OperationRef) and not is_goto:
                    self.fail(f"{ast.unparse(func)} is not an operation", node)
                values = []
                for arg in args:
                    if isinstance(arg, ast.Starred):
                        self.fail("starred arguments are not supported", arg)
                    values.append(self.eval(arg))
                try:
                    return target(*values)
                except ExpressionEvaluationError:
                    raise
                except (ValueError, TypeError) as e:
                    raise ExpressionEvaluationError(f"{type(e).__name__}: {e}", self.source) from e
            case ast.List(elts=elts) | ast.Tuple(elts=elts):
                return [self.eval(e) for e in elts]
            case ast.Dict(keys=keys, values=values):
                out = {}
                for key_node, value_node in zip(keys, values):
                    if key_node is None:
                        self.fail("dict unpacking is not supported", value_node)
                    key = self.eval(key_node)
                    if not isinstance(key, str):
                        self.fail("object keys must be strings", key_node)
                    out[key] = self.eval(value_node)
                if set(out) == {"chain"} and isinstance(out["chain"], list) \
                        and all(_is_encoded_item(v) for v in out["chain"]):
                    return decode_items(out["chain"])
                return out
            case ast.UnaryOp(op=ast.USub() | ast.UAdd() as op, operand=operand):
                value = self.eval(operand)
                if isinstance(value, bool) or not isinstance(value, (int, float)):
                    self.fail("unary sign needs a number", node)
                return -value if isinstance(op, ast.USub) else value
        self.fail(f"unsupported syntax: {type(node).__name__}", node)

    def member(self, navigator, name: str, node):
        if name.startswith("_"):
            self.fail(f"name {name!r} is not allowed", node)
        try:
            return navigator[name]
        except MethodNotFound as e:
            raise ExpressionEvaluationError(f"unknown name {name!r}: {e}", self.source) from e


def evaluate_expression(table: Any, context: Any, source: str) -> Chain:
    """Evaluates a textual chain expression and returns the chain it builds."""
    from fluent.fluent_navigator import Navigator

    if not isinstance(table, CapabilityTable):
        table = CapabilityTable(table, context)
    text = source.strip()
    if not text:
        return Chain()
    try:
        tree = ast.parse(text, mode="eval")
    except SyntaxError as e:
        raise ExpressionEvaluationError(f"SyntaxError: {e.msg} (line {e.lineno}, col {e.offset})", source) from e

    result = _ExpressionEvaluator(Navigator(table), source).eval(tree)
    if isinstance(result, Chain):
        return result
    if isinstance(result, Navigator):
        return result.chain
    if isinstance(result, (list, dict)):
        try:
            return decode(table, context, result)
        except (ValueError, TypeError) as e:
            raise ExpressionEvaluationError(f"not a chain: {e}", source) from e
    raise ExpressionEvaluationError(f"expression did not build a chain: {result!r}", source)
