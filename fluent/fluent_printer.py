"""
A printer that renders chains as call expressions.

    math.add(2).double().goto(math.add(2))

Arguments are written as JSON literals and nested chains are rendered
recursively, so the output reads back in through the expression decoder.
"""
import collections.abc
import json

from fluent.fluent_datatypes import Chain, ChainItem, JumpItem


class Printer:
    """Formats chains and chain arguments into expression strings."""

    def __init__(self):
        self._handlers = self._create_handlers()

    def pformat(self, obj) -> str:
        """Public entry point to format an object."""
        handler = self._get_handler(obj)
        return handler(obj)

    def _get_handler(self, obj):
        """Dispatcher to find the correct formatting method."""
        obj_type = type(obj)
        if obj_type in self._handlers:
            return self._handlers[obj_type]
        if isinstance(obj, Chain): return self._pformat_chain
        if isinstance(obj, collections.abc.Mapping): return self._pformat_dict
        if isinstance(obj, (list, tuple)): return self._pformat_list
        # Navigators and anything else holding a chain
        if isinstance(getattr(obj, "chain", None), Chain):
            return lambda o: self._pformat_chain(o.chain)
        return self._pformat_literal

    def _create_handlers(self):
        return {
            Chain: self._pformat_chain,
            ChainItem: self._pformat_call,
            JumpItem: self._pformat_jump,
            list: self._pformat_list,
            tuple: self._pformat_list,
            dict: self._pformat_dict,
        }

    def _pformat_literal(self, obj):
        try:
            return json.dumps(obj, ensure_ascii=False)
        except TypeError:
            return repr(obj)

    def _pformat_arg(self, arg):
        # An empty nested chain has no call syntax of its own
        if isinstance(arg, Chain) and not arg:
            return '{"chain": []}'
        return self.pformat(arg)

    def _pformat_args(self, args):
        return ", ".join(self._pformat_arg(a) for a in args)

    def _pformat_call(self, item):
        return f"{item.method}({self._pformat_args(item.args)})"

    def _pformat_jump(self, item):
        target = f"{item.target}({self._pformat_args(item.args)})"
        return f"goto({target})"

    def _pformat_chain(self, chain):
        return ".".join(self.pformat(item) for item in chain)

    def _pformat_list(self, obj):
        return f"[{self._pformat_args(obj)}]"

    def _pformat_dict(self, obj):
        fields = ", ".join(f"{json.dumps(str(k), ensure_ascii=False)}: {self._pformat_arg(v)}" for k, v in obj.items())
        return "{" + fields + "}"
