import asyncio
from types import SimpleNamespace

import pytest

from fluent import Chain, ChainItem, JumpItem, ExecutionOptions, Immediate, Deferred
from fluent.fluent_datatypes import as_outcome


def test_chain_rejects_foreign_items():
    with pytest.raises(TypeError):
        Chain([ChainItem("a"), ("b", ())])


def test_items_store_args_as_tuples():
    assert ChainItem("a", [1, 2]).args == (1, 2)
    assert JumpItem("a", [1]).args == (1,)


def test_extend_returns_a_new_chain():
    base = Chain([ChainItem("a")])
    longer = base.extend(ChainItem("b"), JumpItem("a"))
    assert len(base) == 1
    assert len(longer) == 3
    assert longer[1:] == Chain([ChainItem("b"), JumpItem("a")])
    assert isinstance(longer[1:], Chain)


def test_chain_equality_is_by_items():
    assert Chain([ChainItem("a", (1,))]) == Chain([ChainItem("a", (1,))])
    assert Chain([ChainItem("a", (1,))]) != Chain([JumpItem("a", (1,))])
    assert Chain() != []
    assert not Chain()


def test_chains_are_not_hashable():
    with pytest.raises(TypeError):
        hash(Chain())


@pytest.mark.parametrize(
    "context,blocking",
    [
        (None, False),
        ({}, False),
        ({"fluent": None}, False),
        ({"fluent": {"blocking": True}}, True),
        ({"fluent": ExecutionOptions(blocking=True)}, True),
        (SimpleNamespace(fluent=SimpleNamespace(blocking=True)), True),
        (SimpleNamespace(other=1), False),
        ("plain string", False),
    ],
)
def test_options_from_context(context, blocking):
    assert ExecutionOptions.from_context(context).blocking is blocking


def test_as_outcome_classifies_results():
    assert as_outcome(3) == Immediate(3)
    assert as_outcome(None) == Immediate(None)
    explicit = Deferred(None)
    assert as_outcome(explicit) is explicit

    async def later():
        return 1

    coro = later()
    outcome = as_outcome(coro)
    assert isinstance(outcome, Deferred)
    assert asyncio.run(outcome.awaitable) == 1


@pytest.mark.parametrize(
    "context",
    [
        {"fluent": {"blocking": "false"}},
        {"fluent": {"blocking": 1}},
        SimpleNamespace(fluent=SimpleNamespace(blocking=None)),
    ],
)
def test_options_reject_non_bool_blocking(context):
    with pytest.raises(TypeError):
        ExecutionOptions.from_context(context)
