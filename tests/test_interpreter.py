import asyncio
import inspect

import pytest

from fluent import (
    fluent, decode, run, Chain, ChainItem, JumpItem, Immediate, Deferred,
    ExecutionOptions, MethodNotFound, TaskQueue
)


def make_visit_table(visits):
    def op(data, name):
        visits.append(name)
        return data + [name]
    return {"op": op}


BLOCKING = {"fluent": {"blocking": True}}


def test_void_calls_pass_the_value_through():
    def set_x(data, value):
        data["x"] = value

    def noop(data):
        pass

    def get_x(data):
        return data["x"]

    nav = fluent({"setX": set_x, "noop": noop, "getX": get_x})
    assert nav.setX(5).noop().getX().run({}) == 5


def test_results_thread_through_nested_namespaces():
    table = {
        "math": {"add": lambda d, n: d + n, "mul": lambda d, n: d * n},
        "neg": lambda d: -d,
    }
    nav = fluent(table)
    assert nav.math.add(2).math.mul(10).neg().run(1) == -30


def test_empty_chain_returns_initial_value():
    assert fluent({"x": lambda d: d}).run("same") == "same"


def test_backward_jump_reruns_target_then_continues_after_jump():
    visits = []
    nav = fluent(make_visit_table(visits), BLOCKING)
    chained = nav.op("a").op("b").goto(nav.op("a")).op("c")
    result = chained.run([])
    assert visits == ["a", "b", "a", "c"]
    assert result == ["a", "b", "a", "c"]
    assert visits.count("b") == 1


def test_forward_jump_skips_items_in_between():
    visits = []
    nav = fluent(make_visit_table(visits), BLOCKING)
    chained = nav.op("a").goto(nav.op("d")).op("b").op("c").op("d").op("e")
    assert chained.run([]) == ["a", "d", "e"]


def test_jump_matches_args_not_just_method():
    visits = []
    nav = fluent(make_visit_table(visits), BLOCKING)
    chained = nav.op("a").op("b").goto(nav.op("b")).op("c")
    chained.run([])
    assert visits == ["a", "b", "b", "c"]


def test_unmatched_jump_is_a_noop(caplog):
    visits = []
    nav = fluent(make_visit_table(visits), BLOCKING)
    chained = nav.op("a").goto(nav.op("zzz")).op("b")
    with caplog.at_level("WARNING", logger="fluent.fluent_interpreter"):
        assert chained.run([]) == ["a", "b"]
    assert "unmatched jump" in caplog.text


@pytest.mark.asyncio
async def test_non_blocking_jump_returns_pending_value():
    visits = []
    nav = fluent(make_visit_table(visits))
    result = nav.op("a").op("b").goto(nav.op("a")).op("c").run([])
    assert inspect.isawaitable(result)
    # Everything before the jump ran synchronously
    assert visits == ["a", "b"]
    assert await result == ["a", "b", "a", "c"]
    assert visits == ["a", "b", "a", "c"]


@pytest.mark.asyncio
async def test_task_queue_holds_jump_until_stepped():
    visits = []
    queue = TaskQueue()
    nav = fluent(make_visit_table(visits), scheduler=queue)
    pending = nav.op("a").goto(nav.op("c")).op("b").op("c").run([])
    task = asyncio.ensure_future(pending)
    for _ in range(3):
        await asyncio.sleep(0)
    assert visits == ["a"]
    assert queue.pending == 1
    assert not task.done()

    assert queue.step() is True
    assert await task == ["a", "c"]
    assert queue.pending == 0


@pytest.mark.asyncio
async def test_pending_step_delays_the_next_step():
    events = []
    gate = asyncio.Event()

    async def slow(data):
        events.append("slow-start")
        await gate.wait()
        events.append("slow-end")
        return data + 1

    def fast(data):
        events.append("fast")
        return data * 10

    result = fluent({"slow": slow, "fast": fast}).slow().fast().run(1)
    assert inspect.isawaitable(result)
    task = asyncio.ensure_future(result)
    await asyncio.sleep(0)
    assert events == ["slow-start"]

    gate.set()
    assert await task == 20
    assert events == ["slow-start", "slow-end", "fast"]


@pytest.mark.asyncio
async def test_async_driver_awaits_every_later_pending_step():
    async def add(data, n):
        await asyncio.sleep(0)
        return data + n

    def double(data):
        return data * 2

    nav = fluent({"add": add, "double": double})
    assert await nav.add(1).double().add(3).double().run(0) == 10


@pytest.mark.asyncio
async def test_pending_void_call_keeps_value():
    async def touch(data):
        data["touched"] = True

    result = fluent({"touch": touch}).touch().run({"n": 1})
    assert await result == {"n": 1, "touched": True}


def test_unknown_method_aborts_the_chain():
    calls = []
    table = {"record": lambda data, n: calls.append(n)}
    chain = decode(table, None, [
        {"method": "record", "args": [1]},
        {"method": "missing"},
        {"method": "record", "args": [2]},
    ])
    nav = fluent(table, chain=chain)
    with pytest.raises(MethodNotFound) as exc:
        nav.run(None)
    assert exc.value.path == "missing"
    assert calls == [1]


@pytest.mark.asyncio
async def test_unknown_method_after_pending_step_rejects_the_pending_value():
    async def later(data):
        return data + 1

    table = {"later": later}
    nav = fluent(table, chain=[{"method": "later"}, {"method": "gone.away"}])
    pending = nav.run(1)
    assert inspect.isawaitable(pending)
    with pytest.raises(MethodNotFound):
        await pending


def test_operation_errors_propagate_and_stop_the_chain():
    calls = []

    def boom(data):
        raise ZeroDivisionError("nope")

    nav = fluent({"boom": boom, "after": lambda d: calls.append(d)})
    with pytest.raises(ZeroDivisionError):
        nav.boom().after().run(0)
    assert calls == []


def test_nested_chain_arguments_arrive_as_runnable_navigators():
    def repeat(data, times, body):
        for _ in range(times):
            data = body.run(data)
        return data

    nav = fluent({"repeat": repeat, "add": lambda d, n: d + n})
    assert nav.repeat(3, nav.add(2)).run(1) == 7


def test_nested_navigators_share_the_context():
    seen = []

    def peek(data, context=None):
        seen.append(context)
        return data

    def apply(data, body):
        return body.run(data)

    ctx = object()
    nav = fluent({"peek": peek, "apply": apply}, ctx)
    nav.apply(nav.peek()).run(0)
    assert seen == [ctx]


def test_explicit_immediate_and_deferred_outcomes():
    def explicit(data):
        return Immediate(data + 1)

    def nothing(data):
        return Immediate()

    nav = fluent({"explicit": explicit, "nothing": nothing})
    assert nav.explicit().nothing().explicit().run(0) == 2


@pytest.mark.asyncio
async def test_deferred_outcome_switches_to_async_driver():
    async def compute(value):
        return value * 3

    def later(data):
        return Deferred(compute(data))

    result = fluent({"later": later}).later().run(2)
    assert inspect.isawaitable(result)
    assert await result == 6


def test_chains_can_be_rerun_with_fresh_values():
    nav = fluent({"add": lambda d, n: d + n}).add(1).add(1)
    assert nav.run(0) == 2
    assert nav.run(10) == 12


def test_module_level_run_accepts_plain_mapping_and_items():
    chain = Chain([ChainItem("inc"), JumpItem("nowhere"), ChainItem("inc")])
    assert run({"inc": lambda d: d + 1}, chain, 0, ExecutionOptions(blocking=True)) == 2


@pytest.mark.asyncio
async def test_blocking_jump_after_pending_step():
    visits = []
    table = make_visit_table(visits)

    async def slow(data):
        await asyncio.sleep(0)
        return data + ["slow"]

    table["slow"] = slow
    nav = fluent(table, BLOCKING)
    result = nav.slow().op("a").op("b").goto(nav.op("a")).op("c").run([])
    assert inspect.isawaitable(result)
    assert await result == ["slow", "a", "b", "a", "c"]
    assert visits == ["a", "b", "a", "c"]
