"""Property-based tests for sequence and parallel semantics."""

import asyncio

from hypothesis import given, settings
from hypothesis import strategies as st

from buildflow import CompositeFailure, Executor, Registry, TaskBodyFailure, parallel, sequence


def build(n, failing):
    registry = Registry()
    invoked = []
    finished = []

    def make(i):
        async def body():
            invoked.append(i)
            await asyncio.sleep(0)
            finished.append(i)
            if i in failing:
                raise RuntimeError(f"t{i}")

        return body

    for i in range(n):
        registry.register(f"t{i}", make(i))
    return registry, invoked, finished


@given(st.integers(min_value=1, max_value=12).flatmap(
    lambda n: st.tuples(st.just(n), st.sets(st.integers(min_value=0, max_value=n - 1)))
))
@settings(max_examples=60, deadline=None)
def test_sequence_never_runs_past_first_failure(case):
    n, failing = case
    registry, invoked, _ = build(n, failing)
    outcome = asyncio.run(Executor(registry).run(sequence(*[f"t{i}" for i in range(n)])))

    if not failing:
        assert outcome.ok
        assert invoked == list(range(n))
        return
    first = min(failing)
    assert invoked == list(range(first + 1))
    assert isinstance(outcome.error, TaskBodyFailure)
    assert outcome.error.task == f"t{first}"


@given(st.integers(min_value=1, max_value=12).flatmap(
    lambda n: st.tuples(st.just(n), st.sets(st.integers(min_value=0, max_value=n - 1)))
))
@settings(max_examples=60, deadline=None)
def test_parallel_settles_every_child(case):
    n, failing = case
    registry, invoked, finished = build(n, failing)
    outcome = asyncio.run(Executor(registry).run(parallel(*[f"t{i}" for i in range(n)])))

    assert sorted(invoked) == list(range(n))
    assert sorted(finished) == list(range(n))
    if not failing:
        assert outcome.ok
    else:
        assert isinstance(outcome.error, CompositeFailure)
        assert sorted(e.task for e in outcome.error.errors) == sorted(f"t{i}" for i in failing)


@given(st.lists(st.sampled_from(["a", "b", "c"]), min_size=1, max_size=6))
@settings(max_examples=40)
def test_last_registration_wins(order):
    registry = Registry()
    bodies = {}
    for label in order:
        def body():
            pass

        bodies[label] = body
        registry.register("t", body)
    assert registry.resolve("t").fn is bodies[order[-1]]
