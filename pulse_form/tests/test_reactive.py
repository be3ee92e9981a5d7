import asyncio

import pytest

from pulse_form.reactive import (
    Batch,
    Computed,
    Effect,
    Signal,
    flush_effects,
)


def test_signal_read_and_write():
    s = Signal(10, name="s")
    assert s() == 10
    s.write(20)
    assert s.read() == 20
    assert s.peek() == 20


def test_computed_follows_signal():
    s = Signal(2, name="s")
    double = Computed(lambda: s() * 2, name="double")
    assert double() == 4
    s.write(5)
    assert double() == 10


def test_effect_reruns_only_on_change():
    s = Signal(10, name="s")
    seen = []

    def watch():
        seen.append(s())

    watcher = Effect(watch, name="watcher")

    flush_effects()
    assert seen == [10]

    s.write(20)
    flush_effects()
    assert seen == [10, 20]

    # Writing an equal value does not notify
    s.write(20)
    flush_effects()
    assert watcher.runs == 2


def test_batch_runs_effect_once():
    a = Signal(1, name="a")
    b = Signal(10, name="b")
    total = Computed(lambda: a() + b(), name="total")
    seen = []

    Effect(lambda: seen.append(total()), name="batch_effect")
    flush_effects()

    with Batch():
        a.write(2)
        b.write(20)

    assert seen == [11, 22]


def test_cycle_detection():
    s1 = Signal(1, name="s1")
    c1 = Computed(lambda: s1() if s1() < 10 else c2(), name="c1")
    c2 = Computed(lambda: c1(), name="c2")

    c2()
    s1.write(10)

    with pytest.raises(RuntimeError, match="Circular dependency detected"):
        c2()


def test_write_inside_computed_is_rejected():
    s = Signal(1, name="s")
    other = Signal(0, name="other")

    def bad():
        other.write(s())
        return s()

    c = Computed(bad, name="bad")
    with pytest.raises(RuntimeError, match="Computeds should be read-only"):
        c()


def test_effect_cleanup_and_dispose():
    s = Signal(0, name="s")
    cleanups = 0

    def body():
        s()

        def cleanup():
            nonlocal cleanups
            cleanups += 1

        return cleanup

    e = Effect(body, name="cleanup_effect")
    flush_effects()
    s.write(1)
    flush_effects()
    assert cleanups == 1

    e.dispose()
    assert cleanups == 2
    s.write(2)
    flush_effects()
    assert e.runs == 2


@pytest.mark.asyncio
async def test_effects_flush_on_running_loop():
    s = Signal(1, "s")

    e = Effect(lambda: s(), name="loop_effect")

    assert e.runs == 0
    await asyncio.sleep(0)
    assert e.runs == 1

    s.write(2)
    assert e.runs == 1
    await asyncio.sleep(0)
    assert e.runs == 2
