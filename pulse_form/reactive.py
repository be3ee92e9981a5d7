"""
Fine-grained reactive cells backing every piece of form state.

`Signal` is the writable cell, `Computed` a lazily derived value and `Effect`
an observer that reruns when the cells it read have changed. Effects are
queued into the current `Batch`; the global batch flushes on the running
asyncio loop, or explicitly through `flush_effects()`.
"""

import asyncio
from contextvars import ContextVar
from typing import Callable, Generic, Optional, TypeVar

T = TypeVar("T")

# NOTE: globals at the bottom of the file


# Collects the cells read and the effects created while a function runs.
class Scope:
    def __init__(self):
        # Lists preserve insertion order
        self.deps: list["Signal | Computed"] = []
        self.effects: list["Effect"] = []

    def register_effect(self, effect: "Effect"):
        if effect not in self.effects:
            self.effects.append(effect)

    def register_dep(self, value: "Signal | Computed"):
        if value not in self.deps:
            self.deps.append(value)

    def __enter__(self):
        self._token = SCOPE.set(self)
        return self

    def __exit__(self, exc_type, exc_value, exc_traceback):
        SCOPE.reset(self._token)


class _Untracked(Scope):
    # Reads inside this block do not become dependencies
    def register_dep(self, value: "Signal | Computed"):
        pass


class Signal(Generic[T]):
    def __init__(self, value: T, name: Optional[str] = None):
        self.value = value
        self.name = name
        self.obs: list["Computed | Effect"] = []
        self.last_change = -1

    def read(self) -> T:
        if scope := SCOPE.get():
            scope.register_dep(self)
        return self.value

    def peek(self) -> T:
        "Current value, without registering a dependency."
        return self.value

    def __call__(self) -> T:
        return self.read()

    def write(self, value: T):
        if value == self.value:
            return
        increment_epoch()
        self.value = value
        self.last_change = epoch()
        for obs in list(self.obs):
            obs._push_change()

    def __repr__(self) -> str:
        return f"Signal({self.value!r}, name={self.name!r})"


class Computed(Generic[T]):
    def __init__(self, fn: Callable[[], T], name: Optional[str] = None):
        self.fn = fn
        self.value: T = None  # type: ignore
        self.name = name
        self.dirty = False
        self.on_stack = False
        self.last_change: int = -1
        self.deps: list[Signal | Computed] = []
        self.obs: list[Computed | Effect] = []

    def read(self) -> T:
        if self.on_stack:
            raise RuntimeError(f"Circular dependency detected in computed {self.name}")

        if scope := SCOPE.get():
            scope.register_dep(self)

        self._recompute_if_necessary()
        return self.value

    def __call__(self) -> T:
        return self.read()

    def _push_change(self):
        if self.dirty:
            return
        self.dirty = True
        for obs in list(self.obs):
            obs._push_change()

    def _recompute(self):
        # Reached from a dependent's freshness check without going through read()
        if self.on_stack:
            raise RuntimeError(f"Circular dependency detected in computed {self.name}")
        prev_value = self.value
        prev_deps = set(self.deps)
        execution_epoch = epoch()
        with Scope() as scope:
            self.on_stack = True
            try:
                self.value = self.fn()
            finally:
                self.on_stack = False
            if epoch() != execution_epoch:
                raise RuntimeError(
                    f"Detected write to a signal in computed {self.name}. Computeds should be read-only."
                )
            self.dirty = False
            if prev_value != self.value or self.last_change < 0:
                self.last_change = execution_epoch
            if scope.effects:
                raise RuntimeError(
                    "An effect was created within a computed variable's function. "
                    "Computed variables should be pure calculations."
                )

        self.deps = scope.deps
        new_deps = set(self.deps)
        for dep in new_deps - prev_deps:
            dep.obs.append(self)
        for dep in prev_deps - new_deps:
            dep.obs.remove(self)

    def _recompute_if_necessary(self):
        if self.last_change < 0:
            self._recompute()
            return
        if not self.dirty:
            return

        for dep in self.deps:
            if isinstance(dep, Computed):
                dep._recompute_if_necessary()
            if dep.last_change > self.last_change:
                self._recompute()
                return

        self.dirty = False


EffectCleanup = Callable[[], None]
EffectFn = Callable[[], Optional[EffectCleanup]]


class Effect:
    def __init__(self, fn: EffectFn, name: Optional[str] = None):
        self.fn = fn
        self.name = name
        self.cleanup_fn: Optional[EffectCleanup] = None
        self.deps: list[Signal | Computed] = []
        # Used to detect the first run, but useful for testing
        self.runs: int = 0
        self.last_run: int = -1
        self.batch: Optional[Batch] = None
        self.disposed = False

        if scope := SCOPE.get():
            scope.register_effect(self)

        self.schedule()

    def dispose(self):
        self.disposed = True
        if self.cleanup_fn:
            self.cleanup_fn()
            self.cleanup_fn = None
        for dep in self.deps:
            dep.obs.remove(self)
        self.deps = []
        if self.batch and self in self.batch.effects:
            self.batch.effects.remove(self)
        self.batch = None

    def schedule(self):
        if self.disposed:
            return
        batch = BATCH.get()
        batch.register_effect(self)
        self.batch = batch

    def _push_change(self):
        self.schedule()

    def _should_run(self):
        return not self.disposed and (
            self.runs == 0 or self._deps_changed_since_last_run()
        )

    def _deps_changed_since_last_run(self):
        for dep in self.deps:
            if isinstance(dep, Computed):
                dep._recompute_if_necessary()
            if dep.last_change > self.last_run:
                return True
        return False

    def run(self):
        if self.cleanup_fn:
            with _Untracked():
                self.cleanup_fn()
            self.cleanup_fn = None

        prev_deps = set(self.deps)
        execution_epoch = epoch()
        with Scope() as scope:
            # Clear the batch *before* running, the effect may write to a
            # signal that reschedules it.
            self.batch = None
            self.cleanup_fn = self.fn()
            self.runs += 1
            self.last_run = execution_epoch

        self.deps = scope.deps
        new_deps = set(self.deps)
        for dep in new_deps - prev_deps:
            dep.obs.append(self)
        for dep in prev_deps - new_deps:
            dep.obs.remove(self)

        if self._deps_changed_since_last_run():
            self.schedule()


class Batch:
    MAX_ITERS = 10000

    def __init__(self) -> None:
        self.effects: list[Effect] = []

    def register_effect(self, effect: Effect):
        if effect not in self.effects:
            self.effects.append(effect)

    def flush(self):
        token = None
        if BATCH.get() is not self:
            token = BATCH.set(self)

        iters = 0
        try:
            while self.effects:
                if iters > self.MAX_ITERS:
                    raise RuntimeError(
                        f"The reactive system ran more than {self.MAX_ITERS} iterations. "
                        "There is likely an update cycle between effects and the signals they write."
                    )
                current_effects = self.effects
                self.effects = []
                for effect in current_effects:
                    if effect._should_run():
                        effect.run()
                iters += 1
        finally:
            if token is not None:
                BATCH.reset(token)

    def __enter__(self):
        self._token = BATCH.set(self)
        return self

    def __exit__(self, exc_type, exc_value, exc_traceback):
        # Reset AFTER flushing, the batch captures effects triggered while flushing.
        self.flush()
        BATCH.reset(self._token)


class GlobalBatch(Batch):
    def __init__(self) -> None:
        self.is_scheduled = False
        super().__init__()

    def register_effect(self, effect: Effect):
        if not self.is_scheduled:
            try:
                loop = asyncio.get_running_loop()
                loop.call_soon(self.flush)
                self.is_scheduled = True
            except RuntimeError:
                pass
        return super().register_effect(effect)

    def flush(self):
        try:
            super().flush()
        finally:
            self.is_scheduled = False


def flush_effects():
    BATCH.get().flush()


# --- Globals ---
class Epoch:
    current: int = 0


EPOCH = ContextVar("pulse_form_epoch", default=Epoch())
SCOPE: ContextVar[Optional[Scope]] = ContextVar("pulse_form_scope", default=None)
BATCH: ContextVar[Batch] = ContextVar("pulse_form_batch", default=GlobalBatch())


def epoch():
    return EPOCH.get().current


def increment_epoch():
    EPOCH.get().current += 1
