from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import (
    Any,
    Awaitable,
    Callable,
    Coroutine,
    Generic,
    Iterable,
    Literal,
    Mapping,
    Optional,
    TypeVar,
)

from starlette.datastructures import FormData as StarletteFormData

from pulse_form.accessor import deep_copy, deep_merge, get_in
from pulse_form.field import FieldRecord, FieldStore
from pulse_form.form_data import normalize_form_data
from pulse_form.path import PathLike, to_path
from pulse_form.reactive import Batch, Computed, Signal
from pulse_form.validation import (
    Resolver,
    Validator,
    normalize_validators,
    validate_field,
    validate_form,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")
FormMode = Literal["onSubmit", "all"]
FormErrors = dict[str, str]
SubmitHandler = Callable[[T], None | Awaitable[None]]

MODES: tuple[FormMode, ...] = ("onSubmit", "all")
# Validation reruns allowed when validators keep writing to their own field
MAX_REVALIDATIONS = 10

__all__ = ["Form", "RegisteredField", "create_form", "extract_value"]


def _lookup(obj: Any, name: str) -> tuple[bool, Any]:
    if isinstance(obj, Mapping):
        return (name in obj), obj.get(name)
    if hasattr(obj, name):
        return True, getattr(obj, name)
    return False, None


def extract_value(ev_or_val: Any) -> Any:
    """Pull the raw value out of an input event.

    Events carry a `target`, either as an attribute or as a mapping key. A
    boolean `target.checked` wins over `target.value`; anything that is not an
    event is the value itself.
    """
    if ev_or_val is None or isinstance(ev_or_val, (str, int, float, bool)):
        return ev_or_val
    has_target, target = _lookup(ev_or_val, "target")
    if not has_target or target is None:
        return ev_or_val
    _, checked = _lookup(target, "checked")
    if isinstance(checked, bool):
        return checked
    has_value, value = _lookup(target, "value")
    if has_value:
        return value
    return ev_or_val


def prevent_default(event: Any) -> None:
    if event is None:
        return
    for name in ("preventDefault", "prevent_default"):
        fn = getattr(event, name, None)
        if callable(fn):
            fn()
            return


async def call_handler(handler: Callable[[T], Any], data: T) -> None:
    """Invoke a submit callback, awaiting if necessary."""
    maybe = handler(data)
    if inspect.isawaitable(maybe):
        await maybe


@dataclass(slots=True)
class RegisteredField(Generic[T]):
    """Handle returned by `Form.register`.

    The cells are shared by every handle for the same path. `oninput` writes
    a new value, `onchange` only marks the field as touched.
    """

    name: str
    value: Signal[T]
    error: Signal[Optional[str]]
    touched: Signal[bool]
    is_dirty: Signal[bool]
    oninput: Callable[[Any], None]
    onchange: Callable[..., None]


class Form:
    """
    Reactive form state over a nested value.

    ```python
    form = create_form(initial_value={"user": {"name": ""}}, mode="all")
    name = form.register("user.name", validate=IsNotEmpty())
    name.oninput("Ada")
    await form.handle_submit(save, show_errors)()
    ```

    In `"all"` mode every input validates its field right away. In
    `"onSubmit"` mode validation waits for the submit handler, which always
    validates every registered field and then runs the resolver.
    """

    def __init__(
        self,
        initial_value: Optional[Mapping[str, Any]] = None,
        resolver: Optional[Resolver] = None,
        mode: FormMode = "onSubmit",
    ):
        if mode not in MODES:
            raise ValueError(f"Unknown form mode {mode!r}, expected one of {MODES}")
        self.mode: FormMode = mode
        self.resolver = resolver
        self._store = FieldStore(dict(initial_value) if initial_value else None)
        self._tasks: set[asyncio.Task] = set()

        self.is_submitting: Signal[bool] = Signal(False, name="form.is_submitting")
        self.submit_count: Signal[int] = Signal(0, name="form.submit_count")
        self.is_dirty: Computed[bool] = Computed(
            lambda: any(r.is_dirty() for r in self._store.records()),
            name="form.is_dirty",
        )
        self.is_touched: Computed[bool] = Computed(
            lambda: any(r.touched() for r in self._store.records()),
            name="form.is_touched",
        )
        self.errors: Computed[FormErrors] = Computed(self._current_errors, name="form.errors")
        self.is_valid: Computed[bool] = Computed(
            lambda: not self.errors(), name="form.is_valid"
        )

    def _current_errors(self) -> FormErrors:
        errors: FormErrors = {}
        for record in self._store.records():
            if message := record.error():
                errors[record.name] = message
        return errors

    # --- Registration ---------------------------------------------------------
    def register(
        self,
        name: PathLike,
        validate: Validator | Iterable[Validator] | None = None,
    ) -> RegisteredField[Any]:
        record = self._store.register_field(name)
        if validate is not None:
            record.validators = normalize_validators(validate)

        def oninput(ev_or_val: Any) -> None:
            self._input(record, extract_value(ev_or_val))

        def onchange(ev: Any = None) -> None:
            record.touched.write(True)

        return RegisteredField(
            name=record.name,
            value=record.value,
            error=record.error,
            touched=record.touched,
            is_dirty=record.is_dirty,
            oninput=oninput,
            onchange=onchange,
        )

    def _input(
        self, record: FieldRecord, value: Any, validate: Optional[bool] = None
    ) -> None:
        changed = record.value.peek() != value
        self._store.write_value(record, value)
        if validate is None:
            validate = self.mode == "all"
        if not validate:
            return
        if record.in_validation:
            # A validator wrote to the field it is validating; the running
            # loop below validates the new value once that validator returns
            record.revalidate = record.revalidate or changed
            return
        self._validate_in_background(record)

    def _validate_in_background(self, record: FieldRecord) -> None:
        for _ in range(MAX_REVALIDATIONS):
            record.revalidate = False
            outcome = validate_field(record, self._store.snapshot())
            if inspect.isawaitable(outcome):
                self._spawn(outcome, record.name)  # type: ignore[arg-type]
            if not record.revalidate:
                return
        logger.warning(
            "Validators of %r kept rewriting the field, gave up after %d runs",
            record.name,
            MAX_REVALIDATIONS,
        )

    def _spawn(self, coro: Coroutine[Any, Any, Any], name: str) -> Optional[asyncio.Task]:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop, dropping async validation of %r", name)
            coro.close()
            return None
        task = loop.create_task(coro, name=f"validate:{name}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # --- Imperative API -------------------------------------------------------
    def get_values(self, name: Optional[PathLike] = None) -> Any:
        if name is None:
            return self._store.snapshot()
        return deep_copy(get_in(self._store.values, to_path(name)))

    def set_value(
        self, name: PathLike, value: Any, *, validate: Optional[bool] = None
    ) -> None:
        """Write a value as an input would. `validate` overrides the mode."""
        self._input(self._store.register_field(name), value, validate)

    def set_error(self, name: PathLike, message: Optional[str]) -> None:
        record = self._store.register_field(name)
        record.settle(record.begin_validation(), message)

    def clear_errors(self, *names: PathLike) -> None:
        if names:
            records = [r for r in map(self._store.get, names) if r is not None]
        else:
            records = list(self._store.fields.values())
        with Batch():
            for record in records:
                record.settle(record.begin_validation(), None)

    async def trigger(self, *names: PathLike) -> bool:
        """Validate the named fields (all registered fields by default) now.

        Returns True when none of them has an error.
        """
        if names:
            records = []
            for name in names:
                record = self._store.get(name)
                if record is None:
                    logger.debug("Ignoring trigger of unregistered field %r", name)
                    continue
                records.append(record)
        else:
            records = list(self._store.fields.values())
        errors = await self._validate_fields(records)
        return not errors

    async def _validate_fields(self, records: list[FieldRecord]) -> FormErrors:
        # Every run is issued before any is awaited
        values = self._store.snapshot()
        outcomes = [(r.name, validate_field(r, deep_copy(values))) for r in records]
        pending = [o for _, o in outcomes if inspect.isawaitable(o)]
        results = iter(await asyncio.gather(*pending)) if pending else iter(())

        errors: FormErrors = {}
        for name, outcome in outcomes:
            message = next(results) if inspect.isawaitable(outcome) else outcome
            if message:
                errors[name] = message
        return errors

    def load_form_data(
        self,
        data: StarletteFormData | Mapping[str, Any],
        *,
        validate: Optional[bool] = None,
    ) -> None:
        """Write submitted form data, keyed by field path, into the form."""
        entries = normalize_form_data(data)
        with Batch():
            for name, value in entries.items():
                self.set_value(name, value, validate=validate)
        logger.debug("Loaded %d form data entries", len(entries))

    # --- Submission -----------------------------------------------------------
    def handle_submit(
        self,
        on_success: SubmitHandler[dict[str, Any]],
        on_error: Optional[SubmitHandler[FormErrors]] = None,
    ) -> Callable[..., Coroutine[Any, Any, None]]:
        async def submit(event: Any = None) -> None:
            prevent_default(event)
            self.submit_count.write(self.submit_count.peek() + 1)
            self.is_submitting.write(True)
            try:
                values, errors = await self._validate_all()
            finally:
                self.is_submitting.write(False)

            if errors:
                logger.debug("Submission failed with errors for %s", sorted(errors))
                if on_error is not None:
                    await call_handler(on_error, errors)
                return
            logger.debug("Submission succeeded")
            await call_handler(on_success, values)

        return submit

    async def _validate_all(self) -> tuple[dict[str, Any], FormErrors]:
        errors = await self._validate_fields(list(self._store.fields.values()))
        snapshot = self._store.snapshot()
        resolved, resolver_errors = await validate_form(
            deep_copy(snapshot), self.resolver, self._store.fields
        )
        # Resolver errors have the final word
        errors.update(resolver_errors)
        return (snapshot if resolved is None else resolved), errors

    # --- Reset ----------------------------------------------------------------
    def reset(
        self,
        values: Optional[Mapping[str, Any]] = None,
        *,
        keep_dirty: bool = False,
        keep_touched: bool = False,
        keep_error: bool = False,
    ) -> None:
        """Restore every field to `values` laid over the initial value."""
        initial = self._store.initial
        target = deep_copy(initial) if values is None else deep_merge(initial, dict(values))
        self._store.reset(
            target,
            keep_dirty=keep_dirty,
            keep_touched=keep_touched,
            keep_error=keep_error,
        )

    def __repr__(self) -> str:
        return f"<Form mode={self.mode!r} fields={list(self._store.fields)}>"


def create_form(
    initial_value: Optional[Mapping[str, Any]] = None,
    resolver: Optional[Resolver] = None,
    mode: FormMode = "onSubmit",
) -> Form:
    return Form(initial_value=initial_value, resolver=resolver, mode=mode)
