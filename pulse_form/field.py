"""
Per-field reactive state and the registry that owns the form's value graph.
"""

import logging
from typing import Any, Callable, Iterator, Optional

from pulse_form.accessor import deep_copy, get_in, set_in
from pulse_form.path import PathLike, Segment, to_path, to_string
from pulse_form.reactive import Batch, Signal

logger = logging.getLogger(__name__)


class FieldRecord:
    """Reactive state of one registered path.

    `sequence` grows by one every time a validation is issued for the field.
    A validation may only write `error` while its own number is still the
    latest one, which is how a slow run is kept from overwriting a newer one.
    """

    def __init__(self, name: str, path: list[Segment], value: Any):
        self.name = name
        self.path = path
        self.value: Signal[Any] = Signal(value, name=f"{name}.value")
        self.error: Signal[Optional[str]] = Signal(None, name=f"{name}.error")
        self.touched: Signal[bool] = Signal(False, name=f"{name}.touched")
        self.is_dirty: Signal[bool] = Signal(False, name=f"{name}.is_dirty")
        self.validators: list[Callable[..., Any]] = []
        self.sequence = 0
        self.in_validation = False
        # Set when a validator writes a new value to its own field
        self.revalidate = False

    def begin_validation(self) -> int:
        self.sequence += 1
        return self.sequence

    def is_current(self, sequence: int) -> bool:
        return sequence == self.sequence

    def settle(self, sequence: int, error: Optional[str]) -> bool:
        "Write the outcome of validation `sequence`, unless it was superseded."
        if not self.is_current(sequence):
            return False
        self.error.write(error or None)
        return True

    def __repr__(self) -> str:
        return (
            f"<FieldRecord {self.name!r} value={self.value.peek()!r} "
            f"error={self.error.peek()!r} touched={self.touched.peek()} "
            f"dirty={self.is_dirty.peek()}>"
        )


def _overlaps(a: list[Segment], b: list[Segment]) -> bool:
    n = min(len(a), len(b))
    return a[:n] == b[:n]


class FieldStore:
    """Registry of field records plus the form's value snapshot.

    `initial` is the value the form was created with and never changes.
    `baseline` is what dirtiness is measured against; it moves on reset.
    `values` is the live snapshot every write goes through to.
    """

    def __init__(self, initial_value: Optional[dict[str, Any]] = None):
        self.initial: dict[str, Any] = deep_copy(initial_value or {})
        self.baseline: dict[str, Any] = deep_copy(self.initial)
        self.values: dict[str, Any] = deep_copy(self.initial)
        self.fields: dict[str, FieldRecord] = {}
        # Bumped on registration so form-level computeds see new fields
        self.version: Signal[int] = Signal(0, name="fields.version")

    def key(self, name: PathLike) -> str:
        return name if isinstance(name, str) else to_string(name)

    def get(self, name: PathLike) -> Optional[FieldRecord]:
        return self.fields.get(self.key(name))

    def register_field(self, name: PathLike) -> FieldRecord:
        key = self.key(name)
        record = self.fields.get(key)
        if record is not None:
            return record

        path = list(to_path(name))
        seed = deep_copy(get_in(self.values, path))
        record = FieldRecord(key, path, seed)
        self.fields[key] = record
        self.version.write(self.version.peek() + 1)
        logger.debug("Registered field %r with %r", key, seed)
        return record

    def records(self) -> Iterator[FieldRecord]:
        "Iterate over the records, tracking registrations when read reactively."
        self.version.read()
        return iter(list(self.fields.values()))

    def write_value(self, record: FieldRecord, value: Any) -> None:
        with Batch():
            # The snapshot keeps its own copy so cells never alias it
            set_in(self.values, record.path, deep_copy(value))
            record.value.write(value)
            record.is_dirty.write(value != get_in(self.baseline, record.path))
            record.touched.write(True)
            self._sync_related(record)

    def _sync_related(self, origin: FieldRecord) -> None:
        # Ancestors and descendants of a written path see the new snapshot too
        for record in self.fields.values():
            if record is origin or not _overlaps(record.path, origin.path):
                continue
            current = get_in(self.values, record.path)
            record.value.write(deep_copy(current))
            record.is_dirty.write(current != get_in(self.baseline, record.path))

    def snapshot(self) -> dict[str, Any]:
        return deep_copy(self.values)

    def reset(
        self,
        target: dict[str, Any],
        keep_dirty: bool = False,
        keep_touched: bool = False,
        keep_error: bool = False,
    ) -> None:
        self.baseline = deep_copy(target)
        self.values = deep_copy(target)
        with Batch():
            for record in self.fields.values():
                record.value.write(deep_copy(get_in(self.values, record.path)))
                if not keep_dirty:
                    record.is_dirty.write(False)
                if not keep_touched:
                    record.touched.write(False)
                if not keep_error:
                    # Outstanding validations belong to the old values
                    record.begin_validation()
                    record.error.write(None)
        logger.debug("Reset %d fields", len(self.fields))
