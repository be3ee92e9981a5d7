"""
Field validation chains and whole-form resolvers.

Validators are called as `validator(value, values)` and return an error
message, `None` (or an empty string) when the value is fine, or an awaitable
of either. A chain stays synchronous until the first validator that returns
an awaitable; from there on the rest of the chain runs as a coroutine.
"""

import inspect
import logging
from typing import Any, Awaitable, Callable, Iterable, Mapping, Optional, Sequence

from pulse_form.field import FieldRecord

logger = logging.getLogger(__name__)

VALIDATION_FAILED = "Validation failed"
# Key under which a failing resolver reports its error
ROOT_ERROR = "root"

ValidationResult = Optional[str]
Validator = Callable[[Any, Any], ValidationResult | Awaitable[ValidationResult]]
ResolverResult = Mapping[str, Any]
Resolver = Callable[[Any], ResolverResult | Awaitable[ResolverResult]]


def normalize_validators(
    validate: Validator | Iterable[Validator] | None,
) -> list[Validator]:
    if validate is None:
        return []
    if callable(validate):
        return [validate]
    validators = list(validate)
    for validator in validators:
        if not callable(validator):
            raise TypeError(f"Validator {validator!r} is not callable")
    return validators


def _call(validator: Validator, value: Any, values: Any):
    try:
        return validator(value, values)
    except Exception:
        logger.exception("Validator %r raised", validator)
        return VALIDATION_FAILED


async def _await(pending: Awaitable[ValidationResult], validator: Validator):
    try:
        return await pending
    except Exception:
        logger.exception("Validator %r raised", validator)
        return VALIDATION_FAILED


def run_validators(
    validators: Sequence[Validator], value: Any, values: Any
) -> ValidationResult | Awaitable[ValidationResult]:
    """Run a chain in order and return its first error, `None` if all pass.

    Returns a coroutine instead of a result once a validator turns out to be
    asynchronous.
    """
    for i, validator in enumerate(validators):
        result = _call(validator, value, values)
        if inspect.isawaitable(result):
            return _finish_chain(result, validator, validators[i + 1 :], value, values)
        if result:
            return result
    return None


async def _finish_chain(
    pending: Awaitable[ValidationResult],
    validator: Validator,
    rest: Sequence[Validator],
    value: Any,
    values: Any,
) -> ValidationResult:
    result = await _await(pending, validator)
    if result:
        return result
    outcome = run_validators(rest, value, values)
    if inspect.isawaitable(outcome):
        return await outcome
    return outcome


def validate_field(
    record: FieldRecord,
    values: Any,
    validators: Optional[Sequence[Validator]] = None,
) -> ValidationResult | Awaitable[ValidationResult]:
    """Validate the current value of `record` and write the outcome to its
    `error` cell.

    The run takes a new sequence number when it is issued. A synchronous chain
    settles before returning and the result is returned directly. Otherwise a
    coroutine is returned that settles on completion, and only if no newer
    validation was issued for the field in the meantime. Either way the
    chain's own result is what is returned.
    """
    if validators is None:
        validators = record.validators
    sequence = record.begin_validation()
    record.in_validation = True
    try:
        outcome = run_validators(validators, record.value.peek(), values)
    finally:
        record.in_validation = False

    if inspect.isawaitable(outcome):
        return _settle_later(record, sequence, outcome)
    record.settle(sequence, outcome)
    return outcome or None


async def _settle_later(
    record: FieldRecord, sequence: int, pending: Awaitable[ValidationResult]
) -> ValidationResult:
    error = (await pending) or None
    if not record.settle(sequence, error):
        logger.debug(
            "Discarded stale validation #%d of %r (latest is #%d)",
            sequence,
            record.name,
            record.sequence,
        )
    return error


async def validate_form(
    values: Any,
    resolver: Optional[Resolver],
    fields: Mapping[str, FieldRecord],
) -> tuple[Optional[Any], dict[str, str]]:
    """Run the whole-form resolver.

    Returns the values the resolver produced (`None` when it produced none)
    and its errors. Every error for a registered path is written to that
    field's `error` cell, superseding any field validation still in flight.
    """
    if resolver is None:
        return None, {}

    try:
        result = resolver(values)
        if inspect.isawaitable(result):
            result = await result
    except Exception:
        logger.exception("Resolver %r raised", resolver)
        return None, {ROOT_ERROR: VALIDATION_FAILED}

    result = result or {}
    reported = result.get("errors") if isinstance(result, Mapping) else None
    if not isinstance(result, Mapping) or not isinstance(reported or {}, Mapping):
        logger.error("Resolver %r returned a malformed result: %r", resolver, result)
        return None, {ROOT_ERROR: VALIDATION_FAILED}

    errors = {str(path): msg for path, msg in (reported or {}).items() if msg}
    for path, message in errors.items():
        record = fields.get(path)
        if record is not None:
            record.settle(record.begin_validation(), message)
    return result.get("values"), errors
