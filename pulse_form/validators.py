import re
from abc import ABC, abstractmethod
from collections.abc import Sized
from typing import Any, Optional

from pulse_form.accessor import get_in
from pulse_form.path import to_path

_EMAIL = re.compile(r"^\S+@\S+\.\S+$")


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


class Validator(ABC):
    """Reusable validator, called like a plain `(value, values)` function.

    Each built-in returns its `error` message on failure, or a default message
    when none was given.
    """

    default_error = "Invalid value"

    def __init__(self, error: Optional[str] = None) -> None:
        self.error = error

    @property
    def message(self) -> str:
        return self.error or self.default_error

    @abstractmethod
    def check(self, value: Any, values: Any) -> bool: ...

    def __call__(self, value: Any, values: Any = None) -> Optional[str]:
        return None if self.check(value, values) else self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(error={self.error!r})"


class IsNotEmpty(Validator):
    default_error = "Required"

    def check(self, value: Any, values: Any) -> bool:
        return not _is_empty(value)


class IsEmail(Validator):
    default_error = "Invalid email"

    def check(self, value: Any, values: Any) -> bool:
        return isinstance(value, str) and bool(_EMAIL.match(value))


class Matches(Validator):
    def __init__(
        self, pattern: str | re.Pattern[str], *, error: Optional[str] = None
    ) -> None:
        super().__init__(error)
        self.pattern = re.compile(pattern) if isinstance(pattern, str) else pattern

    def check(self, value: Any, values: Any) -> bool:
        return isinstance(value, str) and self.pattern.search(value) is not None


class IsInRange(Validator):
    default_error = "Out of range"

    def __init__(
        self,
        *,
        min: float | None = None,
        max: float | None = None,
        error: str | None = None,
    ) -> None:
        super().__init__(error)
        self.min = min
        self.max = max

    def check(self, value: Any, values: Any) -> bool:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return False
        if self.min is not None and value < self.min:
            return False
        if self.max is not None and value > self.max:
            return False
        return True


class HasLength(Validator):
    default_error = "Invalid length"

    def __init__(
        self,
        *,
        min: int | None = None,
        max: int | None = None,
        exact: int | None = None,
        error: str | None = None,
    ) -> None:
        super().__init__(error)
        self.min = min
        self.max = max
        self.exact = exact

    def check(self, value: Any, values: Any) -> bool:
        if not isinstance(value, Sized):
            return False
        length = len(value.strip()) if isinstance(value, str) else len(value)
        if self.exact is not None:
            return length == self.exact
        if self.min is not None and length < self.min:
            return False
        if self.max is not None and length > self.max:
            return False
        return True


class MatchesField(Validator):
    "Passes when the value equals the value at another path of the form."

    default_error = "Values do not match"

    def __init__(self, field: str, error: str | None = None) -> None:
        super().__init__(error)
        self.field = field

    def check(self, value: Any, values: Any) -> bool:
        return value == get_in(values, to_path(self.field))
