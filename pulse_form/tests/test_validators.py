from pulse_form.validators import (
    HasLength,
    IsEmail,
    IsInRange,
    IsNotEmpty,
    Matches,
    MatchesField,
)


def test_is_not_empty():
    v = IsNotEmpty()
    assert v("", {}) == "Required"
    assert v("   ", {}) == "Required"
    assert v(None, {}) == "Required"
    assert v([], {}) == "Required"
    assert v("x", {}) is None
    assert v(0, {}) is None
    assert IsNotEmpty("Name is required")("", {}) == "Name is required"


def test_is_email():
    v = IsEmail()
    assert v("ada@example.com", {}) is None
    assert v("not-an-email", {}) == "Invalid email"
    assert v(None, {}) == "Invalid email"


def test_matches():
    v = Matches(r"^\d{5}$", error="Invalid zip")
    assert v("12345", {}) is None
    assert v("1234", {}) == "Invalid zip"


def test_is_in_range():
    v = IsInRange(min=1, max=10)
    assert v(1, {}) is None
    assert v(10.0, {}) is None
    assert v(0, {}) == "Out of range"
    assert v("5", {}) == "Out of range"
    assert v(True, {}) == "Out of range"


def test_has_length():
    assert HasLength(min=3)("ab", {}) == "Invalid length"
    assert HasLength(min=3)("abc", {}) is None
    assert HasLength(max=2)([1, 2, 3], {}) == "Invalid length"
    assert HasLength(exact=2, error="two please")("abc", {}) == "two please"
    assert HasLength(min=1)(None, {}) == "Invalid length"


def test_matches_field():
    v = MatchesField("account.password", error="Passwords differ")
    values = {"account": {"password": "hunter2"}}
    assert v("hunter2", values) is None
    assert v("hunter3", values) == "Passwords differ"
