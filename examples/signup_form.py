"""Sign-up form driven from a script, the way a UI host would drive it."""

import asyncio
import logging
from typing import Any

from pulse_form import (
    Effect,
    HasLength,
    IsEmail,
    IsNotEmpty,
    Matches,
    MatchesField,
    create_form,
)

logging.basicConfig(level=logging.DEBUG)

TAKEN = {"admin", "root"}


async def username_available(value: str, values: dict[str, Any]) -> str | None:
    await asyncio.sleep(0.1)  # pretend to ask a server
    return "Username is taken" if value in TAKEN else None


def resolver(values: dict[str, Any]) -> dict[str, Any]:
    errors = {}
    if not values.get("terms"):
        errors["terms"] = "Please accept the terms"
    return {"values": {**values, "username": values["username"].lower()}, "errors": errors}


async def main():
    form = create_form(
        initial_value={
            "username": "",
            "email": "",
            "password": "",
            "confirm": "",
            "terms": False,
            "addresses": [{"street": "", "city": ""}],
        },
        resolver=resolver,
        mode="all",
    )

    username = form.register(
        "username",
        validate=[
            IsNotEmpty("Username is required"),
            HasLength(min=3, max=16, error="3-16 characters"),
            Matches(r"^[A-Za-z0-9_]+$", error="Letters, numbers, underscore"),
            username_available,
        ],
    )
    email = form.register("email", validate=IsEmail("Enter a valid email"))
    password = form.register("password", validate=HasLength(min=8, error="Min 8 characters"))
    confirm = form.register("confirm", validate=MatchesField("password", "Passwords differ"))
    terms = form.register("terms")
    street = form.register("addresses.[0].street", validate=IsNotEmpty("Street is required"))

    Effect(lambda: print("username error:", username.error()), name="username_error")

    username.oninput({"target": {"value": "admin"}})
    await asyncio.sleep(0.2)
    username.oninput({"target": {"value": "Ada_Lovelace"}})
    email.oninput("ada@example.com")
    password.oninput("analytical")
    confirm.oninput("analytical")
    street.oninput("12 St James's Square")
    await asyncio.sleep(0.2)

    def on_success(values: dict[str, Any]):
        print("submitted:", values)

    def on_error(errors: dict[str, str]):
        print("errors:", errors)

    submit = form.handle_submit(on_success, on_error)
    await submit()

    terms.oninput({"target": {"checked": True}})
    await submit()

    form.reset(keep_touched=True)
    print("after reset:", form.get_values(), "dirty:", form.is_dirty())


if __name__ == "__main__":
    asyncio.run(main())
