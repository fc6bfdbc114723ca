from __future__ import annotations

from pydantic import BaseModel
import pytest

from parley.dispatch import NOTHING_RETURNED, ToolDispatcher, stringify_result
from parley.errors import ToolNotFoundError

pytestmark = pytest.mark.unit


def test_arguments_are_reordered_positionally() -> None:
    seen: list[tuple] = []

    def book(city, nights, breakfast=False):
        seen.append((city, nights, breakfast))
        return "booked"

    dispatcher = ToolDispatcher({"book": book})
    out = dispatcher.execute(
        "book",
        {"breakfast": True, "nights": 2, "city": "Paris"},
        ["city", "nights", "breakfast"],
    )

    assert out == "booked"
    assert seen == [("Paris", 2, True)]


def test_missing_trailing_arguments_keep_python_defaults() -> None:
    def greet(name, greeting="Hello"):
        return f"{greeting}, {name}"

    dispatcher = ToolDispatcher({"greet": greet})

    assert dispatcher.execute("greet", {"name": "Ada"}, ["name", "greeting"]) == (
        "Hello, Ada"
    )


def test_missing_interior_arguments_are_none() -> None:
    def f(a, b, c):
        return [a, b, c]

    dispatcher = ToolDispatcher({"f": f})

    assert dispatcher.execute("f", {"a": 1, "c": 3}, ["a", "b", "c"]) == "[1, null, 3]"


def test_undeclared_arguments_are_ignored() -> None:
    dispatcher = ToolDispatcher({"echo": lambda text: text})
    assert dispatcher.execute("echo", {"text": "hi", "extra": 1}, ["text"]) == "hi"


def test_unknown_tool_raises() -> None:
    with pytest.raises(ToolNotFoundError) as exc:
        ToolDispatcher().execute("nope", {}, [])
    assert exc.value.name == "nope"


def test_callable_exceptions_propagate() -> None:
    def broken():
        raise RuntimeError("boom")

    dispatcher = ToolDispatcher()
    dispatcher.register("broken", broken)

    with pytest.raises(RuntimeError, match="boom"):
        dispatcher.execute("broken", {}, [])


class _Forecast(BaseModel):
    city: str
    high: int


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (None, NOTHING_RETURNED),
        ("", NOTHING_RETURNED),
        ("sunny", "sunny"),
        ({"temp": 21}, '{"temp": 21}'),
        ([1, 2], "[1, 2]"),
        (21.5, "21.5"),
        (True, "True"),
        (_Forecast(city="Paris", high=21), '{"city":"Paris","high":21}'),
    ],
)
def test_stringify_result(value, expected: str) -> None:
    assert stringify_result(value) == expected
