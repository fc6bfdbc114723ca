"""Tool descriptors: builder, schema expansion and terminal-flag exclusivity."""

from __future__ import annotations

from pydantic import BaseModel, Field
import pytest

from parley.errors import ConfigurationError
from parley.tools import ToolBuilder, ToolDescriptor, ToolParameter

pytestmark = pytest.mark.unit


def test_builder_produces_shared_schema_shape(weather_builder: ToolBuilder) -> None:
    tool = weather_builder.add_parameter(
        "days", "Array.<number>", "Forecast days.", optional=True
    ).build()

    assert tool.json_schema() == {
        "type": "object",
        "properties": {
            "cityName": {"type": "string", "description": "The city to look up."},
            "days": {
                "type": "array",
                "items": {"type": "number"},
                "description": "Forecast days.",
            },
        },
        "required": ["cityName"],
    }
    assert tool.parameter_names == ["cityName", "days"]


def test_both_terminal_flags_are_rejected_on_construction() -> None:
    with pytest.raises(ConfigurationError) as exc:
        ToolDescriptor(
            name="getWeather", ends_conversation=True, return_arguments_only=True
        )
    assert exc.value.hint is not None


def test_builder_rejects_second_terminal_flag(weather_builder: ToolBuilder) -> None:
    weather_builder.end_with_result()
    with pytest.raises(ConfigurationError):
        weather_builder.only_return_arguments()

    other = ToolBuilder("lookup").only_return_arguments()
    with pytest.raises(ConfigurationError):
        other.end_with_result()


def test_builder_flag_can_be_switched_off_then_other_set(
    weather_builder: ToolBuilder,
) -> None:
    tool = (
        weather_builder.end_with_result()
        .end_with_result(False)
        .only_return_arguments()
        .build()
    )
    assert tool.return_arguments_only is True
    assert tool.ends_conversation is False
    assert tool.is_terminal


@pytest.mark.parametrize("type_name", ["date", "Array.<date>", ""])
def test_unsupported_parameter_types_are_rejected(type_name: str) -> None:
    with pytest.raises(ConfigurationError):
        ToolParameter(name="when", type=type_name)


@pytest.mark.parametrize("name", ["", "has space", "9starts_with_digit", "x" * 65])
def test_invalid_tool_names_are_rejected(name: str) -> None:
    with pytest.raises(ConfigurationError):
        ToolDescriptor(name=name)


def test_duplicate_parameters_are_rejected() -> None:
    with pytest.raises(ConfigurationError, match="duplicate"):
        ToolDescriptor(
            name="t",
            parameters=(
                ToolParameter(name="a", type="string"),
                ToolParameter(name="a", type="number"),
            ),
        )


def test_from_model_uses_field_order_and_requiredness() -> None:
    class Booking(BaseModel):
        """Book a table."""

        restaurant: str = Field(description="Restaurant name.")
        guests: int
        tags: list[str] = Field(default_factory=list)

    tool = ToolDescriptor.from_model("bookTable", Booking, return_arguments_only=True)

    assert tool.description == "Book a table."
    assert tool.parameter_names == ["restaurant", "guests", "tags"]
    schema = tool.json_schema()
    assert schema["required"] == ["restaurant", "guests"]
    assert schema["properties"]["restaurant"] == {
        "type": "string",
        "description": "Restaurant name.",
    }
    assert schema["properties"]["tags"] == {"type": "array", "items": {"type": "string"}}
    assert tool.return_arguments_only is True


def test_from_model_rejects_fields_without_a_simple_type() -> None:
    class Maybe(BaseModel):
        value: int | None = None

    with pytest.raises(ConfigurationError, match="no simple type"):
        ToolDescriptor.from_model("maybe", Maybe)
