"""Wire schema for turtle drawing commands.

A command stream is a JSON array of objects tagged by ``type``::

    [{"type": "setSpeed", "speed": 0},
     {"type": "forward", "distance": 100},
     {"type": "right", "angle": 90}]

Colours are either a string (``"red"``, ``"#ff0000"``) or an ``[r, g, b]``
triple; see ``world.resolve_color`` for how triples are read.
"""

import json
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from errors import ExecutionError
from world import resolve_color

Color = Union[str, tuple[float, float, float]]

# Older command streams used the pen vocabulary for stroke attributes.
LEGACY_TYPES = {
    "setPenColor": "setStrokeColor",
    "setPenSize": "setStrokeWidth",
}


class _Command(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", allow_inf_nan=False)


class Forward(_Command):
    type: Literal["forward"] = "forward"
    distance: float


class Backward(_Command):
    type: Literal["backward"] = "backward"
    distance: float


class Right(_Command):
    type: Literal["right"] = "right"
    angle: float


class Left(_Command):
    type: Literal["left"] = "left"
    angle: float


class Goto(_Command):
    type: Literal["goto"] = "goto"
    x: float
    y: float


class PenUp(_Command):
    type: Literal["penup"] = "penup"


class PenDown(_Command):
    type: Literal["pendown"] = "pendown"


class _ColorCommand(_Command):
    color: Color

    @field_validator("color")
    @classmethod
    def _known_color(cls, value: Color) -> Color:
        resolve_color(value)
        return value


class SetStrokeColor(_ColorCommand):
    type: Literal["setStrokeColor"] = "setStrokeColor"


class SetFillColor(_ColorCommand):
    type: Literal["setFillColor"] = "setFillColor"


class SetStrokeWidth(_Command):
    type: Literal["setStrokeWidth"] = "setStrokeWidth"
    size: float = Field(ge=0)


class SetSpeed(_Command):
    type: Literal["setSpeed"] = "setSpeed"
    speed: float

    @field_validator("speed")
    @classmethod
    def _clamp(cls, value: float) -> int:
        return int(max(0, min(10, value)))


class BeginFill(_Command):
    type: Literal["beginFill"] = "beginFill"


class EndFill(_Command):
    type: Literal["endFill"] = "endFill"


class Clear(_Command):
    type: Literal["clear"] = "clear"


Command = Annotated[
    Union[
        Forward, Backward, Right, Left, Goto, PenUp, PenDown,
        SetStrokeColor, SetFillColor, SetStrokeWidth, SetSpeed,
        BeginFill, EndFill, Clear,
    ],
    Field(discriminator="type"),
]

_stream_adapter = TypeAdapter(list[Command])


def _upgrade(raw: Any) -> Any:
    if isinstance(raw, dict) and raw.get("type") in LEGACY_TYPES:
        return {**raw, "type": LEGACY_TYPES[raw["type"]]}
    return raw


def parse_commands(data: str | bytes | list) -> list[Command]:
    """Validate a command stream given as JSON text or already-decoded list."""
    if isinstance(data, (str, bytes)):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as e:
            raise ExecutionError(f"Command stream is not valid JSON: {e}") from e
    if not isinstance(data, list):
        raise ExecutionError("Command stream must be a JSON array")
    try:
        return _stream_adapter.validate_python([_upgrade(c) for c in data])
    except ValidationError as e:
        raise ExecutionError(f"Invalid command stream: {e}") from e


def dump_commands(commands: list[Command]) -> list[dict]:
    return _stream_adapter.dump_python(commands, mode="json")
