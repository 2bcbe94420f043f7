"""Command messages accepted from the settings UI.

Commands form a closed tagged union discriminated on ``type``. Anything that
fails validation — unknown type, missing field, non-string ``value`` — parses
to None and is answered with ``{}``.

    ADD_RULE       {value: str}      → {ok: true}
    REMOVE_RULE    {value: str}      → {ok: true}
    LIST_RULES     {}                → {rules: [...]}
    LIST_SEEN      {filter?: str}    → {seen: [...]}
    SET_LOGGING    {enabled: bool}   → {ok: true}
    CLEAR_SEEN     {}                → {ok: true}
    VALIDATE_RULE  {value: str}      → {ok: bool, error: str | null}
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field, StrictBool, StrictStr, TypeAdapter, ValidationError


class AddRule(BaseModel):
    type: Literal["ADD_RULE"]
    value: StrictStr


class RemoveRule(BaseModel):
    type: Literal["REMOVE_RULE"]
    value: StrictStr


class ListRules(BaseModel):
    type: Literal["LIST_RULES"]


class ListSeen(BaseModel):
    type: Literal["LIST_SEEN"]
    filter: Optional[StrictStr] = None


class SetLogging(BaseModel):
    type: Literal["SET_LOGGING"]
    enabled: StrictBool


class ClearSeen(BaseModel):
    type: Literal["CLEAR_SEEN"]


class ValidateRule(BaseModel):
    type: Literal["VALIDATE_RULE"]
    value: StrictStr


Command = Annotated[
    Union[AddRule, RemoveRule, ListRules, ListSeen, SetLogging, ClearSeen, ValidateRule],
    Field(discriminator="type"),
]

_COMMAND_ADAPTER: TypeAdapter[Command] = TypeAdapter(Command)


def parse_command(payload: Any) -> Optional[Command]:
    """Validate a raw message payload. Returns None for unrecognized messages."""
    try:
        return _COMMAND_ADAPTER.validate_python(payload)
    except ValidationError:
        return None
