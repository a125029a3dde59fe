from __future__ import annotations

from pydantic import BaseModel
from pydantic.config import ConfigDict


def to_camel(value: str) -> str:
    head, *rest = value.split("_")
    return head + "".join(word.capitalize() for word in rest)


class BaseSchema(BaseModel):
    """API-facing model: camelCase on the wire, snake_case in Python and cache payloads."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
