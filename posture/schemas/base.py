"""Shared schema base — camelCase on the wire, snake_case in Python."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for every request and response body."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
