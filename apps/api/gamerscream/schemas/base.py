"""Shared base model for wire schemas."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Serialize snake_case fields as camelCase, accept either on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
