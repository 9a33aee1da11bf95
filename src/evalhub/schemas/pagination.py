# evalhub/schemas/pagination.py
from __future__ import annotations

from typing import Generic, List, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """Base for API payloads: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class PaginatedResponse(CamelModel, Generic[T]):
    items: List[T] = Field(default_factory=list)
    total_count: int = Field(0, ge=0)
    # true iff anything matches the base scope, ignoring additional filters
    any_in_project: bool = False
