"""Shared schema bases — camelCase wire format and the response envelope."""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """Serialises as camelCase; accepts camelCase or snake_case input."""

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "from_attributes": True,
    }

    def to_wire(self) -> dict:
        """JSON-ready dict with camelCase keys (socket payloads)."""
        return self.model_dump(mode="json", by_alias=True)


class ApiResponse(BaseModel, Generic[T]):
    success: bool = True
    message: str | None = None
    data: T | None = None
