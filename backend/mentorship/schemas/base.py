"""Shared request/response bases and the Money field type."""

from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic_core import core_schema


class StandardizedModel(BaseModel):
    """Response base that reads straight from ORM rows."""

    model_config = ConfigDict(from_attributes=True, use_enum_values=True, populate_by_name=True)


class StrictRequestModel(BaseModel):
    """Request DTO base that always forbids unexpected fields."""

    model_config = ConfigDict(extra="forbid", validate_default=True, validate_assignment=True)


class Money(Decimal):
    """Decimal in Python, a JSON number on the wire."""

    @classmethod
    def __get_pydantic_core_schema__(cls, source_type: Any, handler: Any) -> core_schema.CoreSchema:
        def to_decimal(value: Any) -> Decimal:
            if isinstance(value, bool) or not isinstance(value, (Decimal, int, float, str)):
                raise ValueError(f"Cannot convert {type(value).__name__} to money")
            try:
                return value if isinstance(value, Decimal) else Decimal(str(value))
            except InvalidOperation as exc:
                raise ValueError(f"Invalid amount: {value!r}") from exc

        return core_schema.no_info_plain_validator_function(
            to_decimal,
            serialization=core_schema.plain_serializer_function_ser_schema(float, when_used="json"),
        )
