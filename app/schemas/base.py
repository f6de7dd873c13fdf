"""
Base Schema Classes for Pydantic Models

RULE: All response schemas that use `from_attributes=True` MUST inherit from BaseResponseSchema.
"""

from datetime import datetime
from typing import Any, ClassVar
from uuid import UUID
from pydantic import BaseModel, ConfigDict, ValidationInfo, field_validator

from app.services.commission_calculator import coerce_amount


class BaseResponseSchema(BaseModel):
    """
    Base class for all response schemas that read from ORM models.

    Usage:
        class SalesAgentResponse(BaseResponseSchema):
            id: UUID
            name: str
    """
    model_config = ConfigDict(
        from_attributes=True,
        json_encoders={
            UUID: str,
            datetime: lambda v: v.isoformat() if v else None,
        },
        populate_by_name=True,
    )


class BaseCreateSchema(BaseModel):
    """Base class for create/input schemas. Unknown fields are ignored."""
    model_config = ConfigDict(
        extra='ignore',
    )


class BaseUpdateSchema(BaseModel):
    """
    Base class for update/patch schemas.

    All fields are optional; only fields present in the request are applied
    (use model_dump(exclude_unset=True)).
    """
    model_config = ConfigDict(
        extra='ignore',
    )


class LenientAmountsSchema(BaseCreateSchema):
    """
    Input schema for live form recalculation.

    Every field listed in `amount_fields` accepts blanks, formatted numbers and
    garbage; anything that is not a finite number is read as 0.
    """
    amount_fields: ClassVar[tuple] = ()

    @field_validator("*", mode="before")
    @classmethod
    def _coerce_amounts(cls, value: Any, info: ValidationInfo) -> Any:
        if info.field_name in cls.amount_fields:
            return coerce_amount(value)
        return value


class ListResponseSchema(BaseModel):
    """Paginated list envelope."""
    total: int
    skip: int = 0
    limit: int = 100
