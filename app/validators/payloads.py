"""
Input shapes accepted by the engine.

Pydantic models for task submissions and external sale webhooks.
"""

from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.validators.unified import (
    MAX_AMOUNT,
    validate_amount,
    validate_reference,
)


class SubmissionPayload(BaseModel):
    """Work evidence attached to a task submission."""

    model_config = ConfigDict(extra="allow")

    notes: str | None = Field(default=None, max_length=5000)
    hours: Decimal | None = Field(default=None, ge=0, le=1000)
    attachments: list[str] = Field(default_factory=list, max_length=20)

    def to_storage(self) -> dict[str, Any]:
        """JSON-safe dict for the submission_payload column."""
        return self.model_dump(mode="json", exclude_none=True)


class SalePayload(BaseModel):
    """External token sale as delivered by the sales webhook."""

    model_config = ConfigDict(extra="ignore")

    profile_id: int = Field(..., gt=0)
    amount: Decimal
    external_reference: str

    @field_validator("amount", mode="before")
    @classmethod
    def validate_sale_amount(cls, v: Any) -> Decimal:
        is_valid, value, error = validate_amount(v, max_val=MAX_AMOUNT)
        if not is_valid:
            raise ValueError(error)
        return value

    @field_validator("external_reference", mode="before")
    @classmethod
    def validate_external_reference(cls, v: Any) -> str:
        is_valid, value, error = validate_reference(v)
        if not is_valid:
            raise ValueError(error)
        return value
