"""
Gas Cylinder Models

The kitchen runs on banks of LPG cylinders. Every swap, delivery or stock
count is logged; the current stock is always derived from the log.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from src.models.record import SCHEMA_VERSION_KEY, DocumentModel


GAS_LOG_SCHEMA_VERSION = 1


class GasLogType(str, Enum):
    """What a gas log entry records."""
    USAGE = "USAGE"            # Empty cylinders swapped out of the bank
    REFILL = "REFILL"          # Full cylinders delivered
    ADJUSTMENT = "ADJUSTMENT"  # Physical count; overwrites the stock


class GasLog(DocumentModel):
    """A single gas log entry."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    date: str = Field(
        ...,
        description="ISO 8601 timestamp of the event"
    )
    type: GasLogType = GasLogType.USAGE
    count: int = Field(default=0, ge=0)
    notes: Optional[str] = Field(default=None, max_length=500)

    @field_validator('date')
    @classmethod
    def validate_timestamp(cls, v: str) -> str:
        parse_timestamp(v)
        return v

    @property
    def timestamp(self) -> datetime:
        return parse_timestamp(self.date)

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> 'GasLog':
        data = {k: v for k, v in document.items() if k != SCHEMA_VERSION_KEY}
        return cls.model_validate(data)

    def to_document(self) -> dict[str, Any]:
        document = self.to_json_dict()
        document[SCHEMA_VERSION_KEY] = GAS_LOG_SCHEMA_VERSION
        return document


class GasConfig(DocumentModel):
    """Cylinder setup of the kitchen."""

    current_stock: int = Field(
        default=0,
        description="Legacy cached stock; the live value is derived from logs"
    )
    cylinders_per_bank: int = Field(
        default=2,
        ge=0,
        description="Cylinders connected to the stove at once"
    )
    total_cylinders: int = Field(
        default=6,
        ge=0,
        description="Cylinders owned (active + full + empty)"
    )


class GasState(BaseModel):
    """Derived view of the gas inventory. Never stored."""

    current_stock: int = Field(
        ...,
        ge=0,
        description="Full cylinders in stock, clamped at zero"
    )
    raw_stock: int = Field(
        ...,
        description="Running total from the log; negative means missing refills"
    )
    empty_cylinders: int = Field(..., ge=0)
    avg_daily_usage: float = Field(..., ge=0)
    days_since_last_swap: int = Field(
        ...,
        description="Days since the newest USAGE entry, -1 if none"
    )
    projected_days_left: Optional[int] = Field(
        default=None,
        description="Days until stock runs out; None when usage is unknown"
    )


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO timestamp, accepting a trailing 'Z' for UTC."""
    if not isinstance(value, str) or not value:
        raise ValueError(f"Timestamp must be a non-empty string, got {value!r}")
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        raise ValueError(f"Not a valid ISO timestamp: {value!r}")
