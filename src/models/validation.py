"""
Validation Models

Issues found while checking a file or setting value before it is accepted.
"""

from typing import Optional

from pydantic import BaseModel, Field


class ValidationIssue(BaseModel):
    """A single problem found in an incoming payload."""

    field: str = Field(
        ...,
        description="Path of the offending field, e.g. 'records[3]'"
    )
    issue_type: str = Field(
        ...,
        pattern="^(invalid_json|not_an_object|missing|wrong_type|invalid_value)$",
        description="Kind of problem"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning|info)$",
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )
