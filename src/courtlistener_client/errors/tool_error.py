"""
Structured error shape returned by user-facing operations.

A ToolError has three fields: the error token, a human-readable message and
an optional remediation suggestion. It is the only error shape that crosses
into tool results; callers never see raw transport exceptions.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

from courtlistener_client.errors.classification import ClassifiedError, ErrorKind

if TYPE_CHECKING:
    from courtlistener_client.errors.base import ValidationError

NOT_FOUND_TOKEN = "NotFound"
"""Token for a user-facing miss. Not an ErrorKind: absence is valid data."""


class ToolError(BaseModel):
    """Structured error reported by a tool operation."""

    model_config = ConfigDict(frozen=True)

    error: str = Field(description="Error token, e.g. 'Unauthorized' or 'NotFound'")
    message: str = Field(description="Human-readable error message")
    suggestion: str | None = Field(default=None, description="How to resolve the error")

    @classmethod
    def from_classified(cls, error: ClassifiedError) -> ToolError:
        """Convert a classified call failure."""
        return cls(error=error.kind.value, message=error.message, suggestion=error.suggestion)

    @classmethod
    def from_validation(cls, exc: ValidationError) -> ToolError:
        """Convert a caller-side validation exception."""
        return cls(
            error=ErrorKind.VALIDATION_ERROR.value,
            message=exc.message,
            suggestion=exc.context.hint,
        )

    @classmethod
    def validation(cls, message: str, suggestion: str | None = None) -> ToolError:
        return cls(
            error=ErrorKind.VALIDATION_ERROR.value,
            message=message,
            suggestion=suggestion,
        )

    @classmethod
    def not_found(cls, resource: str, identifier: str | None = None) -> ToolError:
        """Report an absent resource as a user-facing miss."""
        if identifier:
            message = f"{resource} not found with ID: {identifier}"
        else:
            message = f"{resource} not found"
        return cls(error=NOT_FOUND_TOKEN, message=message, suggestion="Check if the ID is correct")

    @classmethod
    def api_error(cls, message: str, suggestion: str | None = "Check logs for details") -> ToolError:
        return cls(error=ErrorKind.API_ERROR.value, message=message, suggestion=suggestion)

    def to_dict(self) -> dict[str, Any]:
        """Serialize, omitting an empty suggestion."""
        return self.model_dump(exclude_none=True)
