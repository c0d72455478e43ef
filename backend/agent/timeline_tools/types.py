from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ErrorSeverity(str, Enum):
    RECOVERABLE = "recoverable"
    USER_INPUT = "user_input"
    STATE_MISMATCH = "state_mismatch"
    VALIDATION = "validation"
    SYSTEM = "system"


class ToolError(BaseModel):
    severity: ErrorSeverity
    code: str
    message: str
    recovery_hint: str | None = None
    affected_field: str | None = None
    context: dict[str, Any] = Field(default_factory=dict)

    def to_response(self) -> dict[str, Any]:
        return {
            "success": False,
            "message": self.message,
            "error_code": self.code,
            "severity": self.severity.value,
            "recovery_hint": self.recovery_hint,
            "affected_field": self.affected_field,
            "context": self.context,
        }
