"""
Shared error handling for the ticket rule engine.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    code: str
    message: str
    details: Dict[str, Any] = {}


class RuleEngineException(Exception):
    """Base exception for rule engine components."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            code=self.code,
            message=self.message,
            details=self.details
        )


class TicketNotFoundError(RuleEngineException):
    """Ticket lookup failed at the start of a rule pass."""

    def __init__(self, ticket_id: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("TICKET_NOT_FOUND", f"Ticket {ticket_id} not found", details)
        self.ticket_id = ticket_id


class ValidationError(RuleEngineException):
    """Validation-related errors."""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class InvalidActionConfigError(RuleEngineException):
    """Action parameters do not fit the shape required by the action type."""

    def __init__(self, action_type: str, message: str = "Invalid action configuration",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__("INVALID_ACTION_CONFIG", f"{action_type}: {message}", details)
        self.action_type = action_type


class ActionExecutionError(RuleEngineException):
    """Action execution errors."""

    def __init__(self, message: str = "Action execution failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("ACTION_EXECUTION_ERROR", message, details)
