"""Blue Carbon Registry Exception Hierarchy.

Exceptions raised by the registry service and mapped to HTTP responses by
the REST layer. Every exception carries rich context for logging and for
the JSON error body returned to clients.

Exception Hierarchy:
    BlueCarbonException (base)
    ├── ValidationError          (400)
    ├── NotFoundError            (404)
    ├── ForbiddenError           (403)
    ├── InvalidTransitionError   (400)
    └── StorageError             (500)

All exceptions include:
- error_code: Unique error identifier (e.g. "BC_NOT_FOUND_ERROR")
- http_status: Status code used by the REST layer
- context: Dictionary with error-specific details
- timestamp: When the error occurred

Example:
    >>> from bluecarbon.exceptions import InvalidTransitionError
    >>> raise InvalidTransitionError(
    ...     message="Cannot verify project in state 'verified'",
    ...     entity_type="project",
    ...     current_state="verified",
    ...     attempted="verify",
    ... )
"""

from typing import Any, Dict, List, Optional
from datetime import datetime, timezone
import json
import re


# ==============================================================================
# Base Exception
# ==============================================================================

class BlueCarbonException(Exception):
    """Base exception for all registry errors.

    Attributes:
        message: Human-readable error message
        error_code: Unique error identifier
        context: Dictionary with error-specific details
        timestamp: When the error occurred (UTC)
    """

    ERROR_PREFIX = "BC"
    http_status = 500

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self._generate_error_code()
        self.context = context or {}
        self.timestamp = datetime.now(timezone.utc)

    def _generate_error_code(self) -> str:
        """Generate error code from the class name.

        Returns:
            Error code like "BC_NOT_FOUND_ERROR"
        """
        class_name = self.__class__.__name__
        # CamelCase -> SCREAMING_SNAKE_CASE
        error_type = re.sub(r'(?<!^)(?=[A-Z])', '_', class_name).upper()
        return f"{self.ERROR_PREFIX}_{error_type}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for serialization.

        Returns:
            Dictionary with all error details
        """
        return {
            "error": self.message,
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }

    def to_json(self) -> str:
        """Convert exception to JSON string."""
        return json.dumps(self.to_dict(), indent=2, default=str)

    def __str__(self) -> str:
        return f"[{self.error_code}] - {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message='{self.message}', "
            f"error_code='{self.error_code}')"
        )


# ==============================================================================
# Registry Exceptions
# ==============================================================================

class ValidationError(BlueCarbonException):
    """Input is malformed or out of range.

    Example:
        >>> raise ValidationError(
        ...     message="Validation failed",
        ...     invalid_fields={"area": "Area must be greater than 0"},
        ... )
    """

    http_status = 400

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        invalid_fields: Optional[Dict[str, str]] = None,
    ):
        """Initialize validation error.

        Args:
            message: Error message
            context: Error context
            invalid_fields: Dictionary of field_name -> reason
        """
        context = context or {}
        self.invalid_fields = dict(invalid_fields or {})
        if self.invalid_fields:
            context["invalid_fields"] = self.invalid_fields
        super().__init__(message, context=context)

    @property
    def details(self) -> List[Dict[str, str]]:
        """Field-level error list as returned in 400 responses."""
        return [
            {"field": field, "message": reason}
            for field, reason in self.invalid_fields.items()
        ]

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["details"] = self.details
        return data


class NotFoundError(BlueCarbonException):
    """Entity id is unknown."""

    http_status = 404

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
    ):
        context = context or {}
        if entity_type:
            context["entity_type"] = entity_type
        if entity_id:
            context["entity_id"] = entity_id
        super().__init__(message, context=context)


class ForbiddenError(BlueCarbonException):
    """Actor lacks the role required for an action."""

    http_status = 403

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        required_role: Optional[str] = None,
        actor_role: Optional[str] = None,
    ):
        context = context or {}
        if required_role:
            context["required_role"] = required_role
        if actor_role:
            context["actor_role"] = actor_role
        super().__init__(message, context=context)


class InvalidTransitionError(BlueCarbonException):
    """Target state is unreachable from the current state.

    Example:
        >>> raise InvalidTransitionError(
        ...     message="MRV data already verified",
        ...     entity_type="mrv_data",
        ...     current_state="verified",
        ...     attempted="verify",
        ... )
    """

    http_status = 400

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        entity_type: Optional[str] = None,
        current_state: Optional[str] = None,
        attempted: Optional[str] = None,
    ):
        context = context or {}
        self.current_state = current_state
        self.attempted = attempted
        if entity_type:
            context["entity_type"] = entity_type
        if current_state:
            context["current_state"] = current_state
        if attempted:
            context["attempted"] = attempted
        super().__init__(message, context=context)


class StorageError(BlueCarbonException):
    """Reading or writing a collection file failed.

    Logged by the REST layer and surfaced as 500; never retried.
    """

    http_status = 500

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        collection: Optional[str] = None,
        operation: Optional[str] = None,
        cause: Optional[Exception] = None,
    ):
        context = context or {}
        if collection:
            context["collection"] = collection
        if operation:
            context["operation"] = operation
        if cause:
            context["cause"] = str(cause)
            context["cause_type"] = type(cause).__name__
        super().__init__(message, context=context)


# ==============================================================================
# Exception Utilities
# ==============================================================================

def format_exception_chain(exc: Exception) -> str:
    """Format exception chain for logging/display.

    Args:
        exc: Exception to format

    Returns:
        Formatted string with full exception chain
    """
    lines = []
    current = exc

    while current is not None:
        if isinstance(current, BlueCarbonException):
            lines.append(str(current))
            lines.append(f"  Context: {current.context}")
        else:
            lines.append(f"{type(current).__name__}: {current}")

        current = getattr(current, "__cause__", None)

    return "\n".join(lines)


__all__ = [
    "BlueCarbonException",
    "ValidationError",
    "NotFoundError",
    "ForbiddenError",
    "InvalidTransitionError",
    "StorageError",
    "format_exception_chain",
]
