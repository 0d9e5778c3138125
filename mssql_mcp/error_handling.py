"""Centralized error handling and response management."""

import logging
import time
from datetime import datetime
from enum import Enum
from typing import Dict, Any, Optional, Iterable

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ErrorType(Enum):
    """Standardized error types for consistent handling."""
    NOT_FOUND = "not_found_error"
    INVALID_ARGUMENTS = "invalid_arguments"
    POLICY_VIOLATION = "policy_violation"
    INTERNAL = "internal_error"
    CONNECTION = "connection_error"
    CONFIGURATION = "configuration_error"


class MssqlMcpError(Exception):
    """Base exception class for the SQL Server MCP server."""

    def __init__(self, message: str, error_type: ErrorType = ErrorType.INTERNAL,
                 details: Optional[str] = None, original_error: Optional[Exception] = None,
                 operation: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.details = details
        self.original_error = original_error
        self.operation = operation

    def to_response(self) -> Dict[str, Any]:
        return create_error_response(self.message, self.error_type, self.details, self.operation)

    def to_json(self) -> str:
        return ErrorResponse(**self.to_response()).model_dump_json(exclude_none=True, indent=2)


class NotFoundError(MssqlMcpError):
    """Unknown operation, or a metadata lookup that resolved to nothing."""

    def __init__(self, message: str, details: Optional[str] = None, operation: Optional[str] = None):
        super().__init__(message, ErrorType.NOT_FOUND, details, operation=operation)


class InvalidArgumentsError(MssqlMcpError):
    """Exception for missing or malformed tool arguments."""

    def __init__(self, message: str, details: Optional[str] = None, operation: Optional[str] = None):
        super().__init__(message, ErrorType.INVALID_ARGUMENTS, details, operation=operation)


class PolicyViolationError(MssqlMcpError):
    """Exception for statements refused by the write guard."""

    def __init__(self, message: str, details: Optional[str] = None, operation: Optional[str] = None):
        super().__init__(message, ErrorType.POLICY_VIOLATION, details, operation=operation)


class InternalError(MssqlMcpError):
    """Wraps any driver or database failure raised while an operation runs."""

    def __init__(self, message: str, operation: Optional[str] = None,
                 original_error: Optional[Exception] = None):
        details = f"Unexpected {type(original_error).__name__}" if original_error else None
        super().__init__(message, ErrorType.INTERNAL, details, original_error, operation)


class ConnectionError(MssqlMcpError):
    """Exception for database connection errors."""

    def __init__(self, message: str, details: Optional[str] = None, original_error: Optional[Exception] = None):
        super().__init__(message, ErrorType.CONNECTION, details, original_error)


class ConfigurationError(MssqlMcpError):
    """Missing or unusable startup configuration. Fatal."""

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message, ErrorType.CONFIGURATION, details)


class ErrorResponse(BaseModel):
    """Standardized error response format."""
    success: bool = False
    error: str
    error_type: str = ErrorType.INTERNAL.value
    timestamp: str
    operation: Optional[str] = None
    details: Optional[str] = None


def create_error_response(
    message: str,
    error_type: ErrorType,
    details: Optional[str] = None,
    operation: Optional[str] = None
) -> Dict[str, Any]:
    """Create a standardized error response.

    Args:
        message: Human-readable error message
        error_type: Type of error (from ErrorType enum)
        details: Additional error details
        operation: Name of the tool that failed

    Returns:
        Standardized error response dictionary
    """
    response = ErrorResponse(
        error=message,
        error_type=error_type.value,
        timestamp=datetime.now().isoformat(),
        operation=operation or None,
        details=details or None,
    )
    return response.model_dump(exclude_none=True)


class ErrorContext:
    """Context manager that times an operation and logs its outcome."""

    def __init__(self, operation_name: str):
        self.operation_name = operation_name
        self.start_time = None

    def __enter__(self):
        self.start_time = time.time()
        logger.debug(f"Starting operation: {self.operation_name}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration = time.time() - self.start_time

        if exc_type is None:
            logger.info(f"Operation completed successfully: {self.operation_name} ({duration:.2f}s)")
        elif issubclass(exc_type, (InvalidArgumentsError, NotFoundError, PolicyViolationError)):
            logger.warning(f"Operation rejected: {self.operation_name} ({duration:.2f}s) - {exc_val}")
        else:
            logger.error(f"Operation failed: {self.operation_name} ({duration:.2f}s) - {exc_type.__name__}: {exc_val}")

        # Don't suppress exceptions
        return False


def validate_required_params(params: Dict[str, Any], required_keys: Iterable[str],
                             operation: Optional[str] = None) -> None:
    """Validate that required parameters are present and not None.

    Args:
        params: Dictionary of parameters
        required_keys: Required parameter names
        operation: Tool name reported in the error

    Raises:
        InvalidArgumentsError: If any required parameters are missing
    """
    required_keys = list(required_keys)
    missing_keys = []
    for key in required_keys:
        if key not in params or params[key] is None:
            missing_keys.append(key)

    if missing_keys:
        raise InvalidArgumentsError(
            f"Missing required parameters: {', '.join(missing_keys)}",
            details=f"Required parameters: {', '.join(required_keys)}",
            operation=operation
        )


def validate_parameter_types(params: Dict[str, Any], type_specs: Dict[str, tuple],
                             operation: Optional[str] = None) -> None:
    """Validate parameter types.

    Args:
        params: Dictionary of parameters
        type_specs: Dictionary mapping parameter names to accepted Python types
        operation: Tool name reported in the error

    Raises:
        InvalidArgumentsError: If any parameters have wrong types
    """
    type_errors = []
    for key, expected_types in type_specs.items():
        if key in params and params[key] is not None:
            value = params[key]
            # bool is an int subclass but never a valid count
            if isinstance(value, bool) and bool not in expected_types:
                type_errors.append(f"{key} should be {expected_types[0].__name__}, got bool")
            elif not isinstance(value, expected_types):
                type_errors.append(f"{key} should be {expected_types[0].__name__}, got {type(value).__name__}")

    if type_errors:
        raise InvalidArgumentsError(
            f"Parameter type errors: {'; '.join(type_errors)}",
            details="Check parameter types in your request",
            operation=operation
        )
