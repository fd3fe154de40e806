"""
Custom Exception Classes for the Matchmaker service
"""
import asyncio
import functools
from random import uniform
from typing import Dict, Any

from fastapi import HTTPException


class MatchmakerBaseException(Exception):
    """Base exception for the Matchmaker service"""

    def __init__(
        self,
        message: str,
        error_code: str = None,
        details: Dict[str, Any] = None,
        cause: Exception = None
    ):
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        self.cause = cause
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/response"""
        result = {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details
        }
        if self.cause:
            result["cause"] = str(self.cause)
        return result


class ValidationError(MatchmakerBaseException):
    """Raised when request or document data validation fails"""

    def __init__(self, message: str, field: str = None, value: Any = None, **kwargs):
        details = kwargs.pop('details', {})
        if field:
            details['field'] = field
        if value is not None:
            details['invalid_value'] = str(value)
        super().__init__(message, error_code="VALIDATION_ERROR", details=details, **kwargs)


class DatabaseError(MatchmakerBaseException):
    """Raised when document store operations fail"""

    def __init__(self, message: str, operation: str = None, collection: str = None, **kwargs):
        details = kwargs.pop('details', {})
        if operation:
            details['operation'] = operation
        if collection:
            details['collection'] = collection
        super().__init__(message, error_code="DATABASE_ERROR", details=details, **kwargs)


class ModelError(MatchmakerBaseException):
    """Raised when every model tier failed to produce a response"""

    def __init__(self, message: str, model_name: str = None, model_type: str = None, **kwargs):
        details = kwargs.pop('details', {})
        if model_name:
            details['model_name'] = model_name
        if model_type:
            details['model_type'] = model_type
        super().__init__(message, error_code="MODEL_ERROR", details=details, **kwargs)


class ConfigurationError(MatchmakerBaseException):
    """Raised when configuration is invalid or missing"""

    def __init__(self, message: str, config_key: str = None, config_value: Any = None, **kwargs):
        details = kwargs.pop('details', {})
        if config_key:
            details['config_key'] = config_key
        if config_value is not None:
            details['config_value'] = str(config_value)
        super().__init__(message, error_code="CONFIGURATION_ERROR", details=details, **kwargs)


class ExternalServiceError(MatchmakerBaseException):
    """Raised when a single external service call fails"""

    def __init__(self, message: str, service_name: str = None, status_code: int = None, **kwargs):
        details = kwargs.pop('details', {})
        if service_name:
            details['service_name'] = service_name
        if status_code:
            details['status_code'] = status_code
        super().__init__(message, error_code="EXTERNAL_SERVICE_ERROR", details=details, **kwargs)


def map_to_http_exception(exc: MatchmakerBaseException) -> HTTPException:
    """Map custom exceptions to HTTP exceptions"""

    status_code_mapping = {
        ValidationError: 400,
        ConfigurationError: 500,
        DatabaseError: 500,
        ModelError: 500,
        ExternalServiceError: 502,
    }

    status_code = status_code_mapping.get(type(exc), 500)

    detail = {
        "error": exc.to_dict(),
        "message": exc.message
    }

    return HTTPException(status_code=status_code, detail=detail)


class ExceptionContext:
    """Context manager for handling exceptions with additional context"""

    def __init__(self, operation: str, logger=None, **context):
        self.operation = operation
        self.logger = logger
        self.context = context

    def __enter__(self):
        if self.logger:
            self.logger.debug(f"Starting operation: {self.operation}", extra=self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            if self.logger:
                self.logger.debug(f"Operation completed: {self.operation}", extra=self.context)
            return False

        if self.logger:
            self.logger.error(
                f"Operation failed: {self.operation} - {exc_val}",
                extra={**self.context, "exception_type": exc_type.__name__}
            )

        # Custom exceptions and HTTP errors pass through untouched
        if isinstance(exc_val, (MatchmakerBaseException, HTTPException)):
            return False

        if isinstance(exc_val, (KeyError, ValueError, TypeError)):
            raise ValidationError(
                f"Validation error in {self.operation}: {str(exc_val)}",
                details=dict(self.context),
                cause=exc_val
            ) from exc_val

        raise DatabaseError(
            f"Database error in {self.operation}: {str(exc_val)}",
            operation=self.operation,
            details=dict(self.context),
            cause=exc_val
        ) from exc_val


def retry_with_logging(
    max_attempts: int = 3,
    backoff_factor: float = 1.0,
    exceptions: tuple = (Exception,),
    logger=None
):
    """Retry a coroutine with exponential backoff; the last failure is re-raised"""

    def decorator(func):
        name = getattr(func, "__qualname__", repr(func))

        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            for attempt in range(1, max_attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    if logger:
                        logger.warning(f"Attempt {attempt}/{max_attempts} failed for {name}: {e}")
                    if attempt == max_attempts:
                        if logger:
                            logger.error(f"All {max_attempts} attempts failed for {name}")
                        raise
                    await asyncio.sleep(backoff_factor * (2 ** (attempt - 1)) + uniform(0, 1))

        return wrapper

    return decorator
