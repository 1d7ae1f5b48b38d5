"""Custom exceptions for the Strata vault.

Provides a structured exception hierarchy with error codes and
machine-readable error information for better error handling.
"""
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCode(Enum):
    """Error codes for machine-readable error identification."""

    # Entry errors (1xxx)
    ENTRY_VALIDATION_FAILED = 1002

    # Connection errors (2xxx)
    CONNECTION_INVALID = 2001
    CONNECTION_SELF_REFERENCE = 2002

    # Storage errors (4xxx)
    STORAGE_READ_FAILED = 4001
    STORAGE_WRITE_FAILED = 4002
    STORAGE_DELETE_FAILED = 4003

    # Bulk operation errors (45xx)
    BULK_OPERATION_FAILED = 4501
    BULK_OPERATION_PARTIAL = 4502

    # Configuration errors (6xxx)
    CONFIG_INVALID = 6001

    # Validation errors (7xxx)
    VALIDATION_FAILED = 7001
    PATH_TRAVERSAL_DETECTED = 7005


class StrataError(Exception):
    """Base exception for all Strata vault errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context about the error
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for serialization."""
        return {
            "error": self.__class__.__name__,
            "code": self.code.value,
            "code_name": self.code.name,
            "message": self.message,
            "details": self.details
        }

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"[{self.code.name}] {self.message} ({detail_str})"
        return f"[{self.code.name}] {self.message}"


class ConnectionValidationError(StrataError):
    """Raised when a connection between two entries is not acceptable."""

    def __init__(
        self,
        message: str,
        source_id: Optional[str] = None,
        target_id: Optional[str] = None,
        code: ErrorCode = ErrorCode.CONNECTION_INVALID
    ):
        details = {}
        if source_id:
            details["from"] = source_id
        if target_id:
            details["to"] = target_id

        super().__init__(message, code=code, details=details)
        self.source_id = source_id
        self.target_id = target_id


class StorageError(StrataError):
    """Raised for storage/persistence errors."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        path: Optional[str] = None,
        code: ErrorCode = ErrorCode.STORAGE_READ_FAILED,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if path:
            # Don't expose full paths in error messages
            details["path_hint"] = path.split("/")[-1] if "/" in path else path
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=code, details=details)
        self.operation = operation
        self.path = path
        self.original_error = original_error


class ConfigurationError(StrataError):
    """Raised for configuration-related errors."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        code: ErrorCode = ErrorCode.CONFIG_INVALID
    ):
        details = {}
        if config_key:
            details["config_key"] = config_key

        super().__init__(message, code=code, details=details)
        self.config_key = config_key


class ValidationError(StrataError):
    """Raised for general validation errors."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED
    ):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)[:100]

        super().__init__(message, code=code, details=details)
        self.field = field
        self.value = value


class BulkOperationError(StrataError):
    """Raised when a multi-entry operation stops partway.

    Entries rewritten before the failure keep their new state; nothing is
    rolled back.

    Attributes:
        operation: Name of the bulk operation (e.g., "rename_section")
        total_count: Total number of entries the operation meant to touch
        success_count: Number of entries already rewritten
        failed_ids: IDs that were not rewritten (full list, not truncated)
        original_error: The underlying exception if applicable
    """

    def __init__(
        self,
        message: str,
        operation: str,
        total_count: int = 0,
        success_count: int = 0,
        failed_ids: Optional[List[str]] = None,
        code: ErrorCode = ErrorCode.BULK_OPERATION_PARTIAL,
        original_error: Optional[Exception] = None
    ):
        if total_count < 0:
            raise ValueError("total_count must be non-negative")
        if success_count < 0:
            raise ValueError("success_count must be non-negative")
        if success_count > total_count:
            raise ValueError("success_count cannot exceed total_count")

        details = {
            "operation": operation,
            "total_count": total_count,
            "success_count": success_count,
            "failed_count": total_count - success_count
        }
        if failed_ids:
            details["failed_ids"] = failed_ids[:10]
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=code, details=details)
        self.operation = operation
        self.total_count = total_count
        self.success_count = success_count
        self.failed_ids: List[str] = list(failed_ids) if failed_ids else []
        self.original_error = original_error

    @property
    def failed_count(self) -> int:
        """Number of entries not rewritten (computed from total - success)."""
        return self.total_count - self.success_count
