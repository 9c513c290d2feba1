"""Error handling framework for SVNWS."""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, Any, Optional, Sequence


class ErrorCategory(Enum):
    """Categories of errors for structured error handling."""
    BACKEND = "backend"
    FILE_IO = "file_io"
    PARSE = "parse"
    VALIDATION = "validation"
    CANCELLED = "cancelled"
    INCOMPLETE = "incomplete"
    SYSTEM = "system"


class SvnwsError(Exception):
    """Base class of every error raised by SVNWS."""

    category = ErrorCategory.SYSTEM
    error_code = "SVNWS_ERROR"

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        return self.message


class BackendCommandError(SvnwsError):
    """A backend tool ran but exited with a non-zero status."""

    category = ErrorCategory.BACKEND
    error_code = "BACKEND_COMMAND_FAILED"

    def __init__(self, command: Sequence[str], returncode: int, stdout: str = "", stderr: str = ""):
        self.command = list(command)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(
            f"SVN command failed ({returncode}): {' '.join(self.command)}",
            {"command": self.command, "returncode": returncode, "stderr": stderr},
        )


class WorkspaceIOError(SvnwsError):
    """Filesystem or process-spawn failure."""

    category = ErrorCategory.FILE_IO
    error_code = "IO_ERROR"


class StatusParseError(SvnwsError):
    """Structured status or log output could not be parsed."""

    category = ErrorCategory.PARSE
    error_code = "PARSE_ERROR"


class ValidationError(SvnwsError):
    """Caller-supplied names or paths violate naming rules."""

    category = ErrorCategory.VALIDATION
    error_code = "VALIDATION_ERROR"


class RevisionParseError(ValidationError):
    """A revision argument could not be parsed or is out of range."""

    error_code = "REVISION_PARSE_ERROR"


class IgnoreRulesMissingError(ValidationError):
    """The ignore-rule file is absent, so status cannot be classified."""

    error_code = "IGNORE_RULES_MISSING"


class OperationCancelled(SvnwsError):
    """The operator explicitly declined to proceed."""

    category = ErrorCategory.CANCELLED
    error_code = "OPERATION_CANCELLED"

    def __init__(self, message: str = "Operation cancelled", context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context)


class IncompleteWorkingCopyError(SvnwsError):
    """Working copy metadata is inconsistent and needs external repair."""

    category = ErrorCategory.INCOMPLETE
    error_code = "WORKING_COPY_INCOMPLETE"

    def __init__(self, path: str):
        super().__init__(
            f"Workspace is in an incomplete state at '{path}'. "
            "Please run 'svn cleanup' and try again.",
            {"path": path},
        )
        self.path = path


@dataclass
class ErrorResponse:
    """Standardized error response format for tool results."""
    error: str
    error_code: str
    message: str
    timestamp: str
    category: str
    context: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert error response to dictionary format."""
        result = {
            "error": self.error,
            "error_code": self.error_code,
            "message": self.message,
            "timestamp": self.timestamp,
            "category": self.category
        }
        if self.context:
            result["context"] = self.context
        return result


class ErrorHandler:
    """Turns SVNWS exceptions into response payloads and logs them."""

    def __init__(self):
        self.logger = logging.getLogger('svnws.error_handler')

    def handle_error(self, error: Exception, operation: str, context: Optional[Dict[str, Any]] = None) -> ErrorResponse:
        """Convert an exception raised by an operation into an ErrorResponse."""
        merged_context = dict(context or {})

        if isinstance(error, SvnwsError):
            merged_context.update(error.context)
            category = error.category
            error_code = error.error_code
            message = error.message
        elif isinstance(error, OSError):
            category = ErrorCategory.FILE_IO
            error_code = "IO_ERROR"
            message = f"File system error: {error}"
        else:
            category = ErrorCategory.SYSTEM
            error_code = "UNEXPECTED_ERROR"
            message = f"{operation} failed: {error}"

        if category == ErrorCategory.CANCELLED:
            self.logger.info(f"{operation} cancelled: {message}", extra={'operation': operation})
        elif category in (ErrorCategory.VALIDATION, ErrorCategory.INCOMPLETE):
            self.logger.warning(f"{operation} rejected: {message}", extra={'operation': operation})
        else:
            self.logger.error(
                f"{operation} failed: {message}",
                extra={'operation': operation, 'error_code': error_code},
                exc_info=category == ErrorCategory.SYSTEM,
            )

        return ErrorResponse(
            error="Operation cancelled" if category == ErrorCategory.CANCELLED else f"{operation} failed",
            error_code=error_code,
            message=message,
            timestamp=datetime.now().isoformat(),
            category=category.value,
            context=merged_context or None,
        )

    def create_success_response(self, operation: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Create a standardized success response."""
        return {
            "success": True,
            "operation": operation,
            "timestamp": datetime.now().isoformat(),
            "data": data
        }


# Initialize global error handler
error_handler = ErrorHandler()
