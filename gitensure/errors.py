"""Error taxonomy and error response handling for gitensure."""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Sequence


class ReconcileError(Exception):
    """Base class for every failure raised while reconciling a repository."""

    error_code = "RECONCILE_ERROR"


class ConfigConflict(ReconcileError):
    """Contradictory desired settings, e.g. a revision on a bare repository."""

    error_code = "CONFIG_CONFLICT"


class PathConflict(ReconcileError):
    """The target path holds something other than the desired repository."""

    error_code = "PATH_CONFLICT"


class RefNotFound(ReconcileError):
    """A revision resolved to no tag, branch or commit."""

    error_code = "REF_NOT_FOUND"

    def __init__(self, revision: str):
        super().__init__(f"{revision} is not a local or remote ref")
        self.revision = revision


class UnsupportedFeature(ReconcileError):
    """The installed git is too old for a requested capability."""

    error_code = "UNSUPPORTED_FEATURE"

    def __init__(self, message: str, required_version: str):
        super().__init__(message)
        self.required_version = required_version


class CommandError(ReconcileError):
    """git exited non-zero."""

    error_code = "COMMAND_FAILED"

    def __init__(self, command: Sequence[str], status: Optional[int], output: str):
        self.command = list(command)
        self.status = status
        self.output = output
        super().__init__(
            f"Execution of '{' '.join(self.command)}' returned {status}: {output}"
        )


class ErrorCategory(Enum):
    """Categories of errors for structured error handling."""
    CONFIGURATION = "configuration"
    NETWORK = "network"
    AUTHENTICATION = "authentication"
    REPOSITORY_ACCESS = "repository_access"
    REVISION = "revision"
    GIT_VERSION = "git_version"
    SYSTEM = "system"


# Substrings of git output, checked in order
COMMAND_ERROR_PATTERNS = [
    ("could not resolve host", ErrorCategory.NETWORK),
    ("connection timed out", ErrorCategory.NETWORK),
    ("connection refused", ErrorCategory.NETWORK),
    ("unable to access", ErrorCategory.NETWORK),
    ("permission denied (publickey", ErrorCategory.AUTHENTICATION),
    ("authentication failed", ErrorCategory.AUTHENTICATION),
    ("could not read username", ErrorCategory.AUTHENTICATION),
    ("not a git repository", ErrorCategory.REPOSITORY_ACCESS),
    ("does not appear to be a git repository", ErrorCategory.REPOSITORY_ACCESS),
    ("dubious ownership", ErrorCategory.REPOSITORY_ACCESS),
    ("already exists and is not an empty directory", ErrorCategory.REPOSITORY_ACCESS),
]


@dataclass
class ErrorResponse:
    """Standardized error response format for reconciliation operations."""
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
    """Maps reconciliation failures onto ErrorResponse values."""

    def __init__(self):
        self.logger = logging.getLogger('gitensure.error_handler')

    def categorize_command_error(self, error: CommandError) -> ErrorCategory:
        """Categorize a failed git invocation by its output."""
        output = (error.output or "").lower()
        for pattern, category in COMMAND_ERROR_PATTERNS:
            if pattern in output:
                return category
        return ErrorCategory.SYSTEM

    def handle_reconcile_error(self, error: Exception, context: Dict[str, Any] = None) -> ErrorResponse:
        """Handle any failure raised while converging a repository."""
        context = context or {}

        if isinstance(error, CommandError):
            category = self.categorize_command_error(error)
            error_code = f"{category.value.upper()}_{error.error_code}"
            message = f"Git command failed: {error}"
            if error.status is not None:
                context = dict(context, exit_status=error.status)
        elif isinstance(error, (ConfigConflict, PathConflict)):
            category = ErrorCategory.CONFIGURATION
            error_code = error.error_code
            message = str(error)
        elif isinstance(error, RefNotFound):
            category = ErrorCategory.REVISION
            error_code = error.error_code
            message = str(error)
        elif isinstance(error, UnsupportedFeature):
            category = ErrorCategory.GIT_VERSION
            error_code = error.error_code
            message = f"{error} (requires git {error.required_version})"
        elif isinstance(error, ValueError):
            category = ErrorCategory.CONFIGURATION
            error_code = "INVALID_DESIRED_STATE"
            message = f"Invalid desired state: {error}"
        else:
            category = ErrorCategory.SYSTEM
            error_code = "RECONCILE_GENERAL_ERROR"
            message = f"Reconciliation failed: {error}"

        error_response = ErrorResponse(
            error="Repository reconciliation failed",
            error_code=error_code,
            message=message,
            timestamp=datetime.now().isoformat(),
            category=category.value,
            context=context
        )

        self.logger.warning(
            f"Reconciliation error: {message}",
            extra={
                'operation': 'reconcile_error',
                'error_code': error_code,
                'repository_path': context.get('repository_path')
            }
        )

        return error_response


# Initialize global error handler
error_handler = ErrorHandler()
