"""
Error Handler - Error categorization and bookkeeping for experiment runs

Errors are never retried or recovered here: the failing component raises,
the handler records and logs what happened, and the CLI reports a summary.
"""
import logging
from typing import Optional, Any, Dict, List
from enum import Enum
from dataclasses import dataclass
from ..errors import (
    ConfigurationInvalid, UnrecognizedServiceName, TopologyInconsistent, ConfigTopologyMismatch,
    PlatformUnavailable, UnsupportedSelector, NetworkBuildError, FaultInjectionError,
    FaultExecutionError, ExperimentCancelled
)

logging.basicConfig(format='%(levelname)-5s | %(filename)s:%(lineno)-3d | %(message)s', level=logging.INFO, force=True)
logger = logging.getLogger(__name__)


class ErrorSeverity(Enum):
    """Severity levels for errors"""
    LOW = "low"  # Informational, run continues
    MEDIUM = "medium"  # Test outcome affected
    HIGH = "high"  # Run aborted
    FATAL = "fatal"  # Environment unusable


class ErrorCategory(Enum):
    """Categories of errors"""
    CONFIGURATION = "configuration"
    TOPOLOGY = "topology"
    PLATFORM = "platform"
    NETWORK_BUILD = "network_build"
    FAULT_INJECTION = "fault_injection"
    FAULT_EXECUTION = "fault_execution"
    HEALTH_CHECK = "health_check"
    CANCELLATION = "cancellation"
    UNKNOWN = "unknown"


@dataclass
class ErrorContext:
    """Context information for an error"""
    category: ErrorCategory
    severity: ErrorSeverity
    message: str
    exception: Optional[Exception] = None
    component: Optional[str] = None
    enclave_name: Optional[str] = None
    test_name: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


_CATEGORIES = (
    (UnsupportedSelector, ErrorCategory.CONFIGURATION, ErrorSeverity.HIGH),
    (ConfigurationInvalid, ErrorCategory.CONFIGURATION, ErrorSeverity.HIGH),
    (UnrecognizedServiceName, ErrorCategory.TOPOLOGY, ErrorSeverity.HIGH),
    (TopologyInconsistent, ErrorCategory.TOPOLOGY, ErrorSeverity.HIGH),
    (ConfigTopologyMismatch, ErrorCategory.TOPOLOGY, ErrorSeverity.HIGH),
    (PlatformUnavailable, ErrorCategory.PLATFORM, ErrorSeverity.FATAL),
    (NetworkBuildError, ErrorCategory.NETWORK_BUILD, ErrorSeverity.FATAL),
    (FaultInjectionError, ErrorCategory.FAULT_INJECTION, ErrorSeverity.HIGH),
    (FaultExecutionError, ErrorCategory.FAULT_EXECUTION, ErrorSeverity.HIGH),
    (ExperimentCancelled, ErrorCategory.CANCELLATION, ErrorSeverity.LOW),
)


def categorize(exc: BaseException) -> ErrorCategory:
    """Map an exception to its error category"""
    return _classify(exc)[0]


def _classify(exc: BaseException):
    for exc_type, category, severity in _CATEGORIES:
        if isinstance(exc, exc_type):
            return category, severity
    return ErrorCategory.UNKNOWN, ErrorSeverity.FATAL


class ErrorHandler:
    """
    Centralized error bookkeeping for devnet-chaos.

    Provides:
    - Error categorization and severity assessment
    - Severity-aware logging
    - An error summary for reports
    """

    def __init__(self):
        self.error_history: List[ErrorContext] = []

    def record_exception(self, exc: Exception, component: Optional[str] = None,
                         enclave_name: Optional[str] = None, test_name: Optional[str] = None) -> ErrorContext:
        """Categorize, log and store an exception; the caller decides whether to re-raise"""
        category, severity = _classify(exc)
        error_context = ErrorContext(
            category=category,
            severity=severity,
            message=str(exc),
            exception=exc,
            component=component,
            enclave_name=enclave_name,
            test_name=test_name,
        )
        self.handle_error(error_context)
        return error_context

    def handle_error(self, error_context: ErrorContext) -> None:
        self._log_error(error_context)
        self.error_history.append(error_context)

    def _log_error(self, error_context: ErrorContext):
        """Log error with appropriate level based on severity"""
        log_message = f"[{error_context.category.value}] {error_context.message}"
        if error_context.component:
            log_message = f"[{error_context.component}] {log_message}"
        if error_context.enclave_name:
            log_message += f" (enclave: {error_context.enclave_name})"
        if error_context.test_name:
            log_message += f" (test: {error_context.test_name})"

        if error_context.severity == ErrorSeverity.FATAL:
            logger.critical(log_message)
        elif error_context.severity == ErrorSeverity.HIGH:
            logger.error(log_message)
        elif error_context.severity == ErrorSeverity.MEDIUM:
            logger.warning(log_message)
        else:
            logger.info(log_message)

        if error_context.category == ErrorCategory.UNKNOWN and error_context.exception is not None:
            logger.error("Unexpected error", exc_info=error_context.exception)

    def get_error_summary(self) -> Dict[str, Any]:
        """Get summary of all errors encountered"""
        errors_by_category: Dict[str, int] = {}
        errors_by_severity: Dict[str, int] = {}

        for error in self.error_history:
            category = error.category.value
            errors_by_category[category] = errors_by_category.get(category, 0) + 1
            severity = error.severity.value
            errors_by_severity[severity] = errors_by_severity.get(severity, 0) + 1

        return {
            'total_errors': len(self.error_history),
            'by_category': errors_by_category,
            'by_severity': errors_by_severity,
            'recent_errors': [
                {
                    'category': e.category.value,
                    'severity': e.severity.value,
                    'message': e.message
                }
                for e in self.error_history[-10:]
            ]
        }

    def clear_history(self):
        """Clear error history"""
        self.error_history.clear()


_error_handler: Optional[ErrorHandler] = None


def get_error_handler() -> ErrorHandler:
    """Process-wide error handler"""
    global _error_handler
    if _error_handler is None:
        _error_handler = ErrorHandler()
    return _error_handler
