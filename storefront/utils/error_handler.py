"""
Error handling utilities for the storefront bot

Every failure that crosses the API boundary is an ``ApiError`` carrying one
of the four ``ErrorKind`` values, so handlers can branch on ``error.kind``
instead of digging through response payloads.
"""

import logging
import traceback
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

import httpx
from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.ext import ContextTypes

from storefront.utils.constants import Callbacks, ErrorMessages

logger = logging.getLogger(__name__)


class ErrorSeverity(Enum):
    """Error severity levels"""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorKind(Enum):
    """Closed set of failure kinds exposed by the service layer"""

    VALIDATION = "validation"
    AUTH = "auth"
    NETWORK = "network"
    SERVER = "server"


def kind_for_status(status_code: int) -> ErrorKind:
    """Classify an HTTP status code"""
    if status_code in (401, 403):
        return ErrorKind.AUTH
    if 400 <= status_code < 500:
        return ErrorKind.VALIDATION
    return ErrorKind.SERVER


@dataclass(eq=False)
class ApplicationError(Exception):
    """Base application error with enhanced context"""

    message: str
    error_code: str = "UNKNOWN"
    severity: ErrorSeverity = ErrorSeverity.MEDIUM
    kind: ErrorKind = ErrorKind.SERVER
    context: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)

    def __str__(self) -> str:
        return self.message


@dataclass(eq=False)
class ValidationError(ApplicationError):
    """Input validation errors raised before anything is sent"""

    error_code: str = "VALIDATION_ERROR"
    severity: ErrorSeverity = ErrorSeverity.LOW
    kind: ErrorKind = ErrorKind.VALIDATION


@dataclass(eq=False)
class ApiError(ApplicationError):
    """Failure reported by (or while talking to) the storefront API"""

    error_code: str = "API_ERROR"
    severity: ErrorSeverity = ErrorSeverity.HIGH
    status_code: Optional[int] = None
    details: Any = None

    @property
    def is_retryable(self) -> bool:
        return self.kind in (ErrorKind.NETWORK, ErrorKind.SERVER)

    @classmethod
    def from_response(cls, status_code: int, payload: Any) -> "ApiError":
        """Build an error from a non-2xx response body"""
        error_body = payload.get("error") if isinstance(payload, dict) else None
        if not isinstance(error_body, dict):
            error_body = {}
        kind = kind_for_status(status_code)
        return cls(
            message=error_body.get("message") or f"Request failed with status {status_code}",
            error_code=error_body.get("code") or "HTTP_%d" % status_code,
            severity=ErrorSeverity.MEDIUM if kind is ErrorKind.VALIDATION else ErrorSeverity.HIGH,
            kind=kind,
            status_code=status_code,
            details=error_body.get("details"),
        )

    @classmethod
    def from_transport(cls, exc: httpx.HTTPError) -> "ApiError":
        """Build an error for a request that never got a response"""
        code = "TIMEOUT" if isinstance(exc, httpx.TimeoutException) else "NETWORK_ERROR"
        return cls(
            message=str(exc) or exc.__class__.__name__,
            error_code=code,
            kind=ErrorKind.NETWORK,
        )

    @classmethod
    def malformed(cls, status_code: int, reason: str) -> "ApiError":
        return cls(
            message=f"Malformed response from API: {reason}",
            error_code="MALFORMED_RESPONSE",
            kind=ErrorKind.SERVER,
            status_code=status_code,
        )

    @classmethod
    def unauthorized(cls, message: str = "Login required") -> "ApiError":
        return cls(message=message, error_code="AUTH_REQUIRED", kind=ErrorKind.AUTH)

    @classmethod
    def invalid(cls, message: str, **context) -> "ApiError":
        return cls(
            message=message,
            error_code="VALIDATION_ERROR",
            severity=ErrorSeverity.LOW,
            kind=ErrorKind.VALIDATION,
            context=context,
        )


_USER_MESSAGES = {
    ErrorKind.VALIDATION: ErrorMessages.VALIDATION,
    ErrorKind.AUTH: ErrorMessages.AUTH,
    ErrorKind.NETWORK: ErrorMessages.NETWORK,
    ErrorKind.SERVER: ErrorMessages.SERVER,
}


def user_message(error: Exception) -> str:
    """User-facing sentence for an error"""
    if isinstance(error, ApiError):
        if error.kind is ErrorKind.VALIDATION and error.message:
            return error.message
        return _USER_MESSAGES[error.kind]
    if isinstance(error, ValidationError):
        return error.message
    return ErrorMessages.GENERIC


@dataclass
class ErrorReport:
    """Dataclass for error reports"""

    error: Exception
    context: Optional[Dict[str, Any]] = None
    user_id: Optional[str] = None


class ErrorReporter:
    """Error reporting with simple in-process metrics"""

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self.error_metrics = {
            "total_errors": 0,
            "errors_by_kind": {},
            "errors_by_severity": {},
            "recent_errors": [],
        }

    def report_error(self, report: ErrorReport) -> str:
        """Log the error and record it; returns the generated error id"""
        error_obj = report.error
        error_id = f"ERR_{datetime.now().strftime('%Y%m%d_%H%M%S')}_{id(error_obj)}"

        if isinstance(error_obj, ApplicationError):
            error_details = {
                "error_id": error_id,
                "error_message": error_obj.message,
                "error_code": error_obj.error_code,
                "severity": error_obj.severity.value,
                "kind": error_obj.kind.value,
                "context": error_obj.context,
                "timestamp": error_obj.timestamp.isoformat(),
                "user_id": report.user_id,
                "additional_context": report.context,
            }
        else:
            error_details = {
                "error_id": error_id,
                "error_message": str(error_obj),
                "error_code": "UNKNOWN",
                "severity": ErrorSeverity.HIGH.value,
                "kind": "unexpected",
                "context": report.context or {},
                "timestamp": datetime.now().isoformat(),
                "user_id": report.user_id,
                "traceback": "".join(
                    traceback.format_exception(type(error_obj), error_obj, error_obj.__traceback__)
                ),
            }

        self._update_metrics(error_details)
        self._log_error(error_details)
        return error_id

    def _update_metrics(self, error_details: Dict[str, Any]):
        self.error_metrics["total_errors"] += 1

        kind = error_details.get("kind", "unknown")
        severity = error_details.get("severity", "unknown")
        by_kind = self.error_metrics["errors_by_kind"]
        by_severity = self.error_metrics["errors_by_severity"]
        by_kind[kind] = by_kind.get(kind, 0) + 1
        by_severity[severity] = by_severity.get(severity, 0) + 1

        # last 50 only
        self.error_metrics["recent_errors"].append(error_details)
        if len(self.error_metrics["recent_errors"]) > 50:
            self.error_metrics["recent_errors"].pop(0)

    def _log_error(self, error_details: Dict[str, Any]):
        severity = error_details.get("severity", "medium")
        log_message = (
            "ERROR [%(error_id)s] %(error_message)s "
            "(Code: %(error_code)s, Kind: %(kind)s, User: %(user_id)s)"
        )

        if severity == ErrorSeverity.CRITICAL.value:
            self.logger.critical(log_message, error_details)
        elif severity == ErrorSeverity.HIGH.value:
            self.logger.error(log_message, error_details)
        elif severity == ErrorSeverity.MEDIUM.value:
            self.logger.warning(log_message, error_details)
        else:
            self.logger.info(log_message, error_details)

        if "traceback" in error_details:
            self.logger.debug("Traceback for %s:\n%s", error_details["error_id"], error_details["traceback"])

    def get_error_statistics(self) -> Dict[str, Any]:
        return {
            "total_errors": self.error_metrics["total_errors"],
            "errors_by_kind": self.error_metrics["errors_by_kind"],
            "errors_by_severity": self.error_metrics["errors_by_severity"],
            "recent_error_count": len(self.error_metrics["recent_errors"]),
        }


error_reporter = ErrorReporter()


def _back_to_main_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        [[InlineKeyboardButton("🏠 Main Menu", callback_data=Callbacks.MAIN)]]
    )


async def handle_error(update: Optional[Update], error: Exception, operation: str = "unknown"):
    """Report an error raised inside a handler and tell the user about it"""
    user_id = None
    if update is not None and update.effective_user:
        user_id = str(update.effective_user.id)

    error_reporter.report_error(
        ErrorReport(error=error, context={"operation": operation}, user_id=user_id)
    )

    if update is None:
        return

    text = f"❌ {user_message(error)}"
    if update.callback_query:
        await update.callback_query.answer()
        if update.callback_query.message:
            await update.callback_query.message.reply_text(text, reply_markup=_back_to_main_keyboard())
    elif update.effective_message:
        await update.effective_message.reply_text(text, reply_markup=_back_to_main_keyboard())


async def telegram_error_handler(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Application-wide error handler registered with ``add_error_handler``"""
    error = context.error
    if isinstance(error, ApiError) and error.kind is ErrorKind.AUTH and context.user_data is not None:
        # stale token; force a fresh login on the next interaction
        from storefront.services.session import end_session

        end_session(context)

    tg_update = update if isinstance(update, Update) else None
    try:
        await handle_error(tg_update, error, operation="unhandled")
    except Exception as send_error:  # noqa: BLE001 - the reply itself failed
        logger.error("Failed to notify user about error: %s", send_error)
