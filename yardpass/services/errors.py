"""
Service layer exceptions and the error normalizer.

Every failure that leaves the service layer is a ServiceError carrying the
same envelope fields: code, message, details, timestamp, context, operation.
"""

import re
from datetime import datetime, timezone
from typing import Any

from loguru import logger

from yardpass.datastore.base import RecordNotFoundError
from yardpass.services.envelope import ErrorEnvelope

_CODE_SEPARATORS = re.compile(r"[^A-Z]+")


def build_error_code(context: str, operation: str | None = None) -> str:
    """Build a `{CONTEXT}_{OPERATION}_FAILED` code."""
    parts = [context, operation] if operation else [context]
    cleaned = [_CODE_SEPARATORS.sub("_", p.upper()).strip("_") for p in parts]
    return "_".join([p for p in cleaned if p] + ["FAILED"])


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(
        self,
        message: str,
        code: str,
        details: Any = None,
        context: str | None = None,
        operation: str | None = None,
        timestamp: str | None = None,
    ):
        self.message = message
        self.code = code
        self.details = details
        self.context = context
        self.operation = operation
        self.timestamp = timestamp or datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_envelope(self) -> ErrorEnvelope:
        return ErrorEnvelope(
            code=self.code,
            message=self.message,
            details=self.details,
            timestamp=self.timestamp,
            context=self.context,
            operation=self.operation,
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class ValidationError(ServiceError):
    """Caller-supplied parameters failed a precondition."""

    pass


class RemoteCallError(ServiceError):
    """The underlying store or service call failed."""

    pass


class NotFoundError(RemoteCallError):
    """The store had no row for a single-row read."""

    pass


def normalize_error(
    error: BaseException,
    context: str,
    operation: str | None = None,
    error_cls: type[ServiceError] | None = None,
) -> ServiceError:
    """
    Convert any failure into a ServiceError.

    Args:
        error: The raw failure
        context: Feature context, e.g. "profile"
        operation: Operation name, e.g. "getById"
        error_cls: Force a specific ServiceError subclass

    Returns:
        The normalized error. An error that is already a ServiceError is
        returned unchanged.
    """
    if isinstance(error, ServiceError):
        return error

    if error_cls is None:
        error_cls = (
            NotFoundError
            if isinstance(error, RecordNotFoundError)
            else RemoteCallError
        )

    message = str(error) or f"Failed to {operation or context}"
    normalized = error_cls(
        message=message,
        code=build_error_code(context, operation),
        details=error,
        context=context,
        operation=operation,
    )

    logger.error(
        f"[{context}] {normalized.code}: {normalized.message} "
        f"(operation={operation}, at={normalized.timestamp})"
    )
    return normalized
