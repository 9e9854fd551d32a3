"""Exceptions and diagnostics for userstamp.

Userstamping never blocks the primary persistence operation, so these
exceptions are not raised out of the lifecycle hooks. They are logged and
handed to the diagnostic handler, which may choose to raise them (useful in
tests to catch misconfiguration early).
"""

from typing import Callable, Optional

from userstamp.core.logging import get_logger

logger = get_logger(__name__)


class UserstampError(Exception):
    """Base class for all userstamp errors."""
    pass


class StamperClassNotFoundError(UserstampError):
    """Raised when the configured stamper class cannot be resolved."""

    def __init__(self, model_name: str, stamper_class_name: str):
        self.model_name = model_name
        self.stamper_class_name = stamper_class_name
        super().__init__(
            f"{model_name}: stamper class '{stamper_class_name}' could not be resolved"
        )


class MissingStampAttributeError(UserstampError):
    """Raised when a model lacks a configured stamp attribute."""

    def __init__(self, model_name: str, attribute: str):
        self.model_name = model_name
        self.attribute = attribute
        super().__init__(f"{model_name} has no attribute '{attribute}'")


class StampRelationshipConflictError(UserstampError):
    """Raised when a stamp relationship cannot be added or replaced.

    Mapped relationships are never replaced once added, so a reconfiguration
    that changes or drops one leaves the existing relationship in place.
    """

    def __init__(self, model_name: str, relationship: str, reason: str):
        self.model_name = model_name
        self.relationship = relationship
        self.reason = reason
        super().__init__(f"{model_name}.{relationship}: {reason}")


DiagnosticHandler =Callable[[UserstampError], None]

_diagnostic_handler: Optional[DiagnosticHandler] = None


def set_diagnostic_handler(handler: Optional[DiagnosticHandler]) -> None:
    """Install a callback receiving every reported misconfiguration.

    Args:
        handler: The callback, or None to remove the current one.
    """
    global _diagnostic_handler
    _diagnostic_handler = handler


def get_diagnostic_handler() -> Optional[DiagnosticHandler]:
    """Get the installed diagnostic handler, if any."""
    return _diagnostic_handler


def report(error: UserstampError) -> None:
    """Log a misconfiguration and pass it to the diagnostic handler.

    Args:
        error: The error describing the problem.
    """
    logger.warning(
        "Userstamp misconfiguration",
        error=str(error),
        error_type=type(error).__name__,
    )
    if _diagnostic_handler is not None:
        _diagnostic_handler(error)
