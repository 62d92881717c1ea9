"""
Error Handling Module for the Usage Metrics Engine.
Provides the exception taxonomy for per-record anomalies and a decorator
for structured error handling in every pipeline phase.
"""

import logging
import functools
from typing import TypeVar, Callable, Any, Optional

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


class PipelinePhaseError(Exception):
    """Base exception for pipeline phase errors."""

    def __init__(self, message: str, phase: str = "", details: dict | None = None):
        self.phase = phase
        self.details = details or {}
        super().__init__(message)


class DataValidationError(PipelinePhaseError):
    """Raised when input data fails validation before a pipeline phase."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, phase="VALIDATION", details=details)


class InvalidSnapshotError(DataValidationError):
    """Raised when a daily snapshot has no usable date.

    The record is excluded from aggregation and counted as skipped.
    """

    def __init__(self, message: str, index: Optional[int] = None, details: dict | None = None):
        self.index = index
        super().__init__(message, details=details)


class EmptyWindowError(PipelinePhaseError):
    """Describes a telemetry or billing window that holds no usable records."""

    def __init__(self, message: str, feed: str = "", details: dict | None = None):
        self.feed = feed
        super().__init__(message, phase="AGGREGATE", details=details)


class MetricsCalculationError(PipelinePhaseError):
    """Raised when metrics calculation fails."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, phase="CALCULATE", details=details)


class ExportError(PipelinePhaseError):
    """Raised when data export fails."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, phase="EXPORT", details=details)


class MalformedEntityWarning(UserWarning):
    """A malformed breakdown entry found during normalization.

    Without ``repaired_fields`` the entry had no name and was dropped. With
    them, the listed fields were invalid and reset to their defaults; the
    entry (or, when ``dimension`` is None, the whole group) was kept.
    """

    def __init__(
        self,
        group: str,
        dimension: Optional[str],
        day: Optional[str] = None,
        name: Optional[str] = None,
        repaired_fields: Optional[list] = None,
    ):
        self.group = group
        self.dimension = dimension
        self.day = day
        self.name = name
        self.repaired_fields = list(repaired_fields or [])
        day_label = day or 'unknown date'
        if not self.repaired_fields:
            message = f"Dropped unnamed {dimension} entity in {group} on {day_label}"
        elif dimension is None:
            message = f"Reset invalid {', '.join(self.repaired_fields)} of {group} on {day_label}"
        else:
            message = (
                f"Reset invalid {', '.join(self.repaired_fields)} of {dimension} "
                f"{name!r} in {group} on {day_label}"
            )
        super().__init__(message)


def handle_pipeline_phase(
    phase_name: str,
    error_cls: type[PipelinePhaseError] = PipelinePhaseError,
) -> Callable[[F], F]:
    """
    Decorator for structured error handling in pipeline phases.

    Wraps a function so that any unhandled exception is logged with
    phase context and re-raised as the specified PipelinePhaseError subclass.
    PipelinePhaseError instances are re-raised without wrapping.

    Args:
        phase_name: Human-readable name of the pipeline phase.
        error_cls: Exception class to raise on failure.

    Returns:
        Decorated function with structured error handling.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            func_name = func.__name__
            logger.debug("[%s] Starting phase '%s'", phase_name, func_name)
            try:
                result = func(*args, **kwargs)
                logger.debug(
                    "[%s] Completed phase '%s' successfully",
                    phase_name,
                    func_name,
                )
                return result
            except PipelinePhaseError:
                raise
            except Exception as exc:
                logger.error(
                    "[%s] Error in '%s': %s",
                    phase_name,
                    func_name,
                    exc,
                    exc_info=True,
                )
                raise error_cls(
                    f"{phase_name} failed in {func_name}: {exc}",
                    details={"function": func_name, "original_error": str(exc)},
                ) from exc

        return wrapper  # type: ignore[return-value]

    return decorator
