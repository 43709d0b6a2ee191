"""
Exception types and the computation-error boundary.

Short history and missing inputs are not errors: the scoring functions
return flagged low-confidence results for those. Exceptions are reserved for
impossible arguments (bad profiles, inconsistent parameter sets). Unexpected
failures inside a single sub-score are caught by `computation_boundary`,
logged, and replaced by that sub-score's neutral value so one failing
heuristic never aborts a whole assessment.
"""

import functools
from typing import Any, Callable, TypeVar

from loguru import logger

F = TypeVar('F', bound=Callable[..., Any])


class RunLoadError(Exception):
    """Base class for engine errors."""


class InvalidProfileError(RunLoadError, ValueError):
    """Physiology profile values are impossible (e.g. resting HR >= max HR)."""


class ConfigurationError(RunLoadError, ValueError):
    """A parameter set failed validation."""


def computation_boundary(fallback: Callable[..., Any]) -> Callable[[F], F]:
    """
    Convert unexpected exceptions in a scoring function into a neutral result.

    Args:
        fallback: Called with the wrapped function's arguments to build the
            neutral value returned on failure.

    Returns:
        Decorator applying the boundary.
    """
    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except RunLoadError:
                raise
            except Exception:
                logger.exception(
                    "{} failed, substituting neutral result", func.__qualname__
                )
                return fallback(*args, **kwargs)
        return wrapper  # type: ignore[return-value]
    return decorator


def ensure_valid(params: Any) -> None:
    """Raise ConfigurationError if a parameter object fails validate()."""
    ok, message = params.validate()
    if not ok:
        raise ConfigurationError(message)
