"""
Error types and run outcomes for hot spot analysis.

Configuration problems are raised as ``ConfigurationError`` during validation
and returned to the caller as a ``Failed`` outcome. Per-feature numerical
problems are not errors at all; they end up in the result classification.
``InternalInvariantViolation`` signals a programming defect and always
propagates.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union


class HotspotError(Exception):
    """Base class for hotspotpy errors."""


class ConfigurationError(HotspotError, ValueError):
    """Invalid input or configuration, detected before any computation."""


class InternalInvariantViolation(HotspotError, RuntimeError):
    """A result set broke an invariant the pipeline itself guarantees."""


@dataclass(frozen=True)
class RunDiagnostics:
    """
    Run-level summary reported alongside successful results.

    Parameters
    ----------
    threshold : float
        Distance threshold used for neighbor retrieval (NaN for contiguity).
    n : int
        Number of observations.
    mean : float
        Mean of the analysis values.
    population_std : float
        Population standard deviation of the analysis values.
    n_starved : int
        Features classified NOT_ENOUGH_NEIGHBORS.
    n_degenerate : int
        Features whose statistic is NaN for numerical reasons.
    class_counts : dict
        Number of features per cluster class value.
    elapsed : float
        Wall-clock seconds spent in the run.
    """

    threshold: float
    n: int
    mean: float
    population_std: float
    n_starved: int = 0
    n_degenerate: int = 0
    class_counts: Dict[str, int] = field(default_factory=dict)
    elapsed: float = 0.0


@dataclass(frozen=True)
class Ok:
    """Successful run: one output record per input observation."""

    records: Any
    diagnostics: RunDiagnostics

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self):
        return self.records


@dataclass(frozen=True)
class Cancelled:
    """Run stopped by the cancellation signal. Partial work is discarded."""

    completed: int = 0
    total: int = 0

    @property
    def ok(self) -> bool:
        return False

    def unwrap(self):
        raise HotspotError(
            f"Analysis was cancelled after {self.completed}/{self.total} features"
        )


@dataclass(frozen=True)
class Failed:
    """Run rejected before computation started."""

    error: HotspotError
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return False

    def unwrap(self):
        raise self.error


Outcome = Union[Ok, Cancelled, Failed]
