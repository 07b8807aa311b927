"""pynlfem.errors
Exception taxonomy shared by the space, assembly, linear solvers and the
Newton driver.
"""
from __future__ import annotations

from typing import Optional


class PynlfemError(Exception):
    """Base class of every error raised by pynlfem."""


class ConfigurationError(PynlfemError, ValueError):
    """Invalid setup: polynomial order, unknown marker, conflicting BCs, unknown backend."""


class DimensionError(PynlfemError, ValueError):
    """A vector or matrix does not have the size the current space requires."""


class AssemblyError(PynlfemError, RuntimeError):
    """The weak form cannot be evaluated on the current space."""


class VectorLengthError(AssemblyError, DimensionError):
    """Coefficient vector handed to the assembler has the wrong length."""


class PointLocationError(PynlfemError, ValueError):
    """A physical point lies outside every element of the mesh."""


class LinearSolveError(PynlfemError, RuntimeError):
    """A linear-solver backend could not produce a solution."""


class NewtonError(PynlfemError, RuntimeError):
    """
    Terminal failure of a Newton solve.

    Carries the state the driver reached so that the caller can decide on a
    retry policy (different initial guess, damping or budget).
    """

    def __init__(self, message: str, *, status, iterations: int,
                 residual_norm: Optional[float] = None,
                 correction_norm: Optional[float] = None,
                 history: Optional[list] = None):
        super().__init__(message)
        self.status = status
        self.iterations = iterations
        self.residual_norm = residual_norm
        self.correction_norm = correction_norm
        self.history = list(history) if history is not None else []

    def __str__(self) -> str:
        base = super().__str__()
        parts = [f"iterations={self.iterations}"]
        if self.residual_norm is not None:
            parts.append(f"|F|={self.residual_norm:.3e}")
        if self.correction_norm is not None:
            parts.append(f"|dx|={self.correction_norm:.3e}")
        return f"{base} ({', '.join(parts)})"


class DivergedError(NewtonError):
    """Iteration budget exhausted (or the residual blew up) before reaching the tolerance."""


class FailedError(NewtonError):
    """The linear solve of a Newton step failed; the cause is chained."""


__all__ = [
    "PynlfemError", "ConfigurationError", "DimensionError", "AssemblyError",
    "VectorLengthError", "PointLocationError", "LinearSolveError", "NewtonError",
    "DivergedError", "FailedError",
]
