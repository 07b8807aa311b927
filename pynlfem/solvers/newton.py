r"""
newton.py  -  Newton-Raphson driver for pynlfem
================================================
Drives ``x_{k+1} = x_k + damping * d_k`` with ``J(x_k) d_k = -F(x_k)``
until the residual and/or the correction are small enough.

The driver only knows two collaborators: something with
``assemble(x) -> (J, F)`` and ``get_num_dofs()`` (a
:class:`~pynlfem.assembly.discrete_problem.DiscreteProblem`), and a
:class:`~pynlfem.solvers.linear.LinearSolver`.  It never touches the
space, the weak form or the boundary conditions.

State machine::

    INIT -> ITERATING -> CONVERGED
                      -> DIVERGED   (budget exhausted, residual non-finite or blown up)
                      -> FAILED     (linear solve failed)
"""

from __future__ import annotations

import enum
import time
from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union

import numpy as np

from pynlfem.errors import (
    ConfigurationError,
    DimensionError,
    DivergedError,
    FailedError,
    LinearSolveError,
)
from pynlfem.solvers.linear import LinearSolver, LinearSolverParameters, create_linear_solver
from pynlfem.utils.reporting import get_reporter

_rep = get_reporter(__name__)


class NewtonStatus(enum.Enum):
    INIT = "init"
    ITERATING = "iterating"
    CONVERGED = "converged"
    DIVERGED = "diverged"
    FAILED = "failed"


# ----------------------------------------------------------------------------
#  Parameter dataclasses
# ----------------------------------------------------------------------------

@dataclass
class NewtonParameters:
    """Settings that govern a *single* Newton solve."""

    tol: float = 1e-8                   # absolute threshold on the chosen norm(s)
    rel_tol: float = 0.0                # ... or relative to the first residual / correction
    max_iter: int = 100                 # hard cap on linear solves
    damping: float = 1.0                # x <- x + damping * d
    convergence: str = "residual"       # "residual" | "correction" | "both"
    norm: str = "l2"                    # "l2" | "linf"
    divergence_factor: Optional[float] = None   # |F| > factor * |F_0|  =>  diverged

    def __post_init__(self):
        if self.tol < 0 or self.rel_tol < 0:
            raise ConfigurationError("Newton tolerances must be non-negative")
        if not isinstance(self.max_iter, int) or self.max_iter < 0:
            raise ConfigurationError(f"max_iter must be a non-negative integer, got {self.max_iter!r}")
        if not 0.0 < self.damping <= 1.0:
            raise ConfigurationError(f"damping must lie in (0, 1], got {self.damping}")
        if self.convergence not in ("residual", "correction", "both"):
            raise ConfigurationError(f"unknown convergence criterion '{self.convergence}'")
        if self.norm not in ("l2", "linf"):
            raise ConfigurationError(f"unknown norm '{self.norm}'")
        if self.divergence_factor is not None and self.divergence_factor <= 1.0:
            raise ConfigurationError("divergence_factor must exceed 1")


@dataclass
class NewtonIteration:
    iteration: int
    residual_norm: float
    correction_norm: Optional[float] = None
    assembly_time: float = 0.0
    solve_time: float = 0.0


@dataclass
class NewtonResult:
    x: np.ndarray
    status: NewtonStatus
    iterations: int                     # number of linear solves performed
    residual_norm: float
    correction_norm: Optional[float]
    history: List[NewtonIteration] = field(default_factory=list)

    @property
    def converged(self) -> bool:
        return self.status is NewtonStatus.CONVERGED


# ----------------------------------------------------------------------------
#  Driver
# ----------------------------------------------------------------------------

class NewtonSolver:
    """
    Newton driver bound to one discrete problem and one linear solver.

    Parameters
    ----------
    dp
        Object with ``assemble(x) -> (J, F)`` and ``get_num_dofs()``.
    linear_solver
        A :class:`LinearSolver`, a backend name or
        :class:`LinearSolverParameters`; ``None`` uses the default backend.
    params
        :class:`NewtonParameters`.
    """

    def __init__(self, dp, linear_solver: Union[None, str, LinearSolverParameters, LinearSolver] = None,
                 params: Optional[NewtonParameters] = None):
        self.dp = dp
        self.ls = create_linear_solver(linear_solver)
        self.np = params or NewtonParameters()
        self.status = NewtonStatus.INIT
        self.history: List[NewtonIteration] = []

    def _norm(self, v: np.ndarray) -> float:
        if v.size == 0:
            return 0.0
        if self.np.norm == "linf":
            return float(np.max(np.abs(v)))
        return float(np.linalg.norm(v))

    def _small(self, value: float, reference: Optional[float]) -> bool:
        thr = self.np.tol
        if self.np.rel_tol > 0.0 and reference is not None:
            thr = max(thr, self.np.rel_tol * reference)
        return value <= thr

    def _fail(self, exc_type, message, it, res, corr, cause=None):
        status = NewtonStatus.FAILED if exc_type is FailedError else NewtonStatus.DIVERGED
        self.status = status
        _rep.warn("Newton %s after %d iteration(s): %s (|F| = %s, |dx| = %s)",
                  status.value, it, message,
                  "n/a" if res is None else f"{res:.3e}",
                  "n/a" if corr is None else f"{corr:.3e}")
        err = exc_type(message, status=status, iterations=it, residual_norm=res,
                       correction_norm=corr, history=self.history)
        if cause is not None:
            raise err from cause
        raise err

    def solve(self, x0) -> NewtonResult:
        """
        Iterate from *x0* (not modified) until convergence.

        Raises :class:`DivergedError` or :class:`FailedError`; returns a
        :class:`NewtonResult` with status ``CONVERGED`` otherwise.
        """
        p = self.np
        ndof = self.dp.get_num_dofs()
        x0 = np.asarray(x0)
        if x0.ndim != 1 or x0.shape[0] != ndof:
            raise DimensionError(f"initial vector has shape {x0.shape}, the problem has {ndof} DOFs")
        dtype = getattr(self.dp, "dtype", x0.dtype)
        x = np.array(x0, dtype=np.result_type(x0.dtype, dtype), copy=True)

        self.status = NewtonStatus.ITERATING
        self.history = []
        res0 = corr0 = None
        corr = None
        _rep.info("!Newton: %d DOFs, tol=%g, max_iter=%d, backend=%s",
                  ndof, p.tol, p.max_iter, self.ls.name)

        for it in range(p.max_iter + 1):
            # 1) assemble at the current state
            t0 = time.perf_counter()
            J, F = self.dp.assemble(x)
            t_asm = time.perf_counter() - t0
            res = self._norm(F)
            record = NewtonIteration(iteration=it, residual_norm=res, assembly_time=t_asm)
            self.history.append(record)
            _rep.info(" ---- Newton iter %d, ndof %d, residual norm %g", it + 1, ndof, res)

            if not np.isfinite(res):
                self._fail(DivergedError, "non-finite residual", it, res, corr)
            if res0 is None:
                res0 = res
            elif p.divergence_factor is not None and res > p.divergence_factor * max(res0, np.finfo(float).tiny):
                self._fail(DivergedError, f"residual grew beyond {p.divergence_factor:g} x initial",
                           it, res, corr)

            res_ok = self._small(res, res0)
            corr_ok = corr is not None and self._small(corr, corr0)
            done = {"residual": res_ok,
                    "correction": corr_ok,
                    "both": res_ok and corr_ok}[p.convergence]
            if done:
                self.status = NewtonStatus.CONVERGED
                _rep.info("Newton converged in %d iteration(s), |F| = %.3e.", it, res)
                return NewtonResult(x=x, status=self.status, iterations=it, residual_norm=res,
                                    correction_norm=corr, history=list(self.history))

            if it == p.max_iter:
                self._fail(DivergedError, f"maximum allowed number of Newton iterations ({p.max_iter}) exceeded",
                           it, res, corr)

            # 2) solve J d = -F
            t0 = time.perf_counter()
            try:
                d = self.ls.solve(J, -F)
            except LinearSolveError as exc:
                self._fail(FailedError, f"linear solve failed: {exc}", it, res, corr, cause=exc)
            record.solve_time = time.perf_counter() - t0

            # 3) update
            x += p.damping * d
            corr = self._norm(d)
            record.correction_norm = corr
            if corr0 is None:
                corr0 = corr
            _rep.time(" assembly %.3e s, solve %.3e s", t_asm, record.solve_time)

        # the loop either returns or raises; max_iter + 1 assemblies bound it
        raise AssertionError("unreachable")


def run_newton(initial_vector, discrete_problem, solver_binding=None,
               tolerance: float = 1e-8, max_iterations: int = 100,
               **options) -> Tuple[np.ndarray, NewtonStatus]:
    """
    Solve ``F(x) = 0`` from *initial_vector* (left untouched).

    Returns ``(final_vector, NewtonStatus.CONVERGED)``; raises
    :class:`DivergedError` or :class:`FailedError` otherwise.  Extra keyword
    arguments go to :class:`NewtonParameters` (``damping``, ``norm``, ...).
    """
    params = NewtonParameters(tol=tolerance, max_iter=max_iterations, **options)
    result = NewtonSolver(discrete_problem, solver_binding, params).solve(initial_vector)
    return result.x, result.status
