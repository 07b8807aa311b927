import numpy as np
import pytest
import scipy.sparse as sp

from pynlfem.assembly.discrete_problem import DiscreteProblem
from pynlfem.core import EssentialBC, H1Space
from pynlfem.core.solution import vector_to_solution
from pynlfem.errors import (
    ConfigurationError,
    DimensionError,
    DivergedError,
    FailedError,
    LinearSolveError,
)
from pynlfem.solvers.linear import LinearSolver, create_linear_solver
from pynlfem.solvers.newton import NewtonParameters, NewtonSolver, NewtonStatus, run_newton
from pynlfem.utils.meshgen import structured_quad
from pynlfem.weakform import DefaultWeakFormPoisson, NonlinearCoefficient, SpatialCoefficient


class ScalarProblem:
    """F(x) = x_i^2 - c_i, one independent equation per DOF."""

    def __init__(self, c):
        self.c = np.asarray(c, dtype=float)
        self.calls = 0

    def get_num_dofs(self):
        return len(self.c)

    def assemble(self, x):
        self.calls += 1
        return sp.diags(2.0 * x, format="csr"), x ** 2 - self.c


class BrokenSolver(LinearSolver):
    name = "broken"

    def _solve(self, A, b):
        raise RuntimeError("matrix is exactly singular")


def _nonlinear_poisson(n=3, p=2):
    mesh = structured_quad(1.0, 1.0, nx=n, ny=n)
    bcs = [EssentialBC(m, lambda x, y: 1.0 + x) for m in ("bottom", "right", "top", "left")]
    space = H1Space(mesh, bcs, p_init=p)
    lam = NonlinearCoefficient(lambda u: 1.0 + u ** 2, lambda u: 2.0 * u)
    wf = DefaultWeakFormPoisson(lam, SpatialCoefficient(lambda x, y: 2.0 * (1.0 + x)))
    return space, DiscreteProblem(wf, space)


def test_scalar_newton_converges_quadratically():
    dp = ScalarProblem([2.0, 9.0])
    res = NewtonSolver(dp, "dense", NewtonParameters(tol=1e-14)).solve(np.array([1.0, 1.0]))
    assert res.status is NewtonStatus.CONVERGED and res.converged
    assert np.allclose(res.x, [np.sqrt(2.0), 3.0])
    norms = [h.residual_norm for h in res.history]
    assert norms[-1] <= 1e-14
    # quadratic phase: |F_{k+1}| <= C |F_k|^2
    assert norms[-2] < 1e-3 * norms[-3]


def test_run_newton_nonlinear_poisson_reproduces_exact_solution():
    space, dp = _nonlinear_poisson()
    x0 = np.zeros(space.get_num_dofs())
    x, status = run_newton(x0, dp, "scipy", 1e-10, 30)
    assert status is NewtonStatus.CONVERGED
    assert np.all(x0 == 0.0)
    sln = vector_to_solution(x, space)
    for px, py in [(0.3, 0.4), (0.77, 0.12), (0.5, 0.5)]:
        assert np.isclose(sln.get_pt_value(px, py), 1.0 + px, atol=1e-8)


def test_root_stays_within_tolerance():
    space, dp = _nonlinear_poisson()
    tol = 1e-10
    x, _ = run_newton(np.zeros(space.get_num_dofs()), dp, "scipy", tol, 30)
    res = NewtonSolver(dp, "scipy", NewtonParameters(tol=tol)).solve(x)
    assert res.iterations == 0
    J, F = dp.assemble(x)
    x1 = x + create_linear_solver("scipy").solve(J, -F)
    assert np.linalg.norm(dp.assemble_residual(x1)) <= tol


def test_budget_exhausted_raises_diverged():
    space, dp = _nonlinear_poisson()
    with pytest.raises(DivergedError) as exc:
        run_newton(np.zeros(space.get_num_dofs()), dp, "scipy", 1e-12, 1)
    err = exc.value
    assert err.status is NewtonStatus.DIVERGED
    assert err.iterations == 1
    assert err.residual_norm > 1e-12 and err.correction_norm is not None
    assert len(err.history) == 2


def test_linear_solver_failure_raises_failed_without_more_iterations():
    dp = ScalarProblem([2.0])
    solver = NewtonSolver(dp, BrokenSolver())
    with pytest.raises(FailedError) as exc:
        solver.solve(np.array([1.0]))
    assert isinstance(exc.value.__cause__, LinearSolveError)
    assert exc.value.status is NewtonStatus.FAILED
    assert solver.status is NewtonStatus.FAILED
    assert dp.calls == 1


def test_non_finite_residual_is_diverged():
    class NaNProblem(ScalarProblem):
        def assemble(self, x):
            J, F = super().assemble(x)
            return J, F * np.nan

    with pytest.raises(DivergedError, match="non-finite"):
        NewtonSolver(NaNProblem([1.0])).solve(np.array([3.0]))


def test_divergence_factor():
    class Runaway(ScalarProblem):
        def assemble(self, x):
            self.calls += 1
            # the "Jacobian" points the wrong way, so |F| grows every step
            return sp.diags(-np.ones_like(x), format="csr"), x

    params = NewtonParameters(max_iter=50, divergence_factor=10.0)
    dp = Runaway([0.0])
    with pytest.raises(DivergedError, match="grew"):
        NewtonSolver(dp, "dense", params).solve(np.array([1.0]))
    assert dp.calls < 10


def test_damping_slows_linear_convergence():
    space, _ = _nonlinear_poisson()
    wf = DefaultWeakFormPoisson(1.0, source=1.0)
    dp = DiscreteProblem(wf, space)
    x0 = np.zeros(space.get_num_dofs())
    full = NewtonSolver(dp, "scipy", NewtonParameters(tol=1e-10)).solve(x0)
    half = NewtonSolver(dp, "scipy", NewtonParameters(tol=1e-10, damping=0.5)).solve(x0)
    assert full.iterations == 1
    assert half.iterations > 10
    norms = [h.residual_norm for h in half.history]
    assert np.allclose(np.array(norms[1:4]) / np.array(norms[:3]), 0.5)
    assert np.allclose(full.x, half.x, atol=1e-6)


@pytest.mark.parametrize("criterion", ["correction", "both"])
def test_correction_criteria(criterion):
    dp = ScalarProblem([4.0])
    params = NewtonParameters(tol=1e-12, convergence=criterion, norm="linf")
    res = NewtonSolver(dp, "scipy", params).solve(np.array([3.0]))
    assert np.isclose(res.x[0], 2.0)
    assert res.correction_norm <= 1e-12
    # the last accepted step is the one whose correction passed the test
    assert res.history[-2].correction_norm == res.correction_norm


def test_zero_residual_does_not_satisfy_correction_criterion():
    dp = ScalarProblem([4.0])
    params = NewtonParameters(tol=1e-12, convergence="correction")
    res = NewtonSolver(dp, "dense", params).solve(np.array([2.0]))
    assert res.history[0].residual_norm == 0.0
    assert res.iterations == 1 and res.correction_norm == 0.0


def test_relative_tolerance():
    dp = ScalarProblem([4.0])
    res = NewtonSolver(dp, "scipy", NewtonParameters(tol=0.0, rel_tol=1e-3)).solve(np.array([3.0]))
    assert res.residual_norm <= 1e-3 * res.history[0].residual_norm


def test_zero_budget():
    dp = ScalarProblem([4.0])
    res = NewtonSolver(dp, params=NewtonParameters(max_iter=0)).solve(np.array([2.0]))
    assert res.iterations == 0 and res.status is NewtonStatus.CONVERGED
    with pytest.raises(DivergedError):
        NewtonSolver(dp, params=NewtonParameters(max_iter=0)).solve(np.array([3.0]))


def test_initial_vector_is_checked_and_copied():
    dp = ScalarProblem([4.0, 9.0])
    with pytest.raises(DimensionError):
        NewtonSolver(dp).solve(np.ones(3))
    x0 = np.ones(2)
    res = NewtonSolver(dp).solve(x0)
    assert np.all(x0 == 1.0) and res.x is not x0


@pytest.mark.parametrize("kwargs", [dict(damping=0.0), dict(damping=1.5), dict(tol=-1.0),
                                    dict(max_iter=-1), dict(convergence="energy"),
                                    dict(norm="l1"), dict(divergence_factor=0.5)])
def test_invalid_parameters(kwargs):
    with pytest.raises(ConfigurationError):
        NewtonParameters(**kwargs)
