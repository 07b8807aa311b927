import numpy as np
import pytest
import scipy.sparse as sp

from pynlfem.errors import ConfigurationError, DimensionError, LinearSolveError
from pynlfem.solvers.linear import (
    KrylovSolver,
    LinearSolver,
    LinearSolverParameters,
    available_backends,
    create_linear_solver,
)


def _laplace_1d(n=30):
    main = 2.0 * np.ones(n)
    off = -1.0 * np.ones(n - 1)
    return sp.diags([off, main, off], [-1, 0, 1], format="csr")


@pytest.mark.parametrize("backend", ["scipy", "superlu", "dense", "gmres", "bicgstab", "cg"])
def test_backends_solve_spd_system(backend):
    A = _laplace_1d()
    x_exact = np.linspace(0.0, 1.0, A.shape[0]) ** 2
    b = A @ x_exact
    solver = create_linear_solver(backend)
    x = solver.solve(A, b)
    assert np.allclose(x, x_exact, atol=1e-8)


def test_petsc_backend():
    pytest.importorskip("petsc4py")
    A = _laplace_1d()
    b = np.ones(A.shape[0])
    x = create_linear_solver("petsc").solve(A, b)
    assert np.allclose(A @ x, b, atol=1e-10)


def test_complex_system():
    A = (_laplace_1d(8) * (1.0 + 1.0j)).tocsr()
    b = np.arange(8) * 1j
    x = create_linear_solver("scipy").solve(A, b)
    assert np.allclose(A @ x, b)


def test_unknown_backend():
    with pytest.raises(ConfigurationError, match="Unknown linear solver backend"):
        create_linear_solver("mumps")
    with pytest.raises(ConfigurationError):
        create_linear_solver(LinearSolverParameters(backend="nope"))


def test_backend_from_environment(monkeypatch):
    monkeypatch.setenv("PYNLFEM_LINEAR_BACKEND", "dense")
    assert create_linear_solver().name == "dense"
    monkeypatch.delenv("PYNLFEM_LINEAR_BACKEND")
    assert create_linear_solver().name == "scipy"


def test_existing_solver_passes_through():
    solver = create_linear_solver("gmres")
    assert create_linear_solver(solver) is solver
    assert set(available_backends()) >= {"scipy", "dense", "petsc"}


@pytest.mark.parametrize("backend", ["scipy", "dense"])
def test_singular_system_raises(backend):
    A = sp.csr_matrix(np.array([[1.0, 2.0], [2.0, 4.0]]))
    with pytest.raises(LinearSolveError):
        create_linear_solver(backend).solve(A, np.array([1.0, 0.0]))


def test_krylov_non_convergence_raises(monkeypatch):
    monkeypatch.setitem(KrylovSolver._METHODS, "gmres", lambda A, b, **kw: (np.zeros_like(b), 7))
    with pytest.raises(LinearSolveError, match="did not converge"):
        create_linear_solver("gmres").solve(_laplace_1d(10), np.ones(10))


def test_shape_checks():
    solver = create_linear_solver("scipy")
    with pytest.raises(DimensionError):
        solver.solve(sp.csr_matrix(np.ones((2, 3))), np.ones(2))
    with pytest.raises(DimensionError):
        solver.solve(_laplace_1d(4), np.ones(5))
    assert solver.solve(sp.csr_matrix((0, 0)), np.zeros(0)).shape == (0,)


def test_non_finite_result_raises():
    class NaNSolver(LinearSolver):
        name = "nan"

        def _solve(self, A, b):
            return np.full(b.shape, np.nan)

    with pytest.raises(LinearSolveError, match="non-finite"):
        NaNSolver().solve(_laplace_1d(3), np.ones(3))
