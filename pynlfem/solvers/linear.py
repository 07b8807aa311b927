"""pynlfem.solvers.linear
Linear-solver backends behind one ``solve(A, b) -> x`` interface.

Backends are selected by name through :func:`create_linear_solver`:

=============  ==============================================
``scipy``      sparse LU (SuperLU via ``scipy.sparse.linalg``)
``superlu``    alias of ``scipy``
``dense``      ``numpy.linalg.solve`` on the densified matrix
``gmres``      ILU-preconditioned GMRES
``bicgstab``   ILU-preconditioned BiCGStab
``cg``         ILU-preconditioned CG (symmetric positive definite)
``petsc``      petsc4py KSP (optional ``petsc`` extra)
=============  ==============================================

Every call releases what it allocated (factorisations, PETSc objects)
before returning, also when it fails.  A failing backend raises
:class:`~pynlfem.errors.LinearSolveError`; no other backend is tried.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Union

import numpy as np
import scipy.sparse as sp
import scipy.sparse.linalg as spla

from pynlfem.errors import ConfigurationError, DimensionError, LinearSolveError
from pynlfem.utils.reporting import get_reporter

_rep = get_reporter(__name__)

ENV_BACKEND = "PYNLFEM_LINEAR_BACKEND"


@dataclass
class LinearSolverParameters:
    """Sparse linear solver settings."""

    backend: str = "scipy"
    tol: float = 1e-12                  # relative tolerance of iterative backends
    maxit: int = 10_000
    options: Dict[str, object] = field(default_factory=dict)   # backend specific


class LinearSolver:
    """Base class; subclasses implement :meth:`_solve` on validated input."""

    name = "base"

    def __init__(self, params: Optional[LinearSolverParameters] = None):
        self.params = params or LinearSolverParameters(backend=self.name)

    def solve(self, A, b) -> np.ndarray:
        A, b = self._check(A, b)
        if A.shape[0] == 0:
            return np.zeros(0, dtype=np.result_type(A.dtype, b.dtype))
        try:
            x = self._solve(A, b)
        except LinearSolveError:
            raise
        except (RuntimeError, ValueError, np.linalg.LinAlgError) as exc:
            raise LinearSolveError(f"{self.name} backend failed: {exc}") from exc
        x = np.asarray(x).reshape(-1)
        if not np.all(np.isfinite(x)):
            raise LinearSolveError(f"{self.name} backend returned a non-finite solution")
        return x

    @staticmethod
    def _check(A, b):
        if not sp.issparse(A):
            A = np.asarray(A)
            if A.ndim != 2:
                raise DimensionError(f"matrix must be 2-D, got shape {A.shape}")
            A = sp.csr_matrix(A)
        b = np.asarray(b)
        if A.shape[0] != A.shape[1]:
            raise DimensionError(f"matrix must be square, got shape {A.shape}")
        if b.ndim != 1 or b.shape[0] != A.shape[0]:
            raise DimensionError(f"right-hand side has shape {b.shape}, matrix {A.shape}")
        return A, b

    def _solve(self, A, b):
        raise NotImplementedError

    def __repr__(self):
        return f"<{type(self).__name__} backend={self.name!r}>"


class ScipyDirectSolver(LinearSolver):
    name = "scipy"

    def _solve(self, A, b):
        lu = spla.splu(sp.csc_matrix(A))
        try:
            return lu.solve(b)
        finally:
            del lu


class DenseSolver(LinearSolver):
    name = "dense"

    def _solve(self, A, b):
        return np.linalg.solve(A.toarray(), b)


class KrylovSolver(LinearSolver):
    """scipy Krylov method with an incomplete-LU preconditioner."""

    _METHODS: Dict[str, Callable] = {
        "gmres": spla.gmres,
        "bicgstab": spla.bicgstab,
        "cg": spla.cg,
    }

    def __init__(self, method: str, params: Optional[LinearSolverParameters] = None):
        if method not in self._METHODS:
            raise ConfigurationError(f"unknown Krylov method '{method}'")
        self.name = method
        super().__init__(params)

    def _solve(self, A, b):
        opts = self.params.options
        ilu = spla.spilu(sp.csc_matrix(A),
                         drop_tol=opts.get("drop_tol", 1e-5),
                         fill_factor=opts.get("fill_factor", 10))
        try:
            M = spla.LinearOperator(A.shape, ilu.solve, dtype=A.dtype)
            kwargs = dict(rtol=self.params.tol, atol=0.0, maxiter=self.params.maxit, M=M)
            if self.name == "gmres":
                kwargs["restart"] = opts.get("restart", 50)
            x, info = self._METHODS[self.name](A, b, **kwargs)
        finally:
            del ilu
        if info > 0:
            raise LinearSolveError(f"{self.name} did not converge in {info} iterations")
        if info < 0:
            raise LinearSolveError(f"{self.name} reported illegal input or breakdown ({info})")
        return x


class PetscSolver(LinearSolver):
    """
    KSP solve through petsc4py; ``options`` may set ``ksp_type`` and
    ``pc_type`` (defaults: direct LU).
    """

    name = "petsc"

    def _solve(self, A, b):
        try:
            from petsc4py import PETSc
        except ImportError as exc:
            raise LinearSolveError("the petsc backend needs petsc4py (install the 'petsc' extra)") from exc
        if np.iscomplexobj(A.data) and not np.issubdtype(PETSc.ScalarType, np.complexfloating):
            raise LinearSolveError("complex system given to a real-valued PETSc build")

        A = sp.csr_matrix(A)
        A.sort_indices()
        opts = self.params.options
        mat = ksp = x_vec = b_vec = None
        try:
            mat = PETSc.Mat().createAIJ(
                size=A.shape,
                csr=(A.indptr.astype(PETSc.IntType), A.indices.astype(PETSc.IntType),
                     A.data.astype(PETSc.ScalarType)),
            )
            mat.assemble()
            b_vec = mat.createVecLeft()
            b_vec.setArray(np.asarray(b, dtype=PETSc.ScalarType))
            x_vec = mat.createVecRight()

            ksp = PETSc.KSP().create()
            ksp.setOperators(mat)
            ksp.setType(opts.get("ksp_type", "preonly"))
            ksp.getPC().setType(opts.get("pc_type", "lu"))
            ksp.setTolerances(rtol=self.params.tol, max_it=self.params.maxit)
            ksp.solve(b_vec, x_vec)
            reason = ksp.getConvergedReason()
            if reason < 0:
                raise LinearSolveError(f"PETSc KSP diverged (reason {reason})")
            return x_vec.getArray().copy()
        except PETSc.Error as exc:
            raise LinearSolveError(f"PETSc error: {exc}") from exc
        finally:
            for obj in (ksp, x_vec, b_vec, mat):
                if obj is not None:
                    obj.destroy()


_BACKENDS: Dict[str, Callable[[LinearSolverParameters], LinearSolver]] = {
    "scipy": ScipyDirectSolver,
    "superlu": ScipyDirectSolver,
    "dense": DenseSolver,
    "gmres": lambda p: KrylovSolver("gmres", p),
    "bicgstab": lambda p: KrylovSolver("bicgstab", p),
    "cg": lambda p: KrylovSolver("cg", p),
    "petsc": PetscSolver,
}


def available_backends():
    return tuple(_BACKENDS)


def create_linear_solver(
    binding: Union[None, str, LinearSolverParameters, LinearSolver] = None,
) -> LinearSolver:
    """
    Linear solver for a backend name, a parameter set or an existing solver.

    ``None`` picks ``$PYNLFEM_LINEAR_BACKEND`` or ``"scipy"``.
    """
    if isinstance(binding, LinearSolver):
        return binding
    if binding is None:
        binding = os.getenv(ENV_BACKEND, "scipy")
    params = LinearSolverParameters(backend=binding) if isinstance(binding, str) else binding
    if not isinstance(params, LinearSolverParameters):
        raise ConfigurationError(f"cannot build a linear solver from {binding!r}")
    key = params.backend.lower()
    try:
        factory = _BACKENDS[key]
    except KeyError:
        raise ConfigurationError(
            f"Unknown linear solver backend '{params.backend}'; "
            f"choose one of {sorted(_BACKENDS)}."
        ) from None
    solver = factory(params)
    _rep.verbose("Linear solver backend: %s", solver.name)
    return solver
