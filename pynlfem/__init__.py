"""pynlfem: Newton-Raphson solve core for H1 finite-element problems."""
from pynlfem.assembly.discrete_problem import DiscreteProblem
from pynlfem.core.boundary import EssentialBC, EssentialBCs
from pynlfem.core.mesh import Mesh
from pynlfem.core.solution import Solution, vector_to_solution
from pynlfem.core.space import H1Space
from pynlfem.errors import (
    AssemblyError,
    ConfigurationError,
    DimensionError,
    DivergedError,
    FailedError,
    LinearSolveError,
    NewtonError,
    PointLocationError,
    PynlfemError,
    VectorLengthError,
)
from pynlfem.solvers.linear import LinearSolver, LinearSolverParameters, create_linear_solver
from pynlfem.solvers.newton import NewtonParameters, NewtonResult, NewtonSolver, NewtonStatus, run_newton
from pynlfem.utils.reporting import ReportConfig, configure_reporting, get_reporter

__version__ = "0.1.0"

__all__ = [
    "Mesh", "EssentialBC", "EssentialBCs", "H1Space", "Solution", "vector_to_solution",
    "DiscreteProblem", "LinearSolver", "LinearSolverParameters", "create_linear_solver",
    "NewtonParameters", "NewtonResult", "NewtonSolver", "NewtonStatus", "run_newton",
    "ReportConfig", "configure_reporting", "get_reporter",
    "PynlfemError", "ConfigurationError", "DimensionError", "AssemblyError",
    "VectorLengthError", "PointLocationError", "LinearSolveError", "NewtonError",
    "DivergedError", "FailedError",
]
