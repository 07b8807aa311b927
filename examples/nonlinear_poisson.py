#!/usr/bin/env python
# coding: utf-8

"""
Nonlinear Poisson problem with a solution-dependent conductivity.

Problem setup:
- PDE: -div(lambda(u) grad u) + f = 0 on (0,1)^2, lambda(u) = 1 + u^2
- BC:  u = 1 + x on the whole boundary
- f chosen so that the exact solution is u = 1 + x

With a linear solution grad u is constant, so f = d/dx (lambda(u) u_x)
= 2 u u_x^2 = 2 (1 + x).
"""

import argparse

import numpy as np

from pynlfem.assembly.discrete_problem import DiscreteProblem
from pynlfem.core.boundary import EssentialBC
from pynlfem.core.solution import vector_to_solution
from pynlfem.core.space import H1Space
from pynlfem.solvers.newton import NewtonParameters, NewtonSolver
from pynlfem.utils.meshgen import structured_quad
from pynlfem.utils.reporting import ReportConfig, configure_reporting
from pynlfem.weakform.coefficients import NonlinearCoefficient, SpatialCoefficient
from pynlfem.weakform.h1 import DefaultWeakFormPoisson


def exact(x, y):
    return 1.0 + x


def run_nonlinear_poisson(*, n: int = 4, p: int = 2, backend: str = "scipy", damping: float = 1.0):
    mesh = structured_quad(1.0, 1.0, nx=n, ny=n)
    bcs = [EssentialBC(marker, exact) for marker in ("bottom", "right", "top", "left")]
    space = H1Space(mesh, bcs, p_init=p)
    lam = NonlinearCoefficient(lambda u: 1.0 + u**2, lambda u: 2.0 * u)
    wf = DefaultWeakFormPoisson(lam, SpatialCoefficient(lambda x, y: 2.0 * (1.0 + x)))
    dp = DiscreteProblem(wf, space)

    params = NewtonParameters(tol=1e-10, max_iter=50, damping=damping)
    result = NewtonSolver(dp, backend, params).solve(np.zeros(space.get_num_dofs()))
    sln = vector_to_solution(result.x, space)

    err = max(abs(sln.get_pt_value(x, y) - exact(x, y))
              for x, y in [(0.3, 0.4), (0.77, 0.12), (0.5, 0.5)])
    print(f"ndof = {space.get_num_dofs()}, iterations = {result.iterations}, "
          f"|F| = {result.residual_norm:.2e}, max point error = {err:.2e}")
    return result, sln


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description="Nonlinear Poisson with lambda(u) = 1 + u^2")
    parser.add_argument("--n", type=int, default=4, help="elements per direction")
    parser.add_argument("--p", type=int, default=2, help="polynomial order")
    parser.add_argument("--backend", default="scipy", help="linear solver backend")
    parser.add_argument("--damping", type=float, default=1.0)
    args = parser.parse_args()

    configure_reporting(ReportConfig(info=True))
    run_nonlinear_poisson(n=args.n, p=args.p, backend=args.backend, damping=args.damping)
