#!/usr/bin/env python
# coding: utf-8

"""
Stationary heat transfer with a Newton boundary condition.

Problem setup:
- PDE: -div(lambda grad T) = 0 on a plate with a hole; lambda = 236
  (Aluminum, left half) and 386 (Copper, right half)
- BC:  T = 20 on Bottom, Left and Inner (the hole)
- BC:  lambda dT/dn = alpha (T_ext - T) on Outer, alpha = 5, T_ext = 50

For every polynomial order p = 1..10 a fresh discrete problem is built, Newton
is started from a zero vector and the number of DOFs together with the sum
of the converged coefficients is printed.
"""

import argparse
import time

import numpy as np

from pynlfem.assembly.discrete_problem import DiscreteProblem
from pynlfem.core.boundary import EssentialBC
from pynlfem.core.solution import vector_to_solution
from pynlfem.core.space import H1Space
from pynlfem.solvers.linear import create_linear_solver
from pynlfem.solvers.newton import run_newton
from pynlfem.utils.meshgen import heat_plate_with_hole
from pynlfem.utils.reporting import ReportConfig, configure_reporting
from pynlfem.weakform.h1 import HeatNewtonBCWeakForm

LAMBDA_AL = 236.0       # thermal conductivity of aluminum, W/(m K)
LAMBDA_CU = 386.0       # thermal conductivity of copper, W/(m K)
ALPHA = 5.0             # heat transfer coefficient on "Outer"
T_EXTERIOR = 50.0       # exterior temperature
BDY_A, BDY_B, BDY_C = 0.0, 0.0, 20.0    # Dirichlet data a*x + b*y + c
NEWTON_TOL = 1e-8
NEWTON_MAX_ITER = 100


def run_bc_newton(*, p_max: int = 10, refinements: int = 0, backend: str = "scipy",
                  newton_tol: float = NEWTON_TOL):
    """Solve for p = 1..p_max; returns a list of (p, ndof, coefficient sum, solution)."""
    mesh = heat_plate_with_hole(refinements)
    bcs = [EssentialBC.linear(marker, BDY_A, BDY_B, BDY_C) for marker in ("Bottom", "Inner", "Left")]
    space = H1Space(mesh, bcs, p_init=1)
    wf = HeatNewtonBCWeakForm({"Aluminum": LAMBDA_AL, "Copper": LAMBDA_CU},
                              alpha=ALPHA, t_exterior=T_EXTERIOR, newton_marker="Outer")

    results = []
    for p in range(1, p_max + 1):
        space.set_uniform_order(p)
        ndof = space.get_num_dofs()
        # a new problem and a new linear solver per order
        dp = DiscreteProblem(wf, space)
        solver = create_linear_solver(backend)
        coeff_vec = np.zeros(ndof)

        t0 = time.perf_counter()
        coeff_vec, status = run_newton(coeff_vec, dp, solver, newton_tol, NEWTON_MAX_ITER)
        sln = vector_to_solution(coeff_vec, space)
        results.append((p, ndof, float(coeff_vec.sum()), sln))
        print(f"p = {p:2d}  ndof = {ndof:5d}  coeff_sum = {coeff_vec.sum(): .10e}  "
              f"({status.value}, {time.perf_counter() - t0:.2f}s)")
    return results


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description="Heat transfer with a Newton boundary condition")
    parser.add_argument("--p-max", type=int, default=10, help="highest polynomial order (1..10)")
    parser.add_argument("--refinements", type=int, default=0, help="uniform mesh refinements")
    parser.add_argument("--backend", default="scipy", help="linear solver backend")
    parser.add_argument("--verbose", action="store_true", help="report Newton iterations and timings")
    args = parser.parse_args()

    configure_reporting(ReportConfig(info=args.verbose, time=args.verbose) if args.verbose else None)
    run_bc_newton(p_max=args.p_max, refinements=args.refinements, backend=args.backend)
