"""pynlfem.integration.quadrature
Gauss-Legendre rules for the reference quadrilateral and its edges.
"""
import numpy as np
from functools import lru_cache
from numpy.polynomial.legendre import leggauss

from pynlfem.utils.reporting import get_reporter

# number of 1-D points beyond which rules are clamped
MAX_POINTS = 24

_rep = get_reporter(__name__)


def points_for_degree(degree: int) -> int:
    """Smallest Gauss point count integrating polynomials of *degree* exactly."""
    n = max(1, (int(degree) + 2) // 2)
    if n > MAX_POINTS:
        _rep.warn_integration(
            "Integration degree %d needs %d points; clamped to %d (results are not exact).",
            degree, n, MAX_POINTS,
        )
        n = MAX_POINTS
    return n


# -------------------------------------------------------------------------
# 1-D Gauss-Legendre
# -------------------------------------------------------------------------
@lru_cache(maxsize=None)
def gauss_legendre(order: int):
    if order < 1:
        raise ValueError(order)
    return leggauss(order)  # (points, weights)


# -------------------------------------------------------------------------
# Tensor-product construction helpers
# -------------------------------------------------------------------------
@lru_cache(maxsize=None)
def quad_rule(order: int):
    """*order* x *order* points on [-1,1]^2, (eta outer, xi inner)."""
    xi, wi = gauss_legendre(order)
    pts = np.array([[x, y] for y in xi for x in xi])
    wts = np.array([wx * wy for wy in wi for wx in wi])
    return pts, wts


# -------------------------------------------------------------------------
# Edge / facet rules (reference domain)
# -------------------------------------------------------------------------
@lru_cache(maxsize=None)
def edge(edge_index: int, order: int = 2):
    """Points on local edge *edge_index* of the reference quad, CCW direction."""
    t, wi = gauss_legendre(order)
    if edge_index == 0:   # bottom
        pts = np.column_stack([t, -np.ones_like(t)])
    elif edge_index == 1: # right
        pts = np.column_stack([np.ones_like(t), t])
    elif edge_index == 2: # top
        pts = np.column_stack([t[::-1], np.ones_like(t)])
    elif edge_index == 3: # left
        pts = np.column_stack([-np.ones_like(t), t[::-1]])
    else:
        raise IndexError(edge_index)
    return pts, wi


def volume(degree: int):
    return quad_rule(points_for_degree(degree))


def surface(edge_index: int, degree: int):
    return edge(edge_index, points_for_degree(degree))
