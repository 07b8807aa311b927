"""pynlfem.utils.meshgen
Mesh generators for examples and tests.
"""
import numpy as np
import numba
from typing import Callable, Dict, Optional, Tuple

from pynlfem.core.mesh import Mesh
from pynlfem.errors import ConfigurationError

__all__ = ["structured_quad", "rectangle_with_hole", "heat_plate_with_hole"]

Locators = Dict[str, Callable[[float, float], bool]]


@numba.njit(cache=True)
def _structured_grid(Lx: float, Ly: float, nx: int, ny: int):
    """Vertex coordinates (row by row) and CCW corner connectivity of an nx x ny grid."""
    coords = np.empty(((nx + 1) * (ny + 1), 2), dtype=np.float64)
    for j in range(ny + 1):
        for i in range(nx + 1):
            k = j * (nx + 1) + i
            coords[k, 0] = Lx * i / nx
            coords[k, 1] = Ly * j / ny
    elems = np.empty((nx * ny, 4), dtype=np.int64)
    for j in range(ny):
        for i in range(nx):
            v0 = j * (nx + 1) + i
            e = j * nx + i
            elems[e, 0] = v0
            elems[e, 1] = v0 + 1
            elems[e, 2] = v0 + nx + 2
            elems[e, 3] = v0 + nx + 1
    return coords, elems


def _compress(coords, elems):
    """Drop vertices no element references and renumber."""
    used = np.unique(elems)
    remap = -np.ones(len(coords), dtype=np.int64)
    remap[used] = np.arange(len(used))
    return coords[used], remap[elems]


def _default_boundary_locators(Lx: float, Ly: float, tol: float) -> Locators:
    return {
        "bottom": lambda x, y: abs(y) < tol,
        "right": lambda x, y: abs(x - Lx) < tol,
        "top": lambda x, y: abs(y - Ly) < tol,
        "left": lambda x, y: abs(x) < tol,
    }


def structured_quad(Lx: float, Ly: float, *, nx: int, ny: int,
                    offset: Optional[Tuple[float, float]] = None,
                    boundary_locators: Optional[Locators] = None,
                    element_locators: Optional[Locators] = None) -> Mesh:
    """
    Structured quadrilateral mesh of ``[0, Lx] x [0, Ly]`` (shifted by *offset*).

    Boundary edges are tagged ``bottom``/``right``/``top``/``left`` unless
    *boundary_locators* are given; locators receive physical coordinates.
    """
    if nx < 1 or ny < 1:
        raise ConfigurationError("nx and ny must be positive")
    coords, elems = _structured_grid(float(Lx), float(Ly), int(nx), int(ny))
    ox, oy = offset if offset is not None else (0.0, 0.0)
    coords[:, 0] += ox
    coords[:, 1] += oy
    mesh = Mesh(coords, elems)
    tol = 1e-9 * max(Lx, Ly)
    if boundary_locators is None:
        shifted = _default_boundary_locators(Lx, Ly, tol)
        boundary_locators = {k: (lambda f: lambda x, y: f(x - ox, y - oy))(f)
                             for k, f in shifted.items()}
    mesh.tag_boundary_edges(boundary_locators)
    if element_locators:
        mesh.tag_elements(element_locators)
    return mesh


def rectangle_with_hole(Lx: float = 2.0, Ly: float = 2.0, *, nx: int = 4, ny: int = 4,
                        hole: Tuple[int, int, int, int] = (1, 3, 1, 3),
                        boundary_locators: Optional[Locators] = None,
                        element_locators: Optional[Locators] = None) -> Mesh:
    """
    Rectangle with a rectangular hole made of grid cells ``i0 <= i < i1``,
    ``j0 <= j < j1``.

    Default boundary markers: ``Bottom`` (y = 0), ``Left`` (x = 0), ``Outer``
    (top and right sides) and ``Inner`` (the hole).
    """
    i0, i1, j0, j1 = hole
    if not (0 < i0 < i1 < nx and 0 < j0 < j1 < ny):
        raise ConfigurationError(f"hole {hole} must lie strictly inside the {nx} x {ny} grid")
    coords, elems = _structured_grid(float(Lx), float(Ly), int(nx), int(ny))
    keep = [j * nx + i for j in range(ny) for i in range(nx)
            if not (i0 <= i < i1 and j0 <= j < j1)]
    coords, elems = _compress(coords, elems[keep])
    mesh = Mesh(coords, elems)

    if boundary_locators is None:
        tol = 1e-9 * max(Lx, Ly)
        boundary_locators = {
            "Bottom": lambda x, y: abs(y) < tol,
            "Left": lambda x, y: abs(x) < tol,
            "Outer": lambda x, y: abs(y - Ly) < tol or abs(x - Lx) < tol,
            "Inner": lambda x, y: True,
        }
    mesh.tag_boundary_edges(boundary_locators)
    if element_locators:
        mesh.tag_elements(element_locators)
    return mesh


def heat_plate_with_hole(refinements: int = 0) -> Mesh:
    """
    Two-material plate used by the Newton boundary condition example:
    ``Aluminum`` left of x = 1, ``Copper`` right of it.
    """
    mesh = rectangle_with_hole(2.0, 2.0, nx=4, ny=4, hole=(1, 3, 1, 3),
                               element_locators={"Aluminum": lambda x, y: x < 1.0,
                                                 "Copper": lambda x, y: True})
    for _ in range(refinements):
        mesh.refine_all_elements()
    return mesh
