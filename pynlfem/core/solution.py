"""pynlfem.core.solution
Immutable FE field built from a coefficient vector and a space.
"""
from __future__ import annotations

import numpy as np

from pynlfem.core.space import H1Space
from pynlfem.errors import DimensionError, PointLocationError
from pynlfem.fem import transform
from pynlfem.fem.reference import get_reference


class Solution:
    """
    Snapshot of a discrete field.

    The coefficients, the element-to-DOF map and the Dirichlet lift are
    copied at creation, so later changes to the space (refinement, a new
    order) or to the source vector do not affect the solution.
    """

    def __init__(self, space: H1Space, coeff_vec):
        lift = space.dirichlet_values
        dtype = np.result_type(np.asarray(coeff_vec).dtype, lift.dtype, float)
        coeffs = np.array(coeff_vec, dtype=dtype, copy=True)
        coeffs.setflags(write=False)
        self._coeffs = coeffs
        self.order = space.get_element_order()
        self._element_dofs = space.element_dofs.copy()
        self._vertices = space.mesh.vertices.copy()
        self._corners = np.array([e.corner_nodes for e in space.mesh.elements_list], dtype=np.int64)
        # negative DOF entries -(k+1) index this array from its end
        self._full = np.concatenate([coeffs, lift[::-1].astype(dtype)])
        self._full.setflags(write=False)

    @property
    def coefficients(self) -> np.ndarray:
        return self._coeffs

    @property
    def num_dofs(self) -> int:
        return int(self._coeffs.shape[0])

    @property
    def dtype(self):
        return self._coeffs.dtype

    def _element_values(self, elem_id: int, xi, eta):
        ref = get_reference(self.order)
        return self._full[self._element_dofs[elem_id]] @ ref.shape(xi, eta)

    def _find_element(self, x, y, tol=1e-10):
        p = np.array([x, y], dtype=float)
        for eid, corners in enumerate(self._corners):
            c = self._vertices[corners]
            d = np.roll(c, -1, axis=0) - c
            cross = d[:, 0] * (p[1] - c[:, 1]) - d[:, 1] * (p[0] - c[:, 0])
            if np.all(cross >= -tol * max(1.0, np.abs(c).max())):
                return eid
        return None

    def get_pt_value(self, x: float, y: float):
        """Field value at a physical point; ``PointLocationError`` outside the mesh."""
        eid = self._find_element(x, y)
        if eid is None:
            raise PointLocationError(f"point ({x}, {y}) lies outside the mesh")
        corners = self._vertices[self._corners[eid]]
        xi, eta = transform.inverse_mapping(corners, (x, y))
        return self._element_values(eid, np.clip(xi, -1.0, 1.0), np.clip(eta, -1.0, 1.0))[()]

    def vertex_values(self) -> np.ndarray:
        """Field values at the mesh vertices (the corners of every element)."""
        out = np.empty(len(self._vertices), dtype=self.dtype)
        ref_corners = np.array([[-1.0, -1.0], [1.0, -1.0], [1.0, 1.0], [-1.0, 1.0]])
        for eid, corners in enumerate(self._corners):
            out[corners] = self._element_values(eid, ref_corners[:, 0], ref_corners[:, 1])
        return out

    def __repr__(self):
        return f"<Solution p={self.order}, ndof={self.num_dofs}, dtype={self.dtype}>"


def vector_to_solution(coeff_vec, space: H1Space) -> Solution:
    """Materialise *coeff_vec* on *space*; ``DimensionError`` on a length mismatch."""
    vec = np.asarray(coeff_vec)
    ndof = space.get_num_dofs()
    if vec.ndim != 1 or vec.shape[0] != ndof:
        raise DimensionError(f"coefficient vector has shape {vec.shape}, the space has {ndof} DOFs")
    return Solution(space, vec)
