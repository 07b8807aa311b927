"""pynlfem.assembly.discrete_problem
Binds a weak form to an H1 space and assembles Jacobian and residual.
"""
from __future__ import annotations

from typing import List

import numpy as np
import scipy.sparse as sp

from pynlfem.assembly.scatter import scatter_matrix, scatter_vector, triplet_buffers
from pynlfem.core.space import H1Space
from pynlfem.errors import AssemblyError, VectorLengthError
from pynlfem.fem import transform
from pynlfem.integration import quadrature
from pynlfem.utils.reporting import get_reporter
from pynlfem.weakform.weakform import ANY, Func, Geom, WeakForm

_rep = get_reporter(__name__)

# quadrature degree added on top of 2p for the bilinear geometry
GEOMETRY_DEGREE = 2


class _Block:
    """Tabulated geometry and basis for one element or one boundary edge."""
    __slots__ = ("dofs", "geom", "wt", "basis")

    def __init__(self, dofs, geom, wt, basis):
        self.dofs = dofs
        self.geom = geom
        self.wt = wt
        self.basis = basis


class DiscreteProblem:
    """
    Assembles ``F(x)`` and ``J(x) = dF/dx`` for the free DOFs of *space*.

    Row ``i`` of the system is the weak-form equation tested with the
    ``i``-th free basis function; eliminated nodes contribute their
    prescribed values through the field but own no row or column.
    Assembly never modifies the space or the weak form.
    """

    def __init__(self, wf: WeakForm, space: H1Space, quad_increase: int = 0):
        if not isinstance(wf, WeakForm):
            raise AssemblyError(f"expected a WeakForm, got {type(wf).__name__}")
        self.wf = wf
        self.space = space
        self.dtype = wf.dtype
        self.quad_increase = int(quad_increase)
        self._cache_key = None
        self._vol_blocks: List[_Block] = []
        self._surf_blocks: List[_Block] = []
        self._check_markers()

    def _check_markers(self):
        mesh = self.space.mesh
        vol, surf = self.wf.get_markers()
        missing_vol = vol - mesh.element_markers()
        missing_surf = surf - mesh.boundary_markers()
        if missing_vol or missing_surf:
            raise AssemblyError(
                "weak form references markers absent from the mesh: "
                f"elements {sorted(missing_vol)}, boundaries {sorted(missing_surf)}"
            )

    def _check_coverage(self):
        # a region without any Jacobian volume form has no physical coefficient
        if not self.wf.mfvol:
            return
        uncovered = sorted(m for m in self.space.mesh.element_markers()
                           if not any(f.applies_to(m) for f in self.wf.mfvol))
        if uncovered:
            raise AssemblyError(
                f"no volume form of the weak form covers the mesh regions {uncovered}; "
                "a coefficient is missing for them"
            )

    def get_num_dofs(self) -> int:
        return self.space.get_num_dofs()

    # ------------------------------------------------------------------
    #  Geometry tables
    # ------------------------------------------------------------------
    def _degree(self) -> int:
        p = self.space.get_element_order()
        return 2 * p + GEOMETRY_DEGREE + self.wf.quad_increase() + self.quad_increase

    def _ensure_tables(self):
        key = (id(self.space), self.space.current_seq(), self._degree())
        if key == self._cache_key:
            return
        with _rep.timed("Tabulating geometry"):
            self._build_tables()
        self._cache_key = key

    @staticmethod
    def _basis(ref, corners, xi, eta):
        J = transform.jacobian(corners, xi, eta)
        invJT = transform.inv_jac_T(J)
        grad = transform.map_grad_scalar(invJT, ref.grad(xi, eta))
        return J, Func(val=ref.shape(xi, eta), dx=grad[..., 0], dy=grad[..., 1])

    def _build_tables(self):
        space = self.space
        mesh = space.mesh
        ref = space.reference
        deg = self._degree()
        elem_dofs = space.element_dofs

        pts, w = quadrature.volume(deg)
        xi, eta = pts[:, 0], pts[:, 1]
        vol = []
        for elem in mesh.elements_list:
            corners = mesh.element_corner_coords(elem.id)
            J, basis = self._basis(ref, corners, xi, eta)
            detJ = transform.det_jacobian(J)
            if np.any(detJ <= 0.0):
                raise AssemblyError(f"non-positive Jacobian determinant on element {elem.id}")
            xy = transform.x_mapping(corners, xi, eta)
            geom = Geom(x=xy[:, 0], y=xy[:, 1], marker=elem.marker, elem_id=elem.id)
            vol.append(_Block(elem_dofs[elem.id], geom, w * detJ, basis))

        surf_markers = {f.area for f in self.wf.mfsurf + self.wf.vfsurf}
        surf = []
        for edge in mesh.boundary_edges():
            if ANY not in surf_markers and edge.tag not in surf_markers:
                continue
            elem = mesh.elements_list[edge.left]
            corners = mesh.element_corner_coords(elem.id)
            epts, ew = quadrature.surface(edge.lid, deg)
            exi, eeta = epts[:, 0], epts[:, 1]
            _, basis = self._basis(ref, corners, exi, eeta)
            xy = transform.x_mapping(corners, exi, eeta)
            ones = np.ones_like(exi)
            geom = Geom(x=xy[:, 0], y=xy[:, 1], marker=elem.marker, elem_id=elem.id,
                        nx=edge.normal[0] * ones, ny=edge.normal[1] * ones,
                        edge_marker=edge.tag)
            wt = ew * transform.edge_length_factor(corners, exi, eeta, edge.lid)
            surf.append(_Block(elem_dofs[elem.id], geom, wt, basis))

        self._vol_blocks = vol
        self._surf_blocks = surf
        _rep.verbose("Tabulated %d volume and %d surface blocks (degree %d).",
                     len(vol), len(surf), deg)

    # ------------------------------------------------------------------
    #  Assembly
    # ------------------------------------------------------------------
    def _check_vector(self, coeff_vec) -> np.ndarray:
        x = np.asarray(coeff_vec)
        ndof = self.space.get_num_dofs()
        if x.ndim != 1 or x.shape[0] != ndof:
            raise VectorLengthError(
                f"coefficient vector has shape {x.shape}, the space has {ndof} DOFs"
            )
        if np.iscomplexobj(x) and self.dtype.kind != "c":
            raise AssemblyError("complex coefficient vector given to a real weak form")
        return x.astype(self.dtype, copy=False)

    def _full_vector(self, x) -> np.ndarray:
        # constrained entries -(k+1) index the reversed Dirichlet tail from the end
        lift = self.space.dirichlet_values
        if np.iscomplexobj(lift) and self.dtype.kind != "c":
            raise AssemblyError("complex essential condition given to a real weak form")
        lift = lift.astype(self.dtype)
        return np.concatenate([x, lift[::-1]])

    @staticmethod
    def _field(full, block) -> Func:
        c = full[block.dofs]
        b = block.basis
        return Func(val=c @ b.val, dx=c @ b.dx, dy=c @ b.dy)

    def _local(self, form, out, shape):
        arr = np.asarray(out)
        if arr.shape != shape:
            raise AssemblyError(f"{form!r} returned shape {arr.shape}, expected {shape}")
        return np.ascontiguousarray(arr, dtype=self.dtype)

    def assemble(self, coeff_vec, *, residual_only: bool = False):
        """
        Evaluate every form at the field given by *coeff_vec*.

        Returns ``(J, F)`` with ``J`` a CSR matrix (``None`` when
        *residual_only*) and ``F`` a dense vector.
        """
        x = self._check_vector(coeff_vec)
        self._check_markers()
        self._check_coverage()
        self._ensure_tables()
        ndof = x.shape[0]
        n_loc = self.space.n_loc
        full = self._full_vector(x)
        wf = self.wf

        F = np.zeros(ndof, dtype=self.dtype)
        rows, cols, data = triplet_buffers(
            0 if residual_only else len(self._vol_blocks) + len(self._surf_blocks),
            n_loc, self.dtype,
        )
        pos = 0
        for blocks, mforms, vforms in ((self._vol_blocks, wf.mfvol, wf.vfvol),
                                       (self._surf_blocks, wf.mfsurf, wf.vfsurf)):
            for block in blocks:
                marker = block.geom.marker if blocks is self._vol_blocks else block.geom.edge_marker
                u_ext = self._field(full, block)
                basis = block.basis
                fe = None
                for form in vforms:
                    if form.applies_to(marker):
                        val = self._local(form, form.value(block.wt, u_ext, basis, block.geom),
                                          (n_loc,))
                        fe = val if fe is None else fe + val
                if fe is not None:
                    scatter_vector(block.dofs, fe, F)
                if residual_only:
                    continue
                ke = None
                for form in mforms:
                    if form.applies_to(marker):
                        val = self._local(form, form.value(block.wt, u_ext, basis, basis, block.geom),
                                          (n_loc, n_loc))
                        ke = val if ke is None else ke + val
                if ke is not None:
                    pos = scatter_matrix(block.dofs, ke, rows, cols, data, pos)

        if residual_only:
            return None, F
        J = sp.coo_matrix((data[:pos], (rows[:pos], cols[:pos])), shape=(ndof, ndof)).tocsr()
        _rep.trace("Assembled %d x %d Jacobian with %d nonzeros.", ndof, ndof, J.nnz)
        return J, F

    def assemble_residual(self, coeff_vec) -> np.ndarray:
        return self.assemble(coeff_vec, residual_only=True)[1]

    def __repr__(self):
        return f"<DiscreteProblem ndof={self.get_num_dofs()}, {self.wf!r}>"
