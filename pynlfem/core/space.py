"""pynlfem.core.space
Continuous Q_p (H1) space with essential boundary conditions eliminated.
"""
from __future__ import annotations

from numbers import Integral
from typing import Dict, Iterable, List, Optional, Union

import numpy as np

from pynlfem.core.boundary import EssentialBC, EssentialBCs
from pynlfem.core.mesh import Mesh
from pynlfem.errors import ConfigurationError
from pynlfem.fem import transform
from pynlfem.fem.reference import MAX_ORDER, get_reference
from pynlfem.utils.reporting import get_reporter

_rep = get_reporter(__name__)

BcLike = Union[None, EssentialBCs, Iterable[EssentialBC]]


def _as_bcs(bcs: BcLike) -> EssentialBCs:
    if bcs is None:
        return EssentialBCs()
    if isinstance(bcs, EssentialBCs):
        return bcs
    if isinstance(bcs, EssentialBC):
        return EssentialBCs([bcs])
    return EssentialBCs(bcs)


def _check_order(p) -> int:
    if isinstance(p, bool) or not isinstance(p, Integral) or not 1 <= p <= MAX_ORDER:
        raise ConfigurationError(f"polynomial order must be an integer in [1, {MAX_ORDER}], got {p!r}")
    return int(p)


class H1Space:
    """
    Enumerates the free unknowns of a continuous Lagrange space.

    Every mesh vertex carries one node, every edge ``p-1`` nodes and every
    element ``(p-1)^2`` interior nodes.  Edge nodes are numbered from the
    lower to the higher global vertex id, so both neighbours of an edge see
    the same ordering.  Nodes lying on a boundary edge whose marker has an
    essential condition are eliminated: they get no DOF index, and their
    value is the condition evaluated at the node (nodal interpolation).

    ``element_dofs[e, k]`` is the DOF of local function ``k`` on element
    ``e`` when non-negative; a negative entry ``-(i+1)`` refers to
    ``dirichlet_values[i]``.

    The numbering is recomputed whenever the order, the BC set or the mesh
    (detected through ``mesh.seq``) changes; ``seq`` counts recomputations.
    """

    def __init__(self, mesh: Mesh, bcs: BcLike = None, p_init: int = 1):
        self.mesh = mesh
        self._bcs = _as_bcs(bcs)
        self._order = _check_order(p_init)
        self.seq = 0
        self._mesh_seq = None
        self._assign_dofs()

    # ------------------------------------------------------------------
    #  Configuration
    # ------------------------------------------------------------------
    def set_uniform_order(self, p: int):
        self._order = _check_order(p)
        self._assign_dofs()

    def set_essential_bcs(self, bcs: BcLike):
        previous, self._bcs = self._bcs, _as_bcs(bcs)
        try:
            self._assign_dofs()
        except ConfigurationError:
            self._bcs = previous
            raise

    @property
    def bcs(self) -> EssentialBCs:
        return self._bcs

    def get_element_order(self, elem_id: Optional[int] = None) -> int:
        if elem_id is not None and not 0 <= elem_id < self.mesh.n_elements:
            raise IndexError(f"element {elem_id} out of range")
        return self._order

    # ------------------------------------------------------------------
    #  Queries (always current)
    # ------------------------------------------------------------------
    def _ensure_current(self):
        if self._mesh_seq != self.mesh.seq:
            _rep.verbose("Mesh changed (seq %s -> %s), renumbering.", self._mesh_seq, self.mesh.seq)
            self._assign_dofs()

    def get_num_dofs(self) -> int:
        self._ensure_current()
        return self._ndof

    @property
    def element_dofs(self) -> np.ndarray:
        self._ensure_current()
        return self._element_dofs

    @property
    def dirichlet_values(self) -> np.ndarray:
        self._ensure_current()
        return self._dirichlet_values

    @property
    def reference(self):
        return get_reference(self._order)

    @property
    def n_loc(self) -> int:
        return (self._order + 1) ** 2

    def get_dof_coords(self) -> np.ndarray:
        """Physical coordinates of the free DOFs, shape (ndof, 2)."""
        self._ensure_current()
        return self._node_coords[self._free_nodes]

    def current_seq(self) -> int:
        self._ensure_current()
        return self.seq

    # ------------------------------------------------------------------
    #  Numbering
    # ------------------------------------------------------------------
    def _assign_dofs(self):
        mesh = self.mesh
        self._bcs.validate(mesh)
        p = self._order
        ref = get_reference(p)
        n_edge = p - 1
        n_int = (p - 1) ** 2

        n_nodes = mesh.n_vertices
        edge_base = np.empty(len(mesh.edges_list), dtype=np.int64)
        for edge in mesh.edges_list:
            edge_base[edge.gid] = n_nodes
            n_nodes += n_edge
        int_base = n_nodes + n_int * np.arange(mesh.n_elements, dtype=np.int64)
        n_nodes += n_int * mesh.n_elements

        elem_nodes = np.empty((mesh.n_elements, ref.n_loc), dtype=np.int64)
        node_coords = np.empty((n_nodes, 2))
        lattice = ref.lattice_points()
        vertex_idx = list(ref.vertex_indices)
        interior_idx = list(ref.interior_indices)
        for elem in mesh.elements_list:
            corners = elem.corner_nodes
            row = elem_nodes[elem.id]
            row[vertex_idx] = corners
            for lid in range(4):
                a, b = corners[lid], corners[(lid + 1) % 4]
                ids = edge_base[elem.edges[lid]] + np.arange(n_edge)
                row[list(ref.edge_indices(lid))] = ids if a < b else ids[::-1]
            row[interior_idx] = int_base[elem.id] + np.arange(n_int)
            node_coords[row] = transform.x_mapping(
                mesh.element_corner_coords(elem.id), lattice[:, 0], lattice[:, 1]
            )

        # nodes fixed by essential conditions, with every marker that touches them
        node_tags: Dict[int, List[str]] = {}
        for edge in mesh.boundary_edges():
            if edge.tag not in self._bcs:
                continue
            a, b = edge.nodes
            for node in (a, b, *range(edge_base[edge.gid], edge_base[edge.gid] + n_edge)):
                tags = node_tags.setdefault(int(node), [])
                if edge.tag not in tags:
                    tags.append(edge.tag)

        node_to_dof = np.empty(n_nodes, dtype=np.int64)
        constrained = np.zeros(n_nodes, dtype=bool)
        constrained[list(node_tags)] = True
        free_nodes = np.flatnonzero(~constrained)
        fixed_nodes = np.flatnonzero(constrained)
        node_to_dof[free_nodes] = np.arange(len(free_nodes))
        node_to_dof[fixed_nodes] = -(np.arange(len(fixed_nodes)) + 1)
        lift = self._dirichlet_lift(node_tags, fixed_nodes, node_coords)

        self._element_dofs = node_to_dof[elem_nodes]
        self._dirichlet_values = lift
        self._node_coords = node_coords
        self._free_nodes = free_nodes
        self._ndof = int(len(free_nodes))
        self._mesh_seq = mesh.seq
        self.seq += 1
        _rep.info("H1 space: p=%d, %d elements, %d free DOFs, %d constrained.",
                  p, mesh.n_elements, self._ndof, len(fixed_nodes))

    def _dirichlet_lift(self, node_tags, fixed_nodes, node_coords) -> np.ndarray:
        """
        Nodal interpolation of the essential conditions at *fixed_nodes*.

        A node shared by several markers (a corner between two Dirichlet
        boundaries) must get the same value from every rule; the lift is
        complex as soon as one rule is.
        """
        pos = {int(nd): k for k, nd in enumerate(fixed_nodes)}
        evaluated = []
        for marker in self._bcs.markers:
            nodes = [nd for nd, tags in node_tags.items() if marker in tags]
            if nodes:
                xy = node_coords[nodes]
                idx = np.array([pos[nd] for nd in nodes], dtype=np.int64)
                evaluated.append((marker, idx, self._bcs.get(marker).evaluate(xy[:, 0], xy[:, 1])))

        dtype = np.result_type(np.float64, *(val.dtype for _, _, val in evaluated))
        lift = np.zeros(len(fixed_nodes), dtype=dtype)
        assigned = np.zeros(len(fixed_nodes), dtype=bool)
        for marker, idx, val in evaluated:
            seen = assigned[idx]
            clash = seen & ~np.isclose(lift[idx], val, rtol=1e-9, atol=1e-12)
            if clash.any():
                k = idx[clash][0]
                x, y = node_coords[fixed_nodes[k]]
                others = [t for t in node_tags[int(fixed_nodes[k])] if t != marker]
                raise ConfigurationError(
                    f"essential conditions on {sorted(others + [marker])} disagree at the "
                    f"shared node ({x:g}, {y:g}): {lift[k]!r} vs {val[clash][0]!r}"
                )
            lift[idx[~seen]] = val[~seen]
            assigned[idx] = True
        return lift

    def __repr__(self):
        return (f"<H1Space p={self._order}, ndof={self.get_num_dofs()}, "
                f"bcs={list(self._bcs.markers)}>")
