# pynlfem.fem.reference
"""
Order-agnostic reference-element factory for the Q_p quadrilateral.

Local functions are stacked on the (eta outer, xi inner) node lattice.  The
helpers below classify lattice indices into vertex, edge and interior
groups in the counter-clockwise order the mesh uses for corners and edges.
"""
from functools import lru_cache
import numpy as np

from pynlfem.fem.reference.quad_qn import quad_qn, lobatto_nodes

MAX_ORDER = 10


class Ref:
    def __init__(self, order, nodes1d, shape_lambda, deriv_lambdas):
        self.order = order
        self.nodes1d = nodes1d
        self.shape_lambda = shape_lambda
        self.deriv_lambdas = deriv_lambdas
        self.n_loc = (order + 1) ** 2

    def shape(self, xi, eta):
        """Basis values, shape (n_loc, *xi.shape)."""
        return self.shape_lambda(xi, eta)

    def derivative(self, xi, eta, order_xi, order_eta):
        alpha = (order_xi, order_eta)
        if alpha not in self.deriv_lambdas:
            raise ValueError(f"Derivative order {alpha} not computed. "
                             f"Adjust max_deriv_order >= {order_xi + order_eta}.")
        return self.deriv_lambdas[alpha](xi, eta)

    def grad(self, xi, eta):
        """Reference gradients, shape (n_loc, *xi.shape, 2)."""
        return np.stack((self.derivative(xi, eta, 1, 0),
                         self.derivative(xi, eta, 0, 1)), axis=-1)

    # ------------------------------------------------------------------
    #  Lattice bookkeeping
    # ------------------------------------------------------------------
    def lattice_index(self, i: int, j: int) -> int:
        return j * (self.order + 1) + i

    @property
    def vertex_indices(self):
        n = self.order
        return tuple(self.lattice_index(i, j) for i, j in ((0, 0), (n, 0), (n, n), (0, n)))

    def edge_indices(self, lid: int):
        """Interior lattice indices of local edge *lid*, ordered along its CCW direction."""
        n = self.order
        inner = range(1, n)
        if lid == 0:
            pts = [(i, 0) for i in inner]
        elif lid == 1:
            pts = [(n, j) for j in inner]
        elif lid == 2:
            pts = [(i, n) for i in reversed(inner)]
        elif lid == 3:
            pts = [(0, j) for j in reversed(inner)]
        else:
            raise IndexError(lid)
        return tuple(self.lattice_index(i, j) for i, j in pts)

    @property
    def interior_indices(self):
        n = self.order
        return tuple(self.lattice_index(i, j) for j in range(1, n) for i in range(1, n))

    def lattice_points(self) -> np.ndarray:
        """Reference coordinates of all nodes, shape (n_loc, 2)."""
        xi, eta = np.meshgrid(self.nodes1d, self.nodes1d)   # eta outer, xi inner
        return np.column_stack([xi.ravel(), eta.ravel()])


@lru_cache(maxsize=None)
def get_reference(poly_order: int = 1, max_deriv_order: int = 1) -> Ref:
    if not 1 <= poly_order <= MAX_ORDER:
        raise ValueError(f"poly_order must lie in [1, {MAX_ORDER}], got {poly_order}")
    nodes1d, shape_l, deriv_lambdas = quad_qn(poly_order, max_deriv_order)
    return Ref(poly_order, nodes1d, shape_l, deriv_lambdas)


__all__ = ["MAX_ORDER", "Ref", "get_reference", "lobatto_nodes"]
