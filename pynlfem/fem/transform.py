"""pynlfem.fem.transform
Reference -> physical mapping for bilinear quadrilaterals.

All routines are vectorised over quadrature points: ``xi`` and ``eta`` are
arrays of equal shape, and the Jacobian is stored as ``J[q, p, r] =
d x_p / d xi_r``.
"""
import numpy as np

from pynlfem.fem.reference import get_reference

# counter-clockwise corners -> (eta outer, xi inner) Q1 lattice
_Q1_LATTICE = (0, 1, 3, 2)
# reference tangents of the CCW quad edges
_EDGE_TANGENT = np.array([[1.0, 0.0], [0.0, 1.0], [-1.0, 0.0], [0.0, -1.0]])


def _lattice_coords(corners: np.ndarray) -> np.ndarray:
    return np.asarray(corners, dtype=float)[list(_Q1_LATTICE)]


def x_mapping(corners, xi, eta):
    """Physical points, shape (*xi.shape, 2)."""
    ref = get_reference(1)
    N = ref.shape(xi, eta)                      # (4, ...)
    return np.tensordot(N, _lattice_coords(corners), axes=([0], [0]))


def jacobian(corners, xi, eta):
    """Jacobian matrices, shape (*xi.shape, 2, 2)."""
    ref = get_reference(1)
    dN = ref.grad(xi, eta)                      # (4, ..., 2)
    return np.einsum('kp,k...r->...pr', _lattice_coords(corners), dN)


def det_jacobian(J):
    return J[..., 0, 0] * J[..., 1, 1] - J[..., 0, 1] * J[..., 1, 0]


def inv_jac_T(J):
    """Inverse-transposed Jacobians; maps reference gradients to physical ones."""
    det = det_jacobian(J)
    out = np.empty_like(J)
    out[..., 0, 0] = J[..., 1, 1] / det
    out[..., 0, 1] = -J[..., 1, 0] / det
    out[..., 1, 0] = -J[..., 0, 1] / det
    out[..., 1, 1] = J[..., 0, 0] / det
    return out


def map_grad_scalar(invJT, grad_ref):
    """grad_ref (n_loc, nq, 2) -> physical gradients (n_loc, nq, 2)."""
    return np.einsum('qpr,kqr->kqp', invJT, grad_ref)


def edge_length_factor(corners, xi, eta, local_edge_idx: int):
    """
    Ratio of physical to reference edge length at the given reference
    points of edge *local_edge_idx*.
    """
    J = jacobian(corners, xi, eta)
    return np.linalg.norm(J @ _EDGE_TANGENT[local_edge_idx], axis=-1)


def inverse_mapping(corners, x, tol=1e-12, maxiter=50):
    """Reference coordinates of physical point *x* (Newton iteration)."""
    x = np.asarray(x, dtype=float)
    ref_pt = np.zeros(2)
    for it in range(maxiter):
        X = x_mapping(corners, ref_pt[0], ref_pt[1])
        J = jacobian(corners, ref_pt[0], ref_pt[1])
        try:
            delta = np.linalg.solve(J, x - X)
        except np.linalg.LinAlgError:
            raise ValueError(f"Jacobian singular at iteration {it}, x={x}")
        ref_pt += delta
        if np.linalg.norm(delta) < tol:
            break
    else:
        raise ValueError(f"Inverse mapping did not converge after {maxiter} iterations, "
                         f"x={x}, residual={np.linalg.norm(x - X)}")
    return ref_pt
