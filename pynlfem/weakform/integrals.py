"""pynlfem.weakform.integrals
Quadrature sums used by the forms.

``wt`` already contains the Jacobian determinant (or the edge length
factor).  Basis functions ``u``/``v`` carry ``(n_loc, nq)`` arrays, fields
and coefficients ``(nq,)`` arrays.  Matrix helpers return ``M[i, j]`` with
``i`` the test function and ``j`` the basis function.
"""
import numpy as np


def int_v(wt, v):
    return v.val @ wt


def int_F_v(wt, f, v):
    return v.val @ (wt * f)


def int_u_v(wt, u, v):
    return np.einsum('q,iq,jq->ij', wt, v.val, u.val)


def int_F_u_v(wt, f, u, v):
    return np.einsum('q,iq,jq->ij', wt * f, v.val, u.val)


def int_grad_u_grad_v(wt, u, v):
    return (np.einsum('q,iq,jq->ij', wt, v.dx, u.dx)
            + np.einsum('q,iq,jq->ij', wt, v.dy, u.dy))


def int_F_grad_u_grad_v(wt, f, u, v):
    return int_grad_u_grad_v(wt * f, u, v)


def int_F_grad_w_grad_v(wt, f, w, v):
    """``w`` is a field; the result is a vector over the test functions."""
    return v.dx @ (wt * f * w.dx) + v.dy @ (wt * f * w.dy)


def int_F_u_grad_w_grad_v(wt, f, u, w, v):
    """``d/du_j`` of ``lambda(w) grad w . grad v_i`` through ``lambda``."""
    g = wt * f
    return (np.einsum('q,iq,jq->ij', g * w.dx, v.dx, u.val)
            + np.einsum('q,iq,jq->ij', g * w.dy, v.dy, u.val))
