from functools import lru_cache
import sympy as sp
import numpy as np
from numpy.polynomial import legendre


@lru_cache(maxsize=None)
def lobatto_nodes(n: int) -> np.ndarray:
    """Gauss-Lobatto points on [-1,1]: the endpoints plus the roots of P_n'."""
    if n < 1:
        raise ValueError(n)
    if n == 1:
        return np.array([-1.0, 1.0])
    inner = np.sort(legendre.Legendre.basis(n).deriv().roots().real)
    nodes = np.concatenate(([-1.0], inner, [1.0]))
    # exact symmetry keeps shared edge nodes identical from both sides
    return 0.5 * (nodes - nodes[::-1])


@lru_cache(maxsize=None)
def _lagrange_basis_1d(n: int, max_deriv_order: int):
    """Return 1D Lagrange basis + derivatives as NUMPY-callable lambdas."""
    x = sp.symbols('x')
    nodes = lobatto_nodes(n)
    dL = {k: [] for k in range(max_deriv_order+1)}
    for i, xi in enumerate(nodes):
        num = 1
        den = 1.0
        for j, xj in enumerate(nodes):
            if i == j:
                continue
            num *= (x - float(xj))
            den *= (float(xi) - float(xj))
        Li = sp.expand(num/den)
        for k in range(max_deriv_order+1):
            dL[k].append(sp.lambdify(x, sp.diff(Li, x, k), 'numpy'))
    return nodes, dL


def _eval_1d(funcs, z):
    # constant derivatives lambdify to scalars; broadcast them to the point set
    z = np.asarray(z, dtype=float)
    return np.array([np.broadcast_to(f(z), z.shape) for f in funcs], dtype=float)


@lru_cache(maxsize=None)
def quad_qn(n: int, max_deriv_order: int = 1):
    """
    Tensor-product Q_n on [-1,1]^2 with Gauss-Lobatto nodes.
    Returns: (nodes1d, shape_fn, deriv_fns) where
      shape_fn(xi,eta) -> ( (n+1)^2, *xi.shape )
      deriv_fns[(ax,ay)](xi,eta) -> same shape, ax+ay<=max_deriv_order
    Stacking order is (eta outer, xi inner): index = j*(n+1) + i
    """
    nodes1d, dL = _lagrange_basis_1d(n, max_deriv_order)
    m = n + 1

    def _tensor(fx, fy, xi, eta):
        lx = _eval_1d(fx, xi)         # (n+1, ...)
        ly = _eval_1d(fy, eta)
        return (ly[:, None] * lx[None, :]).reshape((m * m,) + lx.shape[1:])

    def shape(xi, eta):
        return _tensor(dL[0], dL[0], xi, eta)

    derivs = {}
    for ax in range(max_deriv_order+1):
        for ay in range(max_deriv_order+1):
            if ax + ay > max_deriv_order:
                continue
            def make(ax=ax, ay=ay):
                def d(xi, eta):
                    return _tensor(dL[ax], dL[ay], xi, eta)
                return d
            derivs[(ax, ay)] = make()
    return nodes1d, shape, derivs
