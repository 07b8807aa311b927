"""pynlfem.weakform.h1
Default H1 forms and ready-made weak forms built from them.
"""
from numbers import Number
from typing import Mapping, Union

from pynlfem.weakform.coefficients import Coefficient, as_coefficient
from pynlfem.weakform.integrals import (
    int_F_grad_u_grad_v,
    int_F_grad_w_grad_v,
    int_F_u_grad_w_grad_v,
    int_F_u_v,
    int_F_v,
)
from pynlfem.weakform.weakform import (
    ANY,
    MatrixFormSurf,
    MatrixFormVol,
    VectorFormSurf,
    VectorFormVol,
    WeakForm,
)

CoefLike = Union[Number, Coefficient]


# ------------------------------------------------------------------
#  Volume forms
# ------------------------------------------------------------------
class DefaultJacobianDiffusion(MatrixFormVol):
    """Jacobian of ``int lambda(u) grad u . grad v``."""

    def __init__(self, coef: CoefLike = 1.0, area: str = ANY, **kw):
        super().__init__(area, **kw)
        self.coef = as_coefficient(coef)

    def value(self, wt, u_ext, u, v, geom):
        out = int_F_grad_u_grad_v(wt, self.coef(geom, u_ext), u, v)
        if self.coef.is_nonlinear:
            out = out + int_F_u_grad_w_grad_v(wt, self.coef.derivative(geom, u_ext), u, u_ext, v)
        return out


class DefaultResidualDiffusion(VectorFormVol):
    def __init__(self, coef: CoefLike = 1.0, area: str = ANY, **kw):
        super().__init__(area, **kw)
        self.coef = as_coefficient(coef)

    def value(self, wt, u_ext, v, geom):
        return int_F_grad_w_grad_v(wt, self.coef(geom, u_ext), u_ext, v)


class DefaultVectorFormVol(VectorFormVol):
    """``int f v``; *f* may depend on position but not on the field."""

    def __init__(self, coef: CoefLike = 1.0, area: str = ANY, **kw):
        super().__init__(area, **kw)
        self.coef = as_coefficient(coef)

    def value(self, wt, u_ext, v, geom):
        return int_F_v(wt, self.coef(geom, u_ext), v)


# ------------------------------------------------------------------
#  Surface forms
# ------------------------------------------------------------------
class DefaultMatrixFormSurf(MatrixFormSurf):
    """Jacobian of ``int_Gamma alpha(u) u v``."""

    def __init__(self, coef: CoefLike = 1.0, area: str = ANY, **kw):
        super().__init__(area, **kw)
        self.coef = as_coefficient(coef)

    def value(self, wt, u_ext, u, v, geom):
        f = self.coef(geom, u_ext)
        if self.coef.is_nonlinear:
            f = f + self.coef.derivative(geom, u_ext) * u_ext.val
        return int_F_u_v(wt, f, u, v)


class DefaultResidualSurf(VectorFormSurf):
    """``int_Gamma alpha(u) u v``."""

    def __init__(self, coef: CoefLike = 1.0, area: str = ANY, **kw):
        super().__init__(area, **kw)
        self.coef = as_coefficient(coef)

    def value(self, wt, u_ext, v, geom):
        return int_F_v(wt, self.coef(geom, u_ext) * u_ext.val, v)


class DefaultVectorFormSurf(VectorFormSurf):
    """``int_Gamma g v``."""

    def __init__(self, coef: CoefLike = 1.0, area: str = ANY, **kw):
        super().__init__(area, **kw)
        self.coef = as_coefficient(coef)

    def value(self, wt, u_ext, v, geom):
        return int_F_v(wt, self.coef(geom, u_ext), v)


# ------------------------------------------------------------------
#  Weak forms
# ------------------------------------------------------------------
class DefaultWeakFormPoisson(WeakForm):
    """
    ``-div(lambda(u) grad u) + f = 0`` with homogeneous natural conditions.

    *conductivity* may be a constant, a marker-wise or a nonlinear
    coefficient.
    """

    def __init__(self, conductivity: CoefLike = 1.0, source: CoefLike = 0.0,
                 area: str = ANY, dtype=float):
        super().__init__(dtype)
        self.add_matrix_form(DefaultJacobianDiffusion(conductivity, area))
        self.add_vector_form(DefaultResidualDiffusion(conductivity, area))
        if not (isinstance(source, Number) and source == 0):
            self.add_vector_form(DefaultVectorFormVol(source, area))


class HeatNewtonBCWeakForm(WeakForm):
    """
    Stationary heat conduction with per-material conductivity and a Newton
    (Robin) condition ``lambda du/dn = alpha (T_ext - u)`` on *newton_marker*.
    Other boundaries not fixed by essential conditions are insulated.
    """

    def __init__(self, conductivities: Mapping[str, CoefLike], alpha: float,
                 t_exterior: float, newton_marker: str, source: CoefLike = 0.0,
                 dtype=float):
        super().__init__(dtype)
        for marker, lam in conductivities.items():
            self.add_matrix_form(DefaultJacobianDiffusion(lam, marker))
            self.add_vector_form(DefaultResidualDiffusion(lam, marker))
        if not (isinstance(source, Number) and source == 0):
            self.add_vector_form(DefaultVectorFormVol(source, ANY))
        self.add_matrix_form_surf(DefaultMatrixFormSurf(alpha, newton_marker))
        self.add_vector_form_surf(DefaultResidualSurf(alpha, newton_marker))
        self.add_vector_form_surf(DefaultVectorFormSurf(-alpha * t_exterior, newton_marker))
