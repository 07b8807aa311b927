"""pynlfem.weakform.weakform
Weak-form container and the four form kinds it collects.

A *matrix form* contributes to the Jacobian, a *vector form* to the
residual; *volume* forms are integrated over elements whose marker equals
``area`` and *surface* forms over boundary edges whose marker equals
``area``.  ``ANY`` matches every region.

Subclasses implement ``value``:

* ``MatrixFormVol.value(wt, u_ext, u, v, geom) -> (n_loc, n_loc)``
* ``VectorFormVol.value(wt, u_ext, v, geom) -> (n_loc,)``

and likewise for the surface kinds.  ``u_ext`` is the current field, ``u``
the basis functions and ``v`` the test functions (see :class:`Func`).
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Set, Tuple

import numpy as np

from pynlfem.errors import AssemblyError, ConfigurationError

ANY = "*"


@dataclass(frozen=True)
class Func:
    """Values and physical derivatives at quadrature points."""
    val: np.ndarray
    dx: np.ndarray
    dy: np.ndarray


@dataclass(frozen=True)
class Geom:
    """Geometry of the element or edge being integrated."""
    x: np.ndarray
    y: np.ndarray
    marker: str                          # element (material) marker
    elem_id: int
    nx: Optional[np.ndarray] = None      # outward normal, surface forms only
    ny: Optional[np.ndarray] = None
    edge_marker: Optional[str] = None


class Form:
    """Common base: region marker, a name, and extra quadrature degree."""

    def __init__(self, area: str = ANY, name: Optional[str] = None, quad_increase: int = 0):
        if not isinstance(area, str):
            raise ConfigurationError(f"form area must be a marker string, got {area!r}")
        self.area = area
        self.name = name or type(self).__name__
        self.quad_increase = int(quad_increase)

    def applies_to(self, marker: Optional[str]) -> bool:
        return self.area == ANY or self.area == marker

    def __repr__(self):
        return f"<{self.name} area={self.area!r}>"


class MatrixFormVol(Form):
    def value(self, wt, u_ext: Func, u: Func, v: Func, geom: Geom) -> np.ndarray:
        raise NotImplementedError


class VectorFormVol(Form):
    def value(self, wt, u_ext: Func, v: Func, geom: Geom) -> np.ndarray:
        raise NotImplementedError


class MatrixFormSurf(Form):
    def value(self, wt, u_ext: Func, u: Func, v: Func, geom: Geom) -> np.ndarray:
        raise NotImplementedError


class VectorFormSurf(Form):
    def value(self, wt, u_ext: Func, v: Func, geom: Geom) -> np.ndarray:
        raise NotImplementedError


class WeakForm:
    """
    Ordered collection of forms for a single scalar equation.

    The weak form is not mutated by assembly; forms hold references to the
    coefficients given at construction.
    """

    def __init__(self, dtype=float):
        dt = np.dtype(dtype)
        if dt.kind not in "fc":
            raise ConfigurationError(f"weak form dtype must be real or complex, got {dt}")
        self.dtype = np.dtype(np.complex128) if dt.kind == "c" else np.dtype(np.float64)
        self.mfvol: List[MatrixFormVol] = []
        self.vfvol: List[VectorFormVol] = []
        self.mfsurf: List[MatrixFormSurf] = []
        self.vfsurf: List[VectorFormSurf] = []

    @staticmethod
    def _check(form, kind, target):
        if not isinstance(form, kind):
            raise AssemblyError(f"expected a {kind.__name__}, got {type(form).__name__}")
        target.append(form)
        return form

    def add_matrix_form(self, form: MatrixFormVol):
        return self._check(form, MatrixFormVol, self.mfvol)

    def add_vector_form(self, form: VectorFormVol):
        return self._check(form, VectorFormVol, self.vfvol)

    def add_matrix_form_surf(self, form: MatrixFormSurf):
        return self._check(form, MatrixFormSurf, self.mfsurf)

    def add_vector_form_surf(self, form: VectorFormSurf):
        return self._check(form, VectorFormSurf, self.vfsurf)

    def get_markers(self) -> Tuple[Set[str], Set[str]]:
        """(element markers, boundary markers) referenced by the forms, without ``ANY``."""
        vol = {f.area for f in self.mfvol + self.vfvol if f.area != ANY}
        surf = {f.area for f in self.mfsurf + self.vfsurf if f.area != ANY}
        return vol, surf

    def quad_increase(self) -> int:
        forms = self.mfvol + self.vfvol + self.mfsurf + self.vfsurf
        return max((f.quad_increase for f in forms), default=0)

    def __len__(self):
        return len(self.mfvol) + len(self.vfvol) + len(self.mfsurf) + len(self.vfsurf)

    def __repr__(self):
        return (f"<WeakForm dtype={self.dtype}, mfvol={len(self.mfvol)}, vfvol={len(self.vfvol)}, "
                f"mfsurf={len(self.mfsurf)}, vfsurf={len(self.vfsurf)}>")
