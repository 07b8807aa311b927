"""pynlfem.weakform.coefficients
Physical coefficients evaluated at quadrature points.

A coefficient is called as ``coef(geom, u)`` where ``geom`` is the
:class:`~pynlfem.weakform.weakform.Geom` of the current element or edge and
``u`` the current field (a :class:`~pynlfem.weakform.weakform.Func` with
``(nq,)`` arrays).  ``coef.derivative(geom, u)`` is the derivative with
respect to the field value, zero unless the coefficient depends on it.
"""
from numbers import Number
from typing import Callable, Dict, Mapping, Union

import numpy as np

from pynlfem.errors import AssemblyError, ConfigurationError


class Coefficient:
    """Base class; subclasses override :meth:`evaluate`."""

    is_nonlinear = False

    def evaluate(self, geom, u) -> np.ndarray:
        raise NotImplementedError

    def derivative(self, geom, u) -> np.ndarray:
        return np.zeros_like(geom.x)

    def __call__(self, geom, u) -> np.ndarray:
        return np.broadcast_to(self.evaluate(geom, u), geom.x.shape)


class ConstantCoefficient(Coefficient):
    def __init__(self, value: Number):
        self.value = value

    def evaluate(self, geom, u):
        return np.full(geom.x.shape, self.value)

    def __repr__(self):
        return f"ConstantCoefficient({self.value!r})"


class SpatialCoefficient(Coefficient):
    """``f(x, y)`` of the physical coordinates."""

    def __init__(self, func: Callable[[np.ndarray, np.ndarray], np.ndarray]):
        self.func = func

    def evaluate(self, geom, u):
        return np.asarray(self.func(geom.x, geom.y))


class MarkerCoefficient(Coefficient):
    """
    Piecewise coefficient keyed by the element (material) marker.

    Evaluating it on a region that has no entry raises
    :class:`~pynlfem.errors.AssemblyError`.
    """

    def __init__(self, values: Mapping[str, Union[Number, Coefficient]]):
        if not values:
            raise ConfigurationError("MarkerCoefficient needs at least one marker")
        self.values: Dict[str, Coefficient] = {k: as_coefficient(v) for k, v in values.items()}
        self.is_nonlinear = any(c.is_nonlinear for c in self.values.values())

    def _lookup(self, geom) -> Coefficient:
        try:
            return self.values[geom.marker]
        except KeyError:
            raise AssemblyError(
                f"coefficient undefined on region '{geom.marker}' "
                f"(defined on {sorted(self.values)})"
            ) from None

    def evaluate(self, geom, u):
        return self._lookup(geom)(geom, u)

    def derivative(self, geom, u):
        return self._lookup(geom).derivative(geom, u)


class NonlinearCoefficient(Coefficient):
    """
    Coefficient depending on the field value, e.g. a conductivity ``lambda(u)``.

    *derivative* is ``d value / du``; it feeds the Jacobian.
    """

    is_nonlinear = True

    def __init__(self, value: Callable[[np.ndarray], np.ndarray],
                 derivative: Callable[[np.ndarray], np.ndarray]):
        self._value = value
        self._derivative = derivative

    def evaluate(self, geom, u):
        return np.asarray(self._value(u.val))

    def derivative(self, geom, u):
        return np.broadcast_to(np.asarray(self._derivative(u.val)), geom.x.shape)


def as_coefficient(obj) -> Coefficient:
    if isinstance(obj, Coefficient):
        return obj
    if isinstance(obj, Number):
        return ConstantCoefficient(obj)
    if callable(obj):
        return SpatialCoefficient(obj)
    raise ConfigurationError(f"cannot interpret {obj!r} as a coefficient")
