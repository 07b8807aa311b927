"""pynlfem.core.boundary
Essential (Dirichlet) boundary conditions keyed by boundary marker.
"""
from numbers import Number
from typing import Callable, Dict, Iterable, Optional, Union

import numpy as np

from pynlfem.errors import ConfigurationError

ValueRule = Union[Number, Callable[[np.ndarray, np.ndarray], np.ndarray]]


class EssentialBC:
    """
    Prescribed value on every boundary edge carrying *marker*.

    *value* is a number or a callable ``f(x, y)`` accepting coordinate
    arrays.  :meth:`linear` builds the common ``a*x + b*y + c`` rule.
    """

    def __init__(self, marker: str, value: ValueRule):
        if not isinstance(marker, str) or not marker:
            raise ConfigurationError(f"boundary marker must be a non-empty string, got {marker!r}")
        if not (isinstance(value, Number) or callable(value)):
            raise ConfigurationError(f"BC value for '{marker}' must be a number or a callable")
        self.marker = marker
        self.value = value
        self._key = ("const", value) if isinstance(value, Number) else ("func", value)

    @classmethod
    def constant(cls, marker: str, c: Number) -> "EssentialBC":
        return cls(marker, c)

    @classmethod
    def linear(cls, marker: str, a: float, b: float, c: float) -> "EssentialBC":
        bc = cls(marker, lambda x, y: a * np.asarray(x) + b * np.asarray(y) + c)
        bc._key = ("linear", float(a), float(b), float(c))
        return bc

    def evaluate(self, x, y) -> np.ndarray:
        x = np.asarray(x, dtype=float)
        y = np.asarray(y, dtype=float)
        if self._key[0] == "const":
            return np.full(x.shape, self.value)
        return np.broadcast_to(np.asarray(self.value(x, y)), x.shape).copy()

    def same_rule(self, other: "EssentialBC") -> bool:
        return self._key == other._key

    def __repr__(self):
        return f"EssentialBC(marker={self.marker!r}, rule={self._key[0]})"


class EssentialBCs:
    """Marker -> :class:`EssentialBC` set; a marker may carry one rule only."""

    def __init__(self, bcs: Optional[Iterable[EssentialBC]] = None):
        self._by_marker: Dict[str, EssentialBC] = {}
        for bc in bcs or ():
            self.add(bc)

    def add(self, bc: EssentialBC):
        if not isinstance(bc, EssentialBC):
            raise ConfigurationError(f"expected EssentialBC, got {type(bc).__name__}")
        prev = self._by_marker.get(bc.marker)
        if prev is not None and not prev.same_rule(bc):
            raise ConfigurationError(
                f"boundary marker '{bc.marker}' is given two different essential conditions"
            )
        self._by_marker.setdefault(bc.marker, bc)

    def validate(self, mesh):
        unknown = set(self._by_marker) - mesh.boundary_markers()
        if unknown:
            raise ConfigurationError(
                f"essential BCs reference unknown boundary markers {sorted(unknown)}; "
                f"mesh has {sorted(mesh.boundary_markers())}"
            )

    def get(self, marker: str) -> Optional[EssentialBC]:
        return self._by_marker.get(marker)

    @property
    def markers(self):
        return tuple(self._by_marker)

    def __contains__(self, marker):
        return marker in self._by_marker

    def __len__(self):
        return len(self._by_marker)

    def __iter__(self):
        return iter(self._by_marker.values())
