import numpy as np
from dataclasses import dataclass, field
from typing import Tuple, Optional


@dataclass(slots=True)
class Edge:
    gid: int
    nodes: Tuple[int, int]      # vertex ids, oriented counter-clockwise w.r.t. the left element
    left: int                   # element owning the edge (always present)
    right: Optional[int]        # neighbour across the edge, None on the boundary
    normal: np.ndarray          # unit normal pointing out of the left element
    tag: str = ""               # boundary marker ("" = unmarked)
    lid: int = -1               # local edge index within the left element

    @property
    def on_boundary(self) -> bool:
        return self.right is None

    def key(self) -> Tuple[int, int]:
        a, b = self.nodes
        return (a, b) if a < b else (b, a)


@dataclass(slots=True)
class Element:
    id: int
    corner_nodes: Tuple[int, int, int, int]           # counter-clockwise
    marker: str = ""                                  # material / region marker
    edges: Tuple[int, ...] = field(default_factory=tuple)
    neighbors: Tuple[Optional[int], ...] = field(default_factory=tuple)
    centroid_x: float = 0.0
    centroid_y: float = 0.0

    def centroid(self) -> Tuple[float, float]:
        return self.centroid_x, self.centroid_y
