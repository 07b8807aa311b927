import numpy as np
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from pynlfem.core.topology import Edge, Element
from pynlfem.errors import ConfigurationError


class Mesh:
    """
    Quadrilateral mesh with element (material) markers and boundary markers.

    The mesh builds its edge graph from the corner connectivity: shared edges
    get a left and a right element, boundary edges only a left one, and every
    edge carries the outward unit normal of its left element.  Boundary edges
    and elements are labelled with string markers that weak forms and
    essential boundary conditions refer to.

    ``seq`` changes on every topological or marker mutation; spaces built on the mesh
    use it to notice that their DOF numbering is stale.
    """
    # local corner pairs forming each edge, counter-clockwise
    _EDGE_TABLE = ((0, 1), (1, 2), (2, 3), (3, 0))
    DEFAULT_MARKER = "domain"

    def __init__(self,
                 vertices: np.ndarray,
                 elements: np.ndarray,
                 *,
                 element_markers: Optional[Sequence[str]] = None,
                 boundary_markers: Optional[Dict[Tuple[int, int], str]] = None):
        vertices = np.asarray(vertices, dtype=float)
        elements = np.asarray(elements, dtype=np.int64)
        if vertices.ndim != 2 or vertices.shape[1] != 2:
            raise ConfigurationError(f"vertices must have shape (n, 2), got {vertices.shape}")
        if elements.ndim != 2 or elements.shape[1] != 4:
            raise ConfigurationError(f"elements must have shape (n, 4), got {elements.shape}")
        if elements.size and (elements.min() < 0 or elements.max() >= len(vertices)):
            raise ConfigurationError("element connectivity references unknown vertices")
        if element_markers is None:
            element_markers = [self.DEFAULT_MARKER] * len(elements)
        if len(element_markers) != len(elements):
            raise ConfigurationError(
                f"{len(element_markers)} element markers for {len(elements)} elements"
            )

        self.seq = 0
        self._set_topology(vertices, elements, list(element_markers), boundary_markers or {})

    # ------------------------------------------------------------------
    #  Topology
    # ------------------------------------------------------------------
    def _set_topology(self, vertices, elements, element_markers, boundary_markers):
        self.vertices = vertices
        self.elements_connectivity = self._orient_ccw(vertices, elements.copy())
        self.elements_list: List[Element] = []
        self.edges_list: List[Edge] = []
        self._edge_dict: Dict[Tuple[int, int], Edge] = {}
        self._build_topology(element_markers)
        for key, tag in boundary_markers.items():
            edge = self._edge_dict.get(tuple(sorted(key)))
            if edge is None or not edge.on_boundary:
                raise ConfigurationError(f"boundary marker '{tag}' given for non-boundary edge {key}")
            edge.tag = tag
        self.seq += 1

    @staticmethod
    def _orient_ccw(vertices, elements):
        for row in elements:
            x, y = vertices[row, 0], vertices[row, 1]
            area2 = np.dot(x, np.roll(y, -1)) - np.dot(y, np.roll(x, -1))
            if abs(area2) < 1e-300:
                raise ConfigurationError(f"degenerate element with corners {row.tolist()}")
            if area2 < 0:
                row[:] = row[::-1]
        return elements

    def _build_topology(self, element_markers):
        xy = self.vertices
        for eid, corners in enumerate(self.elements_connectivity):
            cx, cy = xy[corners].mean(axis=0)
            self.elements_list.append(Element(
                id=eid,
                corner_nodes=tuple(int(c) for c in corners),
                marker=str(element_markers[eid]),
                centroid_x=float(cx),
                centroid_y=float(cy),
            ))

        # map each geometric edge to the elements sharing it
        incidences: Dict[Tuple[int, int], List[Tuple[int, int]]] = {}
        for eid, corners in enumerate(self.elements_connectivity):
            for lid, (i, j) in enumerate(self._EDGE_TABLE):
                a, b = int(corners[i]), int(corners[j])
                incidences.setdefault((min(a, b), max(a, b)), []).append((eid, lid))

        for gid, (key, shared) in enumerate(incidences.items()):
            if len(shared) > 2:
                raise ConfigurationError(f"edge {key} is shared by {len(shared)} elements")
            left, lid = shared[0]
            i, j = self._EDGE_TABLE[lid]
            corners = self.elements_connectivity[left]
            vA, vB = int(corners[i]), int(corners[j])
            right = shared[1][0] if len(shared) == 2 else None
            edge = Edge(gid=gid, nodes=(vA, vB), left=left, right=right,
                        normal=self._compute_normal(vA, vB), lid=lid)
            self.edges_list.append(edge)
            self._edge_dict[key] = edge

        for elem in self.elements_list:
            gids, nbrs = [], []
            for i, j in self._EDGE_TABLE:
                a, b = elem.corner_nodes[i], elem.corner_nodes[j]
                edge = self._edge_dict[(min(a, b), max(a, b))]
                gids.append(edge.gid)
                nbrs.append(edge.right if edge.left == elem.id else edge.left)
            elem.edges = tuple(gids)
            elem.neighbors = tuple(nbrs)

    def _compute_normal(self, vA: int, vB: int) -> np.ndarray:
        """Outward unit normal of a counter-clockwise directed edge."""
        d = self.vertices[vB] - self.vertices[vA]
        n = np.array([d[1], -d[0]], dtype=float)
        length = np.linalg.norm(n)
        return n / length if length > 1e-14 else np.zeros(2)

    # ------------------------------------------------------------------
    #  Markers
    # ------------------------------------------------------------------
    def tag_boundary_edges(self, tag_functions: Dict[str, Callable[[float, float], bool]],
                           overwrite: bool = True):
        """Label boundary edges whose midpoint satisfies a locator; first match wins."""
        for edge in self.edges_list:
            if not edge.on_boundary or (edge.tag and not overwrite):
                continue
            mx, my = self.vertices[list(edge.nodes)].mean(axis=0)
            for tag, func in tag_functions.items():
                if func(mx, my):
                    edge.tag = tag
                    break
        self.seq += 1

    def tag_elements(self, tag_functions: Dict[str, Callable[[float, float], bool]]):
        """Label elements whose centroid satisfies a locator; first match wins."""
        for elem in self.elements_list:
            for tag, func in tag_functions.items():
                if func(elem.centroid_x, elem.centroid_y):
                    elem.marker = tag
                    break
        self.seq += 1

    def boundary_markers(self) -> set:
        return {e.tag for e in self.edges_list if e.on_boundary and e.tag}

    def element_markers(self) -> set:
        return {el.marker for el in self.elements_list}

    def boundary_edges(self, tag: Optional[str] = None) -> List[Edge]:
        return [e for e in self.edges_list
                if e.on_boundary and (tag is None or e.tag == tag)]

    # ------------------------------------------------------------------
    #  Refinement
    # ------------------------------------------------------------------
    def refine_all_elements(self):
        """Split every quadrilateral into four; markers are inherited."""
        xy = [tuple(p) for p in self.vertices]
        midpoints: Dict[Tuple[int, int], int] = {}

        def _mid(a: int, b: int) -> int:
            key = (min(a, b), max(a, b))
            if key not in midpoints:
                xy.append(tuple(0.5 * (self.vertices[a] + self.vertices[b])))
                midpoints[key] = len(xy) - 1
            return midpoints[key]

        new_elems, new_markers = [], []
        for elem in self.elements_list:
            c0, c1, c2, c3 = elem.corner_nodes
            m01, m12, m23, m30 = _mid(c0, c1), _mid(c1, c2), _mid(c2, c3), _mid(c3, c0)
            xy.append(tuple(self.vertices[list(elem.corner_nodes)].mean(axis=0)))
            ce = len(xy) - 1
            new_elems += [[c0, m01, ce, m30], [m01, c1, m12, ce],
                          [ce, m12, c2, m23], [m30, ce, m23, c3]]
            new_markers += [elem.marker] * 4

        child_tags: Dict[Tuple[int, int], str] = {}
        for edge in self.boundary_edges():
            if not edge.tag:
                continue
            a, b = edge.nodes
            m = midpoints[edge.key()]
            child_tags[(a, m)] = edge.tag
            child_tags[(m, b)] = edge.tag

        self._set_topology(np.array(xy, dtype=float), np.array(new_elems, dtype=np.int64),
                           new_markers, child_tags)

    # ------------------------------------------------------------------
    #  Public API
    # ------------------------------------------------------------------
    @property
    def n_elements(self) -> int:
        return len(self.elements_list)

    @property
    def n_vertices(self) -> int:
        return len(self.vertices)

    def element_corner_coords(self, elem_id: int) -> np.ndarray:
        return self.vertices[list(self.elements_list[elem_id].corner_nodes)]

    def areas(self) -> np.ndarray:
        out = np.zeros(self.n_elements)
        for elem in self.elements_list:
            x, y = self.element_corner_coords(elem.id).T
            out[elem.id] = 0.5 * abs(np.dot(x, np.roll(y, -1)) - np.dot(y, np.roll(x, -1)))
        return out

    def __repr__(self):
        return (f"<Mesh n_vertices={self.n_vertices}, n_elems={self.n_elements}, "
                f"n_edges={len(self.edges_list)}, markers={sorted(self.element_markers())}, "
                f"boundary={sorted(self.boundary_markers())}>")
