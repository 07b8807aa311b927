import numpy as np
import pytest

from pynlfem.core import Mesh
from pynlfem.errors import ConfigurationError
from pynlfem.utils.meshgen import heat_plate_with_hole, rectangle_with_hole, structured_quad


def test_neighbors_and_normals():
    nodes = np.array([[0, 0], [1, 0], [2, 0], [0, 1], [1, 1], [2, 1]], dtype=float)
    elements = np.array([[0, 1, 4, 3], [1, 2, 5, 4]])
    mesh = Mesh(nodes, elements)
    assert len(mesh.edges_list) == 7
    assert np.allclose([np.linalg.norm(e.normal) for e in mesh.edges_list], 1.0)
    assert mesh.elements_list[0].neighbors == (None, 1, None, None)
    assert mesh.elements_list[1].neighbors == (None, None, None, 0)
    shared = [e for e in mesh.edges_list if not e.on_boundary]
    assert len(shared) == 1 and shared[0].key() == (1, 4)
    # normals point away from the left element
    for e in mesh.boundary_edges():
        mid = nodes[list(e.nodes)].mean(axis=0)
        c = mesh.elements_list[e.left].centroid()
        assert np.dot(mid - np.array(c), e.normal) > 0


def test_clockwise_elements_are_reoriented():
    nodes = np.array([[0, 0], [1, 0], [1, 1], [0, 1]], dtype=float)
    mesh = Mesh(nodes, np.array([[0, 3, 2, 1]]))
    assert np.isclose(mesh.areas()[0], 1.0)
    bottom = [e for e in mesh.edges_list if e.key() == (0, 1)][0]
    assert np.allclose(bottom.normal, [0.0, -1.0])


@pytest.mark.parametrize("elements", [np.array([[0, 1, 1, 0]]), np.array([[0, 1, 2]])])
def test_invalid_connectivity(elements):
    nodes = np.array([[0, 0], [1, 0], [1, 1], [0, 1]], dtype=float)
    with pytest.raises(ConfigurationError):
        Mesh(nodes, elements)


def test_structured_quad_markers():
    mesh = structured_quad(2.0, 3.0, nx=2, ny=3)
    assert mesh.n_elements == 6 and mesh.n_vertices == 12
    assert len(mesh.edges_list) == 2 * 4 + 3 * 3
    assert mesh.boundary_markers() == {"bottom", "right", "top", "left"}
    assert len(mesh.boundary_edges("bottom")) == 2
    assert len(mesh.boundary_edges("left")) == 3
    assert np.isclose(mesh.areas().sum(), 6.0)


def test_structured_quad_offset():
    mesh = structured_quad(1.0, 1.0, nx=2, ny=2, offset=(-0.5, 2.0))
    assert np.allclose(mesh.vertices.min(axis=0), [-0.5, 2.0])
    assert len(mesh.boundary_edges("top")) == 2
    for e in mesh.boundary_edges("top"):
        assert np.allclose(mesh.vertices[list(e.nodes), 1], 3.0)


def test_refine_all_elements():
    mesh = structured_quad(1.0, 1.0, nx=2, ny=1, element_locators={"a": lambda x, y: x < 0.5,
                                                                   "b": lambda x, y: True})
    seq = mesh.seq
    mesh.refine_all_elements()
    assert mesh.seq != seq
    assert mesh.n_elements == 8
    assert np.isclose(mesh.areas().sum(), 1.0)
    assert sorted(el.marker for el in mesh.elements_list).count("a") == 4
    assert len(mesh.boundary_edges("bottom")) == 4
    assert len(mesh.boundary_edges("left")) == 2
    assert all(e.tag for e in mesh.boundary_edges())


def test_rectangle_with_hole():
    mesh = rectangle_with_hole(2.0, 2.0, nx=4, ny=4, hole=(1, 3, 1, 3))
    assert mesh.n_elements == 12
    assert mesh.boundary_markers() == {"Bottom", "Left", "Outer", "Inner"}
    assert len(mesh.boundary_edges("Inner")) == 8
    assert len(mesh.boundary_edges("Outer")) == 8
    assert np.isclose(mesh.areas().sum(), 3.0)
    with pytest.raises(ConfigurationError):
        rectangle_with_hole(nx=4, ny=4, hole=(0, 2, 1, 3))


def test_heat_plate_materials():
    mesh = heat_plate_with_hole()
    assert mesh.element_markers() == {"Aluminum", "Copper"}
    for el in mesh.elements_list:
        assert el.marker == ("Aluminum" if el.centroid_x < 1.0 else "Copper")
    mesh = heat_plate_with_hole(refinements=1)
    assert mesh.n_elements == 48
    assert len(mesh.boundary_edges("Inner")) == 16
