import numpy as np
import pytest

from pynlfem.core import EssentialBC, H1Space
from pynlfem.core.solution import Solution, vector_to_solution
from pynlfem.errors import DimensionError, PointLocationError
from pynlfem.utils.meshgen import structured_quad


def _space(p=2):
    mesh = structured_quad(2.0, 1.0, nx=2, ny=2)
    return H1Space(mesh, [EssentialBC.linear("left", 0.0, 1.0, 3.0)], p_init=p)


def test_wrong_length_raises_dimension_error():
    space = _space()
    with pytest.raises(DimensionError):
        vector_to_solution(np.zeros(space.get_num_dofs() + 1), space)
    with pytest.raises(DimensionError):
        vector_to_solution(np.zeros((space.get_num_dofs(), 2)), space)


def test_solution_is_an_immutable_snapshot():
    space = _space()
    vec = np.ones(space.get_num_dofs())
    sln = vector_to_solution(vec, space)
    assert isinstance(sln, Solution)
    assert sln.num_dofs == len(vec) and sln.order == 2 and sln.dtype == np.float64
    with pytest.raises(ValueError):
        sln.coefficients[0] = 5.0
    vec[:] = 7.0
    assert np.all(sln.coefficients == 1.0)
    space.mesh.refine_all_elements()
    space.set_uniform_order(3)
    assert sln.num_dofs == len(vec)
    assert np.isclose(sln.get_pt_value(1.5, 0.5), 1.0)


def test_point_values_and_vertex_values():
    space = _space(p=3)
    coords = space.get_dof_coords()
    # a cubic field is reproduced exactly by Q_3 nodal interpolation
    f = lambda x, y: 3.0 + y + x * (2.0 - x) * y ** 2 + x ** 3
    sln = vector_to_solution(f(coords[:, 0], coords[:, 1]), space)
    for x, y in [(0.1, 0.9), (1.3, 0.25), (2.0, 1.0), (0.0, 0.5)]:
        assert np.isclose(sln.get_pt_value(x, y), f(x, y))
    v = sln.vertex_values()
    verts = space.mesh.vertices
    assert np.allclose(v, f(verts[:, 0], verts[:, 1]))


def test_point_outside_mesh():
    sln = vector_to_solution(np.zeros(_space().get_num_dofs()), _space())
    with pytest.raises(PointLocationError, match="outside") as exc:
        sln.get_pt_value(3.0, 0.5)
    assert isinstance(exc.value, ValueError)


def test_complex_solution():
    space = _space()
    sln = vector_to_solution(np.full(space.get_num_dofs(), 1.0j), space)
    assert sln.dtype == np.complex128
    assert np.isclose(sln.get_pt_value(1.0, 0.5), 1.0j)
