import logging

import numpy as np
import pytest

from pynlfem.fem import transform
from pynlfem.fem.reference import get_reference, lobatto_nodes
from pynlfem.integration import quadrature as q
from pynlfem.utils.reporting import ReportConfig, configure_reporting


def test_constant_volume():
    pts, wts = q.quad_rule(3)
    assert pts.shape == (9, 2)
    assert np.isclose(wts.sum(), 4.0, rtol=1e-12)


@pytest.mark.parametrize("degree", [1, 4, 9, 20])
def test_polynomial_exactness(degree):
    pts, wts = q.volume(degree)
    k = degree - degree % 2
    assert np.isclose((wts * pts[:, 0] ** k).sum(), 4.0 / (k + 1), rtol=1e-12)
    assert np.isclose((wts * pts[:, 1] ** k).sum(), 4.0 / (k + 1), rtol=1e-12)


@pytest.mark.parametrize("edge", range(4))
def test_edge_rule_quad(edge):
    pts, wts = q.edge(edge, 3)
    assert np.isclose(wts.sum(), 2.0, rtol=1e-12)
    assert np.allclose(np.abs(pts).max(axis=1), 1.0)


def test_clamped_rule_reports_integration_warning():
    records = []

    class _Collect(logging.Handler):
        def emit(self, record):
            records.append(record.getMessage())

    h = _Collect()
    logging.getLogger("pynlfem").addHandler(h)
    try:
        configure_reporting(ReportConfig(console=False))
        q.points_for_degree(200)
        assert records == []
        configure_reporting(ReportConfig(console=False, warn_integration=True))
        assert q.points_for_degree(200) == q.MAX_POINTS
    finally:
        logging.getLogger("pynlfem").removeHandler(h)
    assert any("clamped" in r for r in records)


def test_lobatto_nodes_symmetric():
    for n in range(1, 11):
        x = lobatto_nodes(n)
        assert len(x) == n + 1
        assert x[0] == -1.0 and x[-1] == 1.0
        assert np.all(np.diff(x) > 0)
        assert np.array_equal(x, -x[::-1])


@pytest.mark.parametrize("n", [1, 2, 3, 6, 10])
def test_kronecker_and_partition_of_unity(n):
    ref = get_reference(n)
    lattice = ref.lattice_points()
    N = ref.shape(lattice[:, 0], lattice[:, 1])
    assert N.shape == (ref.n_loc, ref.n_loc)
    assert np.allclose(N, np.eye(ref.n_loc), atol=1e-10)
    xi, eta = np.array([0.123, -0.7]), np.array([-0.456, 0.2])
    assert np.allclose(ref.shape(xi, eta).sum(axis=0), 1.0)
    g = ref.grad(xi, eta)
    assert g.shape == (ref.n_loc, 2, 2)
    assert np.allclose(g.sum(axis=0), 0.0, atol=1e-9)


def test_lattice_groups_cover_all_functions():
    ref = get_reference(4)
    groups = list(ref.vertex_indices) + list(ref.interior_indices)
    for lid in range(4):
        groups += list(ref.edge_indices(lid))
    assert sorted(groups) == list(range(ref.n_loc))
    pts = ref.lattice_points()
    # edge 2 runs from the top-right to the top-left corner
    top = pts[list(ref.edge_indices(2))]
    assert np.allclose(top[:, 1], 1.0) and np.all(np.diff(top[:, 0]) < 0)


def test_bilinear_mapping_and_inverse():
    corners = np.array([[0.0, 0.0], [2.0, 0.2], [2.5, 1.5], [-0.1, 1.0]])
    ref_corners = np.array([[-1, -1], [1, -1], [1, 1], [-1, 1]], dtype=float)
    assert np.allclose(transform.x_mapping(corners, ref_corners[:, 0], ref_corners[:, 1]), corners)
    J = transform.jacobian(corners, np.array([0.1]), np.array([-0.3]))
    assert J.shape == (1, 2, 2)
    assert transform.det_jacobian(J)[0] > 0
    assert np.allclose(transform.inv_jac_T(J)[0], np.linalg.inv(J[0]).T)
    target = transform.x_mapping(corners, 0.3, -0.4)
    assert np.allclose(transform.inverse_mapping(corners, target), [0.3, -0.4])
