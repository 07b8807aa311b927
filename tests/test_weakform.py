import numpy as np
import pytest

from pynlfem.core import EssentialBC, EssentialBCs
from pynlfem.errors import AssemblyError, ConfigurationError
from pynlfem.integration import quadrature
from pynlfem.weakform import (
    ANY,
    ConstantCoefficient,
    DefaultVectorFormSurf,
    Func,
    Geom,
    MarkerCoefficient,
    NonlinearCoefficient,
    SpatialCoefficient,
    WeakForm,
    as_coefficient,
)
from pynlfem.weakform.integrals import int_grad_u_grad_v, int_u_v, int_v


def _geom(marker="Copper", nq=4):
    x = np.linspace(0.0, 1.0, nq)
    return Geom(x=x, y=2.0 * x, marker=marker, elem_id=0)


def _p1_basis():
    """Q1 basis on the reference square at a 2x2 Gauss rule."""
    pts, w = quadrature.quad_rule(2)
    xi, eta = pts[:, 0], pts[:, 1]
    val = 0.25 * np.array([(1 - xi) * (1 - eta), (1 + xi) * (1 - eta),
                           (1 - xi) * (1 + eta), (1 + xi) * (1 + eta)])
    dx = 0.25 * np.array([-(1 - eta), (1 - eta), -(1 + eta), (1 + eta)])
    dy = 0.25 * np.array([-(1 - xi), -(1 + xi), (1 - xi), (1 + xi)])
    return w, Func(val=val, dx=dx, dy=dy)


def test_mass_and_stiffness_on_reference_square():
    w, b = _p1_basis()
    M = int_u_v(w, b, b)
    K = int_grad_u_grad_v(w, b, b)
    assert np.isclose(M.sum(), 4.0)
    assert np.allclose(int_v(w, b), 1.0)
    assert np.allclose(M, M.T) and np.allclose(K, K.T)
    assert np.allclose(K.sum(axis=1), 0.0)
    assert np.isclose(K[0, 0], 2.0 / 3.0)


def test_coefficients():
    g = _geom()
    u = Func(val=np.full(4, 2.0), dx=np.zeros(4), dy=np.zeros(4))
    assert np.allclose(ConstantCoefficient(3.0)(g, u), 3.0)
    assert np.allclose(SpatialCoefficient(lambda x, y: x + y)(g, u), 3.0 * g.x)
    lam = NonlinearCoefficient(lambda v: 1.0 + v ** 2, lambda v: 2.0 * v)
    assert lam.is_nonlinear
    assert np.allclose(lam(g, u), 5.0) and np.allclose(lam.derivative(g, u), 4.0)
    mc = MarkerCoefficient({"Copper": 386.0, "Aluminum": lam})
    assert mc.is_nonlinear
    assert np.allclose(mc(g, u), 386.0) and np.allclose(mc.derivative(g, u), 0.0)
    assert np.allclose(mc(_geom("Aluminum"), u), 5.0)
    with pytest.raises(AssemblyError, match="Steel"):
        mc(_geom("Steel"), u)
    assert isinstance(as_coefficient(lambda x, y: x), SpatialCoefficient)
    with pytest.raises(ConfigurationError):
        as_coefficient("386")
    with pytest.raises(ConfigurationError):
        MarkerCoefficient({})


def test_weak_form_bookkeeping():
    wf = WeakForm()
    wf.add_vector_form_surf(DefaultVectorFormSurf(1.0, "Outer", quad_increase=3))
    wf.add_vector_form_surf(DefaultVectorFormSurf(2.0))
    assert len(wf) == 2 and wf.quad_increase() == 3
    assert wf.get_markers() == (set(), {"Outer"})
    assert wf.vfsurf[1].area == ANY and wf.vfsurf[1].applies_to("anything")
    with pytest.raises(AssemblyError):
        wf.add_matrix_form_surf(DefaultVectorFormSurf())
    with pytest.raises(ConfigurationError):
        WeakForm(dtype=np.int32)
    assert WeakForm(dtype=np.complex64).dtype == np.complex128


def test_essential_bc_rules():
    bcs = EssentialBCs([EssentialBC.constant("Inner", 20.0),
                        EssentialBC.linear("Left", 1.0, 0.0, 2.0)])
    bcs.add(EssentialBC.linear("Left", 1.0, 0.0, 2.0))     # same rule twice is fine
    assert len(bcs) == 2 and "Left" in bcs and bcs.markers == ("Inner", "Left")
    x = np.array([0.0, 0.5, 1.0])
    assert np.allclose(bcs.get("Inner").evaluate(x, x), 20.0)
    assert np.allclose(bcs.get("Left").evaluate(x, x), x + 2.0)
    with pytest.raises(ConfigurationError):
        bcs.add(EssentialBC.constant("Inner", 21.0))
    with pytest.raises(ConfigurationError):
        EssentialBC("", 1.0)
    with pytest.raises(ConfigurationError):
        EssentialBC("Inner", "20")
