"""
Elliptic integrals and Jacobi functions: the two backends against each other,
the Carlson-based third kind against mpmath and quadrature.
"""
import mpmath
import numpy as np
import pytest
from scipy import special

from kerrp2p.core.elliptic import (
    carlson_rc,
    ellipe,
    ellipf,
    ellipk,
    ellippi,
    ellippi_complete,
    jacobi_am,
    jacobi_sn,
)
from kerrp2p.core.precision import get_backend

PHIS = [-2.9, -0.7, 0.0, 0.4, 1.3, 1.9, 3.5, 7.1]


@pytest.mark.parametrize("m", [0.0, 0.2, 0.75, 0.95])
@pytest.mark.parametrize("phi", PHIS)
def test_first_and_second_kind_match_scipy(m, phi):
    bk = get_backend("mp")
    phi_mp, m_mp = bk.mpf(phi), bk.mpf(m)
    assert np.isclose(float(ellipf(bk, phi_mp, m_mp)), special.ellipkinc(phi, m), rtol=1e-12, atol=1e-13)
    assert np.isclose(float(ellipe(bk, phi_mp, m_mp)), special.ellipeinc(phi, m), rtol=1e-12, atol=1e-13)


@pytest.mark.parametrize("m", [-0.4, -3.0, -25.0])
@pytest.mark.parametrize("phi", PHIS)
def test_negative_parameter_matches_mpmath(m, phi):
    bk = get_backend("float64")
    assert np.isclose(ellipf(bk, phi, m), float(mpmath.ellipf(phi, m)), rtol=1e-11, atol=1e-13)
    assert np.isclose(ellipe(bk, phi, m), float(mpmath.ellipe(phi, m)), rtol=1e-11, atol=1e-13)


@pytest.mark.parametrize("n", [-4.0, -0.3, 0.2, 0.8])
@pytest.mark.parametrize("m", [-2.0, 0.3, 0.9])
@pytest.mark.parametrize("phi", [-1.2, 0.3, 1.1, 2.4, 5.0])
def test_third_kind_matches_mpmath(n, m, phi):
    bk = get_backend("float64")
    expected = float(mpmath.ellippi(n, phi, m))
    assert np.isclose(ellippi(bk, n, phi, m), expected, rtol=1e-10, atol=1e-12)


def test_third_kind_above_one_before_the_pole():
    """For n > 1 and sin^2(phi) < 1/n the principal value is the ordinary integral."""
    bk = get_backend("float64")
    for n, phi, m in [(1.5, 0.5, 0.3), (3.0, 0.4, -1.0), (1.2, 0.9, 0.6)]:
        assert np.sin(phi) ** 2 < 1 / n
        expected = float(mpmath.quad(
            lambda t: 1 / ((1 - n * mpmath.sin(t) ** 2) * mpmath.sqrt(1 - m * mpmath.sin(t) ** 2)), [0, phi]))
        assert np.isclose(ellippi(bk, n, phi, m), expected, rtol=1e-10)


def test_third_kind_principal_value_across_the_pole():
    """Symmetric excision around the pole converges to the principal value."""
    bk = get_backend("mp")
    ctx = bk.ctx
    n, m, phi = ctx.mpf(2), ctx.mpf("0.4"), ctx.mpf("1.2")
    pole = ctx.asin(1 / ctx.sqrt(n))

    def f(t):
        return 1 / ((1 - n * ctx.sin(t) ** 2) * ctx.sqrt(1 - m * ctx.sin(t) ** 2))

    eps = ctx.mpf("1e-12")
    pv = ctx.quad(f, [0, pole - eps]) + ctx.quad(f, [pole + eps, phi])
    assert abs(ellippi(bk, n, phi, m) - pv) < 1e-8


def test_complete_third_kind_above_one_is_the_limit_of_the_incomplete():
    bk = get_backend("float64")
    n, m = 1.7, 0.45
    assert np.isclose(ellippi_complete(bk, n, m), ellippi(bk, n, np.pi / 2, m), rtol=1e-12)
    assert np.isclose(ellippi(bk, n, np.pi, m), 2 * ellippi_complete(bk, n, m), rtol=1e-12)


def test_carlson_rc_principal_value():
    bk = get_backend("float64")
    x, y = 2.0, -3.0
    # R_C(x, y) = atanh(sqrt(x/(x - y))) / sqrt(x - y) for y < 0 (principal value)
    expected = np.arctanh(np.sqrt(x / (x - y))) / np.sqrt(x - y)
    assert np.isclose(carlson_rc(bk, x, y), expected, rtol=1e-12)
    assert np.isclose(carlson_rc(bk, 2.0, 3.0), special.elliprc(2.0, 3.0))


@pytest.mark.parametrize("precision", ["float64", "mp"])
@pytest.mark.parametrize("m", [-8.0, -0.5, 0.0, 0.6])
def test_jacobi_amplitude_inverts_first_kind(precision, m):
    bk = get_backend(precision)
    m = bk.mpf(m)
    for phi in [-4.0, -1.5, 0.0, 0.2, 1.56, 1.6, 3.0, 9.3]:
        phi = bk.mpf(phi)
        u = ellipf(bk, phi, m)
        assert abs(jacobi_am(bk, u, m) - phi) < 1e-9
        assert abs(jacobi_sn(bk, u, m) - bk.sin(phi)) < 1e-9


def test_backends_agree():
    f64 = get_backend("float64")
    mp = get_backend("mp")
    for phi, m in [(0.8, 0.3), (2.5, -4.0), (-1.1, 0.9)]:
        assert np.isclose(ellipf(f64, phi, m), float(ellipf(mp, mp.mpf(phi), mp.mpf(m))), rtol=1e-13)
        assert np.isclose(ellipk(f64, m), float(mpmath.ellipk(m)), rtol=1e-13)


@pytest.mark.parametrize("m", [-30.0, -2.5, -0.1, 0.3, 0.9])
def test_scipy_amplitude_matches_reduced_period_construction(m):
    """scipy's unwrapped amplitude and the sn-based one agree across many periods."""
    from kerrp2p.core.elliptic import amplitude_from_sn

    bk = get_backend("float64")
    k_full = ellipk(bk, m)
    for u in np.linspace(-7.3 * k_full, 9.1 * k_full, 23):
        assert abs(jacobi_am(bk, u, m) - amplitude_from_sn(bk, u, m)) < 1e-9
