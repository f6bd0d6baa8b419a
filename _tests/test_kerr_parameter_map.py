import numpy as np
import pytest

from kerrp2p.core.constants import RadialCase, Sign
from kerrp2p.core.kerr import (
    classify_roots,
    critical_eta,
    critical_lambda,
    critical_radius,
    horizons,
    lambda_eta_to_rc_d,
    radial_potential,
    radial_roots,
    rc_d_to_lambda_eta,
)
from kerrp2p.core.precision import get_backend
from kerrp2p.photon.params import ForwardRayTracingParams


@pytest.mark.parametrize("a", [0.3, 0.8, 0.99, -0.6])
@pytest.mark.parametrize("rc", [1.5, 2.3, 3.0, 3.9])
@pytest.mark.parametrize("log_abs_d", [-6.0, -1.0, 0.0, 1.5])
@pytest.mark.parametrize("d_sign", [Sign.POSITIVE, Sign.NEGATIVE])
def test_rc_d_round_trip(a, rc, log_abs_d, d_sign):
    """(rc, log|d|) -> (lambda, eta) -> (rc, log|d|) reproduces the inputs."""
    bk = get_backend("float64")
    lambda_, eta = rc_d_to_lambda_eta(bk, a, rc, log_abs_d, d_sign)
    rc_back, lgd_back, sign_back = lambda_eta_to_rc_d(bk, a, lambda_, eta)

    assert np.isclose(rc_back, rc, rtol=0, atol=1e-10)
    assert sign_back is d_sign
    # log|d| loses digits when |d| << eta_c
    atol = 1e-9 * max(1.0, abs(eta)) / np.exp(log_abs_d)
    assert np.isclose(lgd_back, log_abs_d, rtol=0, atol=atol)


def test_critical_radius_inverts_critical_lambda():
    bk = get_backend("float64")
    a = 0.7
    for rc in np.linspace(1.05, 6.0, 25):
        lam = critical_lambda(rc, a)
        assert np.isclose(critical_radius(bk, a, lam), rc, rtol=0, atol=1e-11)


def test_params_round_trip_through_both_parameterizations():
    """Params built from (lambda, q) and from the derived (rc, d) describe the same ray."""
    p = ForwardRayTracingParams.from_lambda_q(0.8, 10.0, np.pi / 2, 1e5, -1, -1,
                                              lambda_=-0.75113161, q=np.sqrt(26.57242896))
    assert p.parameterization == "lambda_q"
    assert p.rc > 1

    p2 = ForwardRayTracingParams.from_rc_d(0.8, 10.0, np.pi / 2, 1e5, -1, -1,
                                           rc=p.rc, log_abs_d=p.log_abs_d, d_sign=p.d_sign)
    assert p2.parameterization == "rc_d"
    assert np.isclose(p2.lambda_, -0.75113161, rtol=0, atol=1e-10)
    assert np.isclose(p2.q, np.sqrt(26.57242896), rtol=0, atol=1e-10)


def test_params_require_one_parameterization():
    with pytest.raises(ValueError):
        ForwardRayTracingParams(0.8, 10.0, 1.0, 1e3)
    with pytest.raises(ValueError):
        ForwardRayTracingParams(0.8, 10.0, 1.0, 1e3, nu_r=0, rc=3.0, log_abs_d=0.0)


@pytest.mark.parametrize("precision", ["float64", "mp"])
def test_radial_roots_are_roots(precision):
    bk = get_backend(precision)
    a = bk.mpf(0.8)
    for rc, lgd, sign in [(3.0, 0.0, 1), (3.0, 0.0, -1), (2.2, -3.0, 1), (4.5, 1.0, -1)]:
        lam, eta = rc_d_to_lambda_eta(bk, a, bk.mpf(rc), bk.mpf(lgd), sign)
        roots = radial_roots(bk, a, lam, eta)
        assert abs(sum(roots)) < 1e-9
        for r in roots:
            w = r * r + a * a - a * lam
            value = w * w - (r * r - 2 * r + a * a) * (eta + (lam - a) ** 2)
            assert abs(value) < 1e-7 * max(1.0, float(abs(r)) ** 4)


def test_turning_point_outside_horizon_is_case_1():
    """d > 0 shifts eta above the critical value: a turning point r4 > r+ appears."""
    bk = get_backend("float64")
    a = 0.8
    rp, rm = horizons(bk, a)
    lam, eta = rc_d_to_lambda_eta(bk, a, 3.0, 0.0, Sign.POSITIVE)
    case, (r1, r2, r3, r4), _ = classify_roots(bk, radial_roots(bk, a, lam, eta), rp, rm)
    assert case is RadialCase.CASE_1
    assert r1 <= r2 <= r3 <= r4
    assert r4 > rp
    assert radial_potential(r4 + 1.0, a, lam, eta) > 0


def test_below_critical_is_case_3():
    """d < 0: the pair around the photon orbit turns complex."""
    bk = get_backend("float64")
    a = 0.8
    rp, rm = horizons(bk, a)
    lam, eta = rc_d_to_lambda_eta(bk, a, 3.0, 0.0, Sign.NEGATIVE)
    case, (r1, r2, _, _), roots_c = classify_roots(bk, radial_roots(bk, a, lam, eta), rp, rm)
    assert case is RadialCase.CASE_3
    assert r1 < r2 < rm
    assert roots_c[3].imag > 0
    assert roots_c[2] == roots_c[3].conjugate()


def test_classify_roots_inside_inner_horizon_is_case_2():
    bk = get_backend("float64")
    rp, rm = horizons(bk, 0.8)
    roots = (complex(-0.9, 0), complex(0.1, 0), complex(0.3, 0), complex(0.35, 0))
    case, (r1, r2, r3, r4), _ = classify_roots(bk, roots, rp, rm)
    assert case is RadialCase.CASE_2
    assert (r1, r4) == (-0.9, 0.35)


def test_classify_roots_between_horizons_is_rejected():
    bk = get_backend("float64")
    rp, rm = horizons(bk, 0.8)
    roots = (complex(-2.0, 0), complex(0.1, 0), complex(0.5, 0), complex(1.0, 0))
    case, _, _ = classify_roots(bk, roots, rp, rm)
    assert case is RadialCase.NONE


def test_critical_orbit_is_double_root():
    """At d = 0 the photon orbit radius rc is a double root of R."""
    a = 0.6
    rc = 2.7
    lam, eta = critical_lambda(rc, a), critical_eta(rc, a)
    h = 1e-5
    assert abs(radial_potential(rc, a, lam, eta)) < 1e-9
    d_r = (radial_potential(rc + h, a, lam, eta) - radial_potential(rc - h, a, lam, eta)) / (2 * h)
    assert abs(d_r) < 1e-6
