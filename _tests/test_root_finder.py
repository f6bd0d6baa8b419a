"""
Inverse problem: rays traced forward from known (rc, log|d|) are recovered by
the Broyden root finder from a nearby starting point.
"""
import numpy as np
import pytest

from kerrp2p.core.constants import RayStatus
from kerrp2p.core.precision import get_backend
from kerrp2p.integration import RootFunctor, calc_ray, find_root, find_root_period, wrap_phi
from kerrp2p.integration.broyden import BroydenSolver
from kerrp2p.photon.params import ForwardRayTracingParams

A_SPIN = 0.8
R_S, THETA_S, R_O = 12.0, 1.3, 1e3


def make_params(rc, log_abs_d, d_sign=1, nu_r=1, nu_theta=1, **kwargs):
    return ForwardRayTracingParams.from_rc_d(A_SPIN, R_S, THETA_S, R_O, nu_r, nu_theta,
                                             rc=rc, log_abs_d=log_abs_d, d_sign=d_sign, **kwargs)


def test_broyden_solves_a_smooth_system():
    bk = get_backend("float64")

    def func(x):
        return np.array([x[0] ** 2 + x[1] ** 2 - 4.0, np.exp(x[0]) + x[1] - 1.0])

    result = BroydenSolver(func, bk, tol=1e-12).solve([1.0, -1.5])
    assert result.converged
    assert result.norm <= 1e-12
    assert np.allclose(func(result.x), 0.0, atol=1e-12)


def test_broyden_reports_nan_start():
    bk = get_backend("float64")
    result = BroydenSolver(lambda x: np.array([np.nan, 0.0]), bk, tol=1e-8).solve([0.0, 0.0])
    assert not result.converged
    assert "NaN" in result.message


def test_broyden_rejects_bad_tolerance():
    with pytest.raises(ValueError):
        BroydenSolver(lambda x: x, get_backend("float64"), tol=0.0)


@pytest.mark.parametrize("rc, log_abs_d, d_sign, nu_r", [
    (3.0, 0.0, 1, 1),
    (3.0, 0.0, -1, 1),
    (3.3, -1.0, 1, -1),
])
def test_find_root_recovers_forward_parameters(rc, log_abs_d, d_sign, nu_r):
    """
    The solver holds the angular residuals to ``tol``; the recovered (rc, log|d|)
    are only as close as ``tol`` times the condition number of the map from
    parameters to observer angles, which reaches ~1e4 for these rays.
    """
    tol = 1e-10
    target = calc_ray(make_params(rc, log_abs_d, d_sign, nu_r))
    assert target.ray_status is RayStatus.NORMAL

    start = make_params(rc + 0.02, log_abs_d - 0.03, d_sign, nu_r)
    res = find_root(start, target.theta_f, target.phi_f, tol)

    assert res.success, res.fail_reason
    root = res.root
    assert root.ray_status is RayStatus.NORMAL
    assert abs(root.theta_f - target.theta_f) <= tol
    assert abs(np.sin((root.phi_f - target.phi_f) / 2)) <= tol
    assert np.isclose(root.rc, rc, rtol=0, atol=1e4 * tol)
    assert np.isclose(root.log_abs_d, log_abs_d, rtol=0, atol=1e4 * tol)
    assert root.d_sign == d_sign
    # the root carries the full evaluation, time included
    assert np.isfinite(root.t_f)
    # the starting parameters are left untouched
    assert start.rc == rc + 0.02


def test_find_root_period_locks_the_winding():
    tol = 1e-10
    target = calc_ray(make_params(3.0, 0.0))
    period = int(np.floor(target.phi_f / (2 * np.pi)))

    res = find_root_period(make_params(3.01, 0.02), period, target.theta_f, wrap_phi(target.phi_f), tol)
    assert res.success, res.fail_reason
    assert np.isclose(res.root.phi_f, target.phi_f, rtol=0, atol=1e-8)

    # another image order either fails or lands on a ray with that winding
    res_other = find_root_period(make_params(3.01, 0.02), period + 5, target.theta_f, target.phi_f, tol,
                                 max_iter=15)
    if res_other.success:
        assert np.isclose(res_other.root.phi_f, target.phi_f + 10 * np.pi, rtol=0, atol=1e-8)
    else:
        assert res_other.fail_reason.startswith(("residual > threshold", "ray status"))


def test_find_root_accepts_lambda_q_start():
    target = calc_ray(make_params(3.0, 0.0))
    near = make_params(3.02, 0.01)
    start = ForwardRayTracingParams.from_lambda_q(A_SPIN, R_S, THETA_S, R_O, 1, 1,
                                                  lambda_=near.lambda_, q=near.q)
    res = find_root(start, target.theta_f, target.phi_f, 1e-10)
    assert res.success, res.fail_reason
    assert np.isclose(res.root.rc, 3.0, rtol=0, atol=1e-6)


def test_find_root_rejects_bad_tolerance():
    with pytest.raises(ValueError):
        find_root(make_params(3.0, 0.0), 1.0, 1.0, tol=-1.0)


def test_root_functor_reports_failed_rays_as_nan(capsys):
    with RootFunctor(make_params(3.0, 0.0), 1.0, 1.0) as functor:
        good = functor(np.array([3.0, 0.0]))
    assert np.all(np.isfinite(good))
    capsys.readouterr()

    # far below the critical curve eta turns negative
    params_neg = make_params(3.0, 0.0, d_sign=-1)
    with RootFunctor(params_neg, 1.0, 1.0) as functor:
        residual = functor(np.array([3.0, np.log(100.0)]))
    assert np.all(np.isnan(residual))
    assert "ray status: ETA_OUT_OF_RANGE" in capsys.readouterr().out

    # argument errors stay quiet unless asked for
    with RootFunctor(params_neg, 1.0, 1.0) as functor:
        residual = functor(np.array([0.5, 0.0]))
    assert np.all(np.isnan(residual))
    assert "ray status" not in capsys.readouterr().out


def test_find_root_high_precision():
    target = calc_ray(make_params(3.0, 0.0))
    start = make_params(3.01, 0.01, precision="mp")
    res = find_root(start, target.theta_f, target.phi_f, 1e-20)
    assert res.success, res.fail_reason
    # the target angles are float64 values, so only float64 agreement is expected
    assert np.isclose(float(res.root.rc), 3.0, rtol=0, atol=1e-9)


def test_root_functor_survives_overflowing_log_abs_d(capsys):
    """exp(log|d|) overflows: the step is an argument error, not an exception."""
    with RootFunctor(make_params(3.0, 0.0), 1.0, 1.0) as functor:
        residual = functor(np.array([3.0, 800.0]))
        assert functor.ray_tracing.ray_status is RayStatus.ARGUMENT_ERROR
    assert np.all(np.isnan(residual))
    assert "ray status" not in capsys.readouterr().out


def test_overflowing_log_abs_d_maps_to_nan_parameters():
    params = make_params(3.0, 800.0)
    assert np.isnan(params.lambda_) and np.isnan(params.eta) and np.isnan(params.q)
    assert calc_ray(params).ray_status is RayStatus.ARGUMENT_ERROR


def test_far_image_order_fails_cleanly():
    target = calc_ray(make_params(3.0, 0.0))
    period = int(np.floor(target.phi_f / (2 * np.pi)))
    res = find_root_period(make_params(3.01, 0.02), period + 5, target.theta_f, target.phi_f, 1e-10,
                           max_iter=15)
    assert not res.success
    assert res.root is None
    assert res.fail_reason
