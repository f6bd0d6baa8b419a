# integration/root_finder.py
"""
Inverse problem: find (rc, log|d|) whose ray reaches the observer at (theta_o, phi_o).

Residuals:
    free period   [theta_f - theta_o, sin((phi_f - phi_o) / 2)]
    fixed period  [theta_f - theta_o, phi_f - phi_o - 2 pi period]
phi_o is wrapped into [0, 2 pi) first; phi_f is used unwrapped.
"""
from __future__ import annotations

import numpy as np

from kerrp2p.core.constants import DEFAULT_TOL, RayStatus
from kerrp2p.integration.broyden import BroydenSolver
from kerrp2p.integration.forward_ray_tracing import ForwardRayTracing
from kerrp2p.integration.ray_utils import wrap_phi
from kerrp2p.photon.results import FindRootResult


class RootFunctor:
    """Residual function of (rc, log_abs_d); holds one pooled instance while alive."""

    def __init__(self, params, theta_o, phi_o, period=None):
        self.params = params
        self.bk = params.backend
        self.theta_o = self.bk.mpf(theta_o)
        self.phi_o = self.bk.mpf(phi_o)
        self.period = period
        self.two_pi = 2 * self.bk.pi
        self.ray_tracing = ForwardRayTracing.get_from_cache(params.precision)

    @property
    def fixed_period(self):
        return self.period is not None

    def __call__(self, x):
        bk = self.bk
        params = self.params
        params.rc = x[0]
        params.log_abs_d = x[1]
        params.rc_d_to_lambda_q()
        ray = self.ray_tracing
        ray.calc_ray(params)

        if ray.ray_status is not RayStatus.NORMAL:
            if params.print_args_error or ray.ray_status is not RayStatus.ARGUMENT_ERROR:
                print(f"ray status: {ray.ray_status.name}")
            return np.array([bk.nan, bk.nan], dtype=bk.dtype)

        residual = np.empty(2, dtype=bk.dtype)
        residual[0] = ray.theta_f - self.theta_o
        if self.fixed_period:
            residual[1] = ray.phi_f - self.phi_o - self.period * self.two_pi
        else:
            residual[1] = bk.sin((ray.phi_f - self.phi_o) / 2)
        return residual

    def close(self):
        if self.ray_tracing is not None:
            self.ray_tracing.release()
            self.ray_tracing = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()
        return False


def find_root_period(params, period, theta_o, phi_o, tol=DEFAULT_TOL, **solver_kwargs):
    """
    Solve for the ray of image order ``period`` (``None`` leaves the winding free).

    The starting point is ``(params.rc, params.log_abs_d)``; ``params`` itself
    is not modified. Failures are reported in the returned ``FindRootResult``.
    """
    if not tol > 0:
        raise ValueError(f"tol must be > 0, got {tol}")
    local_params = params.with_precision(params.precision)
    if local_params.parameterization != "rc_d":
        local_params.lambda_q_to_rc_d()
    bk = local_params.backend
    phi_o = wrap_phi(bk.mpf(phi_o), local_params.precision)

    # angles only while iterating
    calc_t_f = local_params.calc_t_f
    local_params.calc_t_f = False
    x0 = [local_params.rc, local_params.log_abs_d]

    with RootFunctor(local_params, theta_o, phi_o, period) as root_functor:
        solver = BroydenSolver(root_functor, bk, tol, **solver_kwargs)
        solution = solver.solve(x0)

        local_params.calc_t_f = calc_t_f
        residual = root_functor(solution.x)
        ray = root_functor.ray_tracing
        if ray.ray_status is not RayStatus.NORMAL:
            return FindRootResult(success=False, fail_reason=f"ray status: {ray.ray_status.name}")

        norm = bk.sqrt(sum(v * v for v in residual))
        if norm > tol:
            return FindRootResult(success=False, fail_reason=f"residual > threshold: {norm} > {tol}")

        return FindRootResult(success=True, root=ray.to_result())


def find_root(params, theta_o, phi_o, tol=DEFAULT_TOL, **solver_kwargs):
    """Free-period solve: any azimuthal winding matching phi_o mod 2 pi."""
    return find_root_period(params, None, theta_o, phi_o, tol, **solver_kwargs)
