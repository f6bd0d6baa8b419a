"""Worker functions for the thread pool used by batch evaluation and sweeps.

Each worker acquires its own pooled ``ForwardRayTracing`` instance, so a
worker never shares an orchestrator with another thread.
"""
from __future__ import annotations

from multiprocessing import cpu_count
from typing import Any, Tuple

from kerrp2p.core.constants import RayStatus
from kerrp2p.integration.forward_ray_tracing import ForwardRayTracing


def resolve_workers(n_workers=None):
    return n_workers if n_workers is not None else max(1, cpu_count() - 1)


def calc_single_ray(params):
    """Evaluate one parameter set (used in ThreadPool.map).

    Parameters
    ----------
    params : ForwardRayTracingParams

    Returns
    -------
    ForwardRayTracingResult
    """
    with ForwardRayTracing.get_from_cache(params.precision) as ray:
        ray.calc_ray(params)
        return ray.to_result()


def sweep_grid_row(args: Tuple[int, Any, Any, Any, Any, Any, Any]):
    """Fill row ``i`` of the sweep grids.

    Parameters
    ----------
    args : tuple
        (i, params, rc_list, log_abs_d, theta_o, phi_o, grids) where grids is
        the dict of (n_lgd, n_rc) output arrays. The row is owned by this call.

    Returns
    -------
    int
        Number of NORMAL cells in the row
    """
    i, params, rc_list, log_abs_d, theta_o, phi_o, grids = args
    # private copy with numbers in this thread's context
    local_params = params.with_precision(params.precision)
    bk = local_params.backend
    local_params.log_abs_d = bk.mpf(log_abs_d)
    local_params.calc_t_f = False
    theta_o, phi_o = bk.mpf(theta_o), bk.mpf(phi_o)
    n_normal = 0

    with ForwardRayTracing.get_from_cache(local_params.precision) as ray:
        for j, rc in enumerate(rc_list):
            local_params.rc = bk.mpf(rc)
            local_params.rc_d_to_lambda_q()
            ray.calc_ray(local_params)
            if ray.ray_status is RayStatus.NORMAL:
                grids["theta"][i, j] = ray.theta_f
                grids["phi"][i, j] = ray.phi_f
                grids["delta_theta"][i, j] = ray.theta_f - theta_o
                grids["delta_phi"][i, j] = bk.sin((ray.phi_f - phi_o) / 2)
                grids["lambda_"][i, j] = ray.lambda_
                grids["eta"][i, j] = ray.eta
                n_normal += 1
            else:
                for grid in grids.values():
                    grid[i, j] = bk.nan
    return n_normal
