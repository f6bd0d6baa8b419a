# integration/ray_utils.py
from __future__ import annotations

from multiprocessing.pool import ThreadPool

from kerrp2p.core.constants import DEFAULT_PRECISION
from kerrp2p.core.precision import get_backend
from kerrp2p.integration.forward_ray_tracing import ForwardRayTracing
from kerrp2p.integration.parallel_workers import calc_single_ray, resolve_workers


def wrap_phi(phi, precision=DEFAULT_PRECISION):
    """Move phi into [0, 2 pi) by subtracting the largest multiple of 2 pi not exceeding it."""
    bk = get_backend(precision)
    two_pi = 2 * bk.pi
    if phi < 0 or phi >= two_pi:
        phi = phi - two_pi * bk.floor(phi / two_pi)
        # rounding can land exactly on 2 pi for tiny negative input
        if phi >= two_pi:
            phi = phi - two_pi
    return phi


def calc_ray(params):
    """Single forward evaluation."""
    return calc_single_ray(params)


def calc_ray_batch(params_list, n_workers=None, verbose=False):
    """
    Evaluate every parameter set in parallel.

    Parameters:
    -----------
    params_list : list of ForwardRayTracingParams
    n_workers : int, optional
        Thread count (default: cpu_count() - 1)
    verbose : bool
        Print progress information

    Returns:
    --------
    list of ForwardRayTracingResult, same order as ``params_list``
    """
    params_list = list(params_list)
    if not params_list:
        return []
    n_workers = resolve_workers(n_workers)
    if verbose:
        print(f"   Batch ray tracing of {len(params_list)} rays using {n_workers} workers...")

    with ThreadPool(processes=n_workers) as pool:
        results = pool.map(calc_single_ray, params_list)

    if verbose:
        n_normal = sum(1 for res in results if res.is_normal)
        print(f"   {n_normal}/{len(results)} rays reached the observer")
    return results


def clean_cache():
    """Release every pooled ray tracing instance (no evaluation may be in flight)."""
    ForwardRayTracing.clean_cache()
