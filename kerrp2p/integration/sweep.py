# integration/sweep.py
"""
Grid sweep over (rc, log|d|) and multi-root discovery.

1. Evaluate every grid cell in parallel (one row per task).
2. Flag root cells where delta_theta or delta_phi changes sign against the
   row or column predecessor; phi cells also require lambda to keep its sign.
3. Pair each theta root cell with its nearest phi root cell (grid indices).
4. Refine the closest ``cutoff`` pairs with the fixed-period root finder.
5. Drop duplicated refined rays.
"""
from __future__ import annotations

import threading
from multiprocessing.pool import ThreadPool

import numpy as np
from numba import njit
from scipy.spatial import cKDTree

from kerrp2p.core.constants import DEFAULT_CUTOFF, DEFAULT_TOL, HIGHER_PRECISION
from kerrp2p.core.precision import get_backend
from kerrp2p.integration.parallel_workers import resolve_workers, sweep_grid_row
from kerrp2p.integration.ray_utils import wrap_phi
from kerrp2p.integration.root_finder import find_root_period
from kerrp2p.photon.results import SweepResult

GRID_NAMES = ("theta", "phi", "lambda_", "eta", "delta_theta", "delta_phi")


@njit(cache=True)
def _root_cells(theta_sign, theta_nan, phi_sign, phi_nan, lambda_sign, lambda_nan):
    n_row, n_col = theta_sign.shape
    theta_mask = np.zeros((n_row, n_col), dtype=np.bool_)
    phi_mask = np.zeros((n_row, n_col), dtype=np.bool_)
    for i in range(1, n_row):
        for j in range(1, n_col):
            if not (theta_nan[i, j] or theta_nan[i, j - 1] or theta_nan[i - 1, j]):
                d_row = theta_sign[i, j] * theta_sign[i, j - 1]
                d_col = theta_sign[i, j] * theta_sign[i - 1, j]
                if d_row <= 0 or d_col <= 0:
                    theta_mask[i, j] = True

            if phi_nan[i, j] or phi_nan[i, j - 1] or phi_nan[i - 1, j]:
                continue
            if lambda_nan[i, j] or lambda_nan[i, j - 1] or lambda_nan[i - 1, j]:
                continue
            # lambda keeps its sign across the cell: no branch cut of phi in between
            if lambda_sign[i, j] * lambda_sign[i, j - 1] <= 0 or lambda_sign[i, j] * lambda_sign[i - 1, j] <= 0:
                continue
            d_row = phi_sign[i, j] * phi_sign[i, j - 1]
            d_col = phi_sign[i, j] * phi_sign[i - 1, j]
            if d_row <= 0 or d_col <= 0:
                phi_mask[i, j] = True
    return theta_mask, phi_mask


def _sign_and_nan(grid):
    values = np.asarray(grid).astype(float)
    nan_mask = np.isnan(values)
    signs = np.sign(np.where(nan_mask, 0.0, values)).astype(np.int8)
    return signs, nan_mask


def find_root_cells(delta_theta, delta_phi, lambda_):
    """Return (theta_cells, phi_cells) as (n, 2) integer arrays of (row, col) grid indices."""
    theta_mask, phi_mask = _root_cells(*_sign_and_nan(delta_theta), *_sign_and_nan(delta_phi),
                                       *_sign_and_nan(lambda_))
    return np.argwhere(theta_mask), np.argwhere(phi_mask)


def _cells_to_coordinates(cells, rc_list, lgd_list):
    if len(cells) == 0:
        return np.empty((0, 2), dtype=rc_list.dtype)
    coords = np.empty((len(cells), 2), dtype=rc_list.dtype)
    coords[:, 0] = rc_list[cells[:, 1]]
    coords[:, 1] = lgd_list[cells[:, 0]]
    return coords


def match_root_cells(theta_cells, phi_cells):
    """
    Nearest phi root cell for every theta root cell, sorted by increasing distance.

    Returns
    -------
    matched : (n, 2) int array of phi-root (row, col) indices
    distances : (n,) float array
    """
    tree = cKDTree(phi_cells.astype(float))
    distances, nearest = tree.query(theta_cells.astype(float), k=1)
    order = np.argsort(distances, kind="stable")
    return phi_cells[nearest[order]], distances[order]


def deduplicate_results(results, tol):
    """
    Remove refined rays whose (rc, log_abs_d) both differ by less than ``tol``
    from an earlier one. Modifies ``results`` in place and returns it.
    """
    duplicated = set()
    for i in range(len(results)):
        for j in range(i + 1, len(results)):
            if abs(results[i].rc - results[j].rc) < tol and abs(results[i].log_abs_d - results[j].log_abs_d) < tol:
                duplicated.add(j)
                break
    for index in sorted(duplicated, reverse=True):
        del results[index]
    return results


def _as_candidates(values, bk, name):
    # shape first: ragged or nested input must fail with ValueError, not in mpf
    arr = np.asarray(values, dtype=object)
    if arr.ndim != 1 or arr.size == 0 or any(np.ndim(v) for v in arr):
        raise ValueError(f"{name} must be a non-empty 1-D sequence of numbers, got shape {arr.shape}")
    return np.asarray([bk.mpf(v) for v in arr], dtype=bk.dtype)


def sweep_rc_d(params, theta_o, phi_o, rc_list, lgd_list, cutoff=DEFAULT_CUTOFF, tol=DEFAULT_TOL,
               n_workers=None, verbose=False):
    """
    Sweep the (rc, log|d|) grid and refine every ray reaching (theta_o, phi_o).

    Parameters:
    -----------
    params : ForwardRayTracingParams
        Spin, source/observer positions, direction signs and d_sign; rc and
        log_abs_d are overwritten cell by cell on private copies.
    theta_o, phi_o : float
        Target observer angles
    rc_list, lgd_list : sequence of float
        Grid axes; grid arrays have shape (len(lgd_list), len(rc_list))
    cutoff : int
        Maximum number of matched root pairs handed to the root finder
    tol : float
        Root-finder tolerance, also the deduplication distance
    n_workers : int, optional
        Thread count (default: cpu_count() - 1)
    verbose : bool
        Print a summary

    Returns:
    --------
    SweepResult
    """
    if not tol > 0:
        raise ValueError(f"tol must be > 0, got {tol}")
    if cutoff < 0:
        raise ValueError(f"cutoff must be >= 0, got {cutoff}")
    bk = params.backend
    rc_list = _as_candidates(rc_list, bk, "rc_list")
    lgd_list = _as_candidates(lgd_list, bk, "lgd_list")
    theta_o = bk.mpf(theta_o)
    phi_o = wrap_phi(bk.mpf(phi_o), params.precision)
    n_workers = resolve_workers(n_workers)

    params = params.copy()
    if params.parameterization != "rc_d":
        params.lambda_q_to_rc_d()

    shape = (len(lgd_list), len(rc_list))
    grids = {name: np.full(shape, bk.nan, dtype=bk.dtype) for name in GRID_NAMES}
    if verbose:
        print(f"   Sweeping {shape[0]} x {shape[1]} grid using {n_workers} workers...")

    tasks = [(i, params, rc_list, lgd, theta_o, phi_o, grids) for i, lgd in enumerate(lgd_list)]
    with ThreadPool(processes=n_workers) as pool:
        n_normal = sum(pool.map(sweep_grid_row, tasks))

    theta_cells, phi_cells = find_root_cells(grids["delta_theta"], grids["delta_phi"], grids["lambda_"])
    if verbose:
        print(f"   {n_normal}/{shape[0] * shape[1]} cells NORMAL, "
              f"{len(theta_cells)} theta root cells, {len(phi_cells)} phi root cells")

    theta_roots = _cells_to_coordinates(theta_cells, rc_list, lgd_list)
    phi_roots = _cells_to_coordinates(phi_cells, rc_list, lgd_list)
    if len(theta_cells) == 0 or len(phi_cells) == 0:
        return SweepResult(**grids, theta_roots=theta_roots, phi_roots=phi_roots)

    matched, _ = match_root_cells(theta_cells, phi_cells)
    results = []
    results_lock = threading.Lock()

    def refine(cell):
        row, col = int(cell[0]), int(cell[1])
        local_params = params.with_precision(params.precision)
        local_bk = local_params.backend
        local_params.rc = local_bk.mpf(rc_list[col])
        local_params.log_abs_d = local_bk.mpf(lgd_list[row])
        local_params.rc_d_to_lambda_q()
        period = local_bk.floor(local_bk.mpf(grids["phi"][row, col]) / (2 * local_bk.pi))
        root_res = find_root_period(local_params, period, theta_o, phi_o, tol)
        if root_res.success:
            with results_lock:
                results.append(root_res.root)
        else:
            print(f"find root failed, rc = {rc_list[col]}, log_abs_d = {lgd_list[row]}, "
                  f"reason: {root_res.fail_reason}")

    n_refine = min(cutoff, len(matched))
    if n_refine > 0:
        with ThreadPool(processes=n_workers) as pool:
            pool.map(refine, list(matched[:n_refine]))

    deduplicate_results(results, tol)
    if verbose:
        print(f"   Refined {n_refine} pairs, {len(results)} distinct rays found")

    return SweepResult(
        **grids,
        theta_roots=theta_roots,
        phi_roots=phi_roots,
        theta_roots_closest=_cells_to_coordinates(matched, rc_list, lgd_list),
        results=results,
    )


def sweep_rc_d_high(params, theta_o, phi_o, rc_list, lgd_list, cutoff=DEFAULT_CUTOFF, tol=DEFAULT_TOL,
                    n_workers=None, verbose=False):
    """``sweep_rc_d`` run one precision level up, downcast to float64 on return."""
    if params.precision not in HIGHER_PRECISION:
        raise ValueError(f"No higher precision registered above '{params.precision}'")
    precision = HIGHER_PRECISION[params.precision]
    bk = get_backend(precision)
    params_h = params.get_high_prec(precision)
    result = sweep_rc_d(
        params_h, bk.mpf(theta_o), bk.mpf(phi_o),
        [bk.mpf(v) for v in rc_list], [bk.mpf(v) for v in lgd_list],
        cutoff, bk.mpf(tol), n_workers=n_workers, verbose=verbose,
    )
    return result.to_low_prec()
