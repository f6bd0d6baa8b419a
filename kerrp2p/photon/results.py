# photon/results.py
"""Immutable snapshots returned to callers: one ray, one inverse solve, one sweep."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import List, Optional

import numpy as np

from kerrp2p.core.constants import RadialCase, RayStatus, Sign


def _low(x):
    if x is None or isinstance(x, (int, Sign)):
        return x
    return float(x)


@dataclass(frozen=True)
class ForwardRayTracingResult:
    a: float
    rp: float
    rm: float
    r_s: float
    theta_s: float
    r_o: float
    r1: float
    r2: float
    r3: float
    r4: float
    r1_c: complex
    r2_c: complex
    r3_c: complex
    r4_c: complex
    lambda_: float
    eta: float
    q: float
    t_f: float
    theta_f: float
    phi_f: float
    m: int
    n_half: int
    ray_status: RayStatus
    radial_case: RadialCase = RadialCase.NONE
    rc: Optional[float] = None
    log_abs_d: Optional[float] = None
    d_sign: Sign = Sign.POSITIVE

    @property
    def is_normal(self):
        return self.ray_status is RayStatus.NORMAL

    def to_low_prec(self):
        """Copy with every number converted to Python float/complex."""
        changes = {}
        for name in ("a", "rp", "rm", "r_s", "theta_s", "r_o", "r1", "r2", "r3", "r4",
                     "lambda_", "eta", "q", "t_f", "theta_f", "phi_f", "rc", "log_abs_d"):
            changes[name] = _low(getattr(self, name))
        for name in ("r1_c", "r2_c", "r3_c", "r4_c"):
            changes[name] = complex(getattr(self, name))
        return replace(self, **changes)


@dataclass(frozen=True)
class FindRootResult:
    success: bool
    fail_reason: str = ""
    root: Optional[ForwardRayTracingResult] = None


def _empty_roots():
    return np.empty((0, 2), dtype=float)


@dataclass(frozen=True)
class SweepResult:
    """
    Grids are indexed [i, j] with i over the log|d| list and j over the rc list;
    root arrays hold (rc, log_abs_d) pairs, one per row.
    """
    theta: np.ndarray
    phi: np.ndarray
    lambda_: np.ndarray
    eta: np.ndarray
    delta_theta: np.ndarray
    delta_phi: np.ndarray
    theta_roots: np.ndarray = field(default_factory=_empty_roots)
    phi_roots: np.ndarray = field(default_factory=_empty_roots)
    theta_roots_closest: np.ndarray = field(default_factory=_empty_roots)
    results: List[ForwardRayTracingResult] = field(default_factory=list)

    def to_low_prec(self):
        """Copy with object (mpmath) arrays cast to float64 and every result downcast."""
        changes = {}
        for name in ("theta", "phi", "lambda_", "eta", "delta_theta", "delta_phi",
                     "theta_roots", "phi_roots", "theta_roots_closest"):
            changes[name] = np.asarray(getattr(self, name)).astype(float)
        changes["results"] = [res.to_low_prec() for res in self.results]
        return replace(self, **changes)
