# integration/broyden.py
"""
Derivative-free Broyden solver for small nonlinear systems F(x) = 0.

The inverse Jacobian is seeded by forward finite differences and updated
with the "good" Broyden rank-one formula (Sherman-Morrison form). Steps that
produce a NaN residual or do not reduce ||F|| are halved; when halving does
not help the Jacobian is rebuilt once before giving up.

Vectors are numpy arrays of the backend dtype (float, or object for mpmath
numbers), so the same iteration runs in any precision.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import numpy as np

from kerrp2p.core.constants import (
    BROYDEN_FD_STEP,
    BROYDEN_MAX_BACKTRACK,
    BROYDEN_MAX_ITER,
    BROYDEN_XTOL_ULPS,
)


@dataclass(frozen=True)
class BroydenResult:
    x: np.ndarray
    fx: np.ndarray
    norm: float
    n_iter: int
    n_eval: int
    converged: bool
    message: str


def _inverse(bk, J):
    """Inverse of a small square matrix by Gauss-Jordan elimination with partial pivoting."""
    n = J.shape[0]
    aug = np.empty((n, 2 * n), dtype=J.dtype)
    aug[:, :n] = J
    aug[:, n:] = 0
    for i in range(n):
        aug[i, n + i] = 1
    for col in range(n):
        pivot = max(range(col, n), key=lambda r: abs(aug[r, col]))
        if aug[pivot, col] == 0 or not bk.isfinite(aug[pivot, col]):
            return None
        if pivot != col:
            aug[[col, pivot]] = aug[[pivot, col]]
        aug[col] = aug[col] / aug[col, col]
        for r in range(n):
            if r != col:
                aug[r] = aug[r] - aug[r, col] * aug[col]
    return aug[:, n:]


class BroydenSolver:
    """
    Parameters
    ----------
    func : callable
        Maps an array x to the residual array F(x); NaN entries mark a failed evaluation.
    bk : backend
        Numeric backend of ``func``'s arithmetic.
    tol : float
        Convergence threshold on the Euclidean norm of F.
    """

    def __init__(self, func: Callable, bk, tol, max_iter=BROYDEN_MAX_ITER, fd_step=BROYDEN_FD_STEP,
                 xtol=None, max_backtrack=BROYDEN_MAX_BACKTRACK):
        if not tol > 0:
            raise ValueError(f"tol must be > 0, got {tol}")
        if max_iter < 1:
            raise ValueError("max_iter must be >= 1")
        self.func = func
        self.bk = bk
        self.tol = bk.mpf(tol)
        self.max_iter = max_iter
        self.fd_step = bk.mpf(fd_step)
        self.xtol = BROYDEN_XTOL_ULPS * bk.eps if xtol is None else bk.mpf(xtol)
        self.max_backtrack = max_backtrack
        self.n_eval = 0

    def _eval(self, x):
        self.n_eval += 1
        return np.asarray(self.func(x), dtype=self.bk.dtype)

    def _norm(self, f):
        bk = self.bk
        total = bk.mpf(0)
        for v in f:
            if not bk.isfinite(v):
                return bk.nan
            total += v * v
        return bk.sqrt(total)

    def _jacobian(self, x, f):
        """Forward differences; falls back to a backward step when the forward one fails."""
        bk = self.bk
        n = x.shape[0]
        J = np.empty((n, n), dtype=bk.dtype)
        for j in range(n):
            h = self.fd_step * max(1, abs(x[j]))
            for step in (h, -h):
                x_h = x.copy()
                x_h[j] = x_h[j] + step
                f_h = self._eval(x_h)
                if bk.isfinite(self._norm(f_h)):
                    J[:, j] = (f_h - f) / step
                    break
            else:
                return None
        return J

    def solve(self, x0):
        bk = self.bk
        self.n_eval = 0
        x = np.array([bk.mpf(v) for v in x0], dtype=bk.dtype)
        f = self._eval(x)
        norm = self._norm(f)

        def done(converged, n_iter, message):
            return BroydenResult(x=x, fx=f, norm=norm, n_iter=n_iter, n_eval=self.n_eval,
                                 converged=converged, message=message)

        if bk.isnan(norm):
            return done(False, 0, "residual is NaN at the initial point")
        if norm <= self.tol:
            return done(True, 0, "initial point satisfies tolerance")

        J = self._jacobian(x, f)
        H = None if J is None else _inverse(bk, J)
        if H is None:
            return done(False, 0, "singular finite-difference Jacobian")
        fresh = True

        for it in range(1, self.max_iter + 1):
            dx = -(H @ f)
            t = bk.mpf(1)
            accepted = False
            for _ in range(self.max_backtrack):
                x_new = x + t * dx
                f_new = self._eval(x_new)
                norm_new = self._norm(f_new)
                if not bk.isnan(norm_new) and norm_new < norm:
                    accepted = True
                    break
                t = t / 2

            if not accepted:
                if fresh:
                    return done(False, it, "line search failed to reduce the residual")
                J = self._jacobian(x, f)
                H = None if J is None else _inverse(bk, J)
                if H is None:
                    return done(False, it, "singular finite-difference Jacobian")
                fresh = True
                continue

            s = x_new - x
            y = f_new - f
            Hy = H @ y
            denom = s @ Hy
            if denom != 0:
                H = H + np.outer(s - Hy, s @ H) / denom
            x, f, norm = x_new, f_new, norm_new
            fresh = False

            if norm <= self.tol:
                return done(True, it, "residual below tolerance")
            step_size = max(abs(v) for v in s)
            if step_size <= self.xtol * (1 + max(abs(v) for v in x)):
                return done(False, it, "step below xtol")

        return done(False, self.max_iter, "maximum number of iterations reached")
