# integration/forward_ray_tracing.py
"""
Forward ray tracing: one analytic evaluation source -> observer.

A ``ForwardRayTracing`` instance owns the full state of one evaluation
(metric parameters, quartic roots, selected radial case, integrals, final
angles and status). Instances are recycled through a per-precision free
list; acquire with ``get_from_cache`` and hand back with ``release`` (or
use the instance as a context manager).
"""
from __future__ import annotations

import threading

import mpmath

from kerrp2p.core.constants import DEFAULT_PRECISION, RadialCase, RayStatus, Sign
from kerrp2p.core.kerr import classify_roots, horizons, radial_potential, radial_roots
from kerrp2p.core.precision import get_backend
from kerrp2p.integrals.angular import AngularIntegral
from kerrp2p.integrals.base_integral import IntegralDomainError
from kerrp2p.integrals.radial_case1 import RadialIntegralCase1
from kerrp2p.integrals.radial_case2 import RadialIntegralCase2
from kerrp2p.integrals.radial_case3 import RadialIntegralCase3
from kerrp2p.photon.params import ForwardRayTracingParams
from kerrp2p.photon.results import ForwardRayTracingResult


class ForwardRayTracing:
    """
    Analytic Kerr null geodesic from (r_s, theta_s) to the sphere r = r_o.

    Results are read from the instance attributes after ``calc_ray``:
    ``theta_f``, ``phi_f`` (not wrapped), ``t_f``, ``m``, ``n_half`` and
    ``ray_status``. Numeric outputs are NaN unless the status is NORMAL.
    """

    RADIAL_INTEGRALS = {
        RadialCase.CASE_1: RadialIntegralCase1,
        RadialCase.CASE_2: RadialIntegralCase2,
        RadialCase.CASE_3: RadialIntegralCase3,
    }

    _cache = {}
    _cache_lock = threading.Lock()

    def __init__(self, precision=DEFAULT_PRECISION):
        self.precision = precision
        self.bk = get_backend(precision)
        self.calc_t_f = True
        self.radial_integrals = [self.bk.nan] * 3
        self.angular_integrals = [self.bk.nan] * 3
        self._radial_evaluators = {case: cls(self) for case, cls in self.RADIAL_INTEGRALS.items()}
        self._angular_evaluator = AngularIntegral(self)
        self._checked_out = False
        self.reset()

    # ------------------------------------------------------------------
    # Instance pool
    # ------------------------------------------------------------------
    @classmethod
    def get_from_cache(cls, precision=DEFAULT_PRECISION):
        """Acquire an instance for exclusive use by the calling thread."""
        get_backend(precision)
        with cls._cache_lock:
            free = cls._cache.setdefault(precision, [])
            instance = free.pop() if free else None
            if instance is not None:
                instance._checked_out = True
        if instance is None:
            instance = cls(precision)
            instance._checked_out = True
        return instance

    def release(self):
        """Return this instance to the free list of its precision."""
        with self._cache_lock:
            if not self._checked_out:
                return
            self._checked_out = False
            self._cache.setdefault(self.precision, []).append(self)

    @classmethod
    def clean_cache(cls):
        """
        Drop every pooled instance. Instances still checked out are not
        tracked; calling this while evaluations are in flight is a caller error.
        """
        with cls._cache_lock:
            cls._cache.clear()

    @classmethod
    def cache_size(cls, precision=None):
        with cls._cache_lock:
            if precision is None:
                return sum(len(free) for free in cls._cache.values())
            return len(cls._cache.get(precision, []))

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.release()
        return False

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------
    def reset(self):
        nan = self.bk.nan
        self.a = self.rp = self.rm = nan
        self.r_s = self.theta_s = self.r_o = nan
        self.nu_r = self.nu_theta = Sign.POSITIVE
        self.lambda_ = self.eta = self.q = nan
        self.rc = self.log_abs_d = nan
        self.d_sign = Sign.POSITIVE
        self.r1 = self.r2 = self.r3 = self.r4 = nan
        cnan = self.bk.mpc(complex(nan, nan))
        self.r1_c = self.r2_c = self.r3_c = self.r4_c = cnan
        self.t_f = self.theta_f = self.phi_f = nan
        self.m = self.n_half = 0
        self.radial_case = RadialCase.NONE
        self.ray_status = RayStatus.UNKNOWN_ERROR
        self.status_message = None
        for i in range(3):
            self.radial_integrals[i] = nan
            self.angular_integrals[i] = nan

    def _load_params(self, params):
        if params.precision != self.precision:
            raise ValueError(
                f"Params precision '{params.precision}' does not match ray precision '{self.precision}'"
            )
        # numbers are re-created in this thread's own context
        mpf = self.bk.mpf
        for name in ("a", "r_s", "theta_s", "r_o", "lambda_", "eta", "q", "rc", "log_abs_d"):
            value = getattr(params, name)
            setattr(self, name, self.bk.nan if value is None else mpf(value))
        self.nu_r = params.nu_r
        self.nu_theta = params.nu_theta
        self.d_sign = params.d_sign
        self.calc_t_f = params.calc_t_f

    def _check_arguments(self, params):
        bk = self.bk
        a = self.a
        if not (0 < abs(a) < 1):
            return f"spin a = {a} outside 0 < |a| < 1"
        if params.parameterization == "rc_d" and not self.rc > 1:
            return f"rc = {self.rc} must exceed 1"
        for name in ("lambda_", "eta", "r_s", "r_o", "theta_s"):
            if not bk.isfinite(getattr(self, name)):
                return f"{name} = {getattr(self, name)} is not finite"
        if not (0 <= self.theta_s <= bk.pi):
            return f"theta_s = {self.theta_s} outside [0, pi]"
        if not (self.rp < self.r_s < self.r_o):
            return f"radii must satisfy r+ < r_s < r_o, got r+ = {self.rp}, r_s = {self.r_s}, r_o = {self.r_o}"
        return None

    def calc_ray(self, params):
        """Evaluate the ray described by ``params``; sets ``ray_status`` exactly once."""
        # pooled instances move between threads; use the caller's backend
        self.bk = get_backend(self.precision)
        self.reset()
        self._load_params(params)
        try:
            self.ray_status = self._calc(params)
        except IntegralDomainError as e:
            self.ray_status = e.status
            self.status_message = str(e)
        except (ArithmeticError, ValueError, TypeError, mpmath.libmp.NoConvergence) as e:
            self.ray_status = RayStatus.UNKNOWN_ERROR
            self.status_message = f"{type(e).__name__}: {e}"

        if self.ray_status is not RayStatus.NORMAL:
            nan = self.bk.nan
            self.t_f = self.theta_f = self.phi_f = nan
        return self.ray_status

    def _calc(self, params):
        bk = self.bk
        if 0 < abs(self.a) < 1:
            self.rp, self.rm = horizons(bk, self.a)
        self.status_message = self._check_arguments(params)
        if self.status_message is not None:
            return RayStatus.ARGUMENT_ERROR

        # polar motion first: it only depends on (lambda, eta, theta_s)
        self._angular_evaluator.precompute()

        roots = radial_roots(bk, self.a, self.lambda_, self.eta)
        case, (self.r1, self.r2, self.r3, self.r4), (self.r1_c, self.r2_c, self.r3_c, self.r4_c) = \
            classify_roots(bk, roots, self.rp, self.rm)
        self.radial_case = case
        if case is RadialCase.NONE:
            return RayStatus.ARGUMENT_ERROR

        if radial_potential(self.r_s, self.a, self.lambda_, self.eta) < 0:
            return RayStatus.CONFINED
        inward = self.nu_r is Sign.NEGATIVE
        if case is RadialCase.CASE_1:
            if self.r_s < self.r4:
                return RayStatus.CONFINED
        elif inward:
            # no turning point outside the horizon
            return RayStatus.CONFINED

        self._radial_evaluators[case].calc(is_plus=inward)
        mino_time = self.radial_integrals[0]
        if not mino_time >= 0:
            return RayStatus.UNKNOWN_ERROR

        self._angular_evaluator.calc(mino_time)
        self.phi_f = self.radial_integrals[1] + self.lambda_ * self.angular_integrals[1]
        if self.calc_t_f:
            self.t_f = self.radial_integrals[2] + self.a * self.a * self.angular_integrals[2]
        else:
            self.t_f = bk.nan

        if not (bk.isfinite(self.theta_f) and bk.isfinite(self.phi_f)):
            return RayStatus.UNKNOWN_ERROR
        return RayStatus.NORMAL

    def calc_ray_by_rc_d(self, a, r_s, theta_s, r_o, rc, log_abs_d, d_sign=Sign.POSITIVE,
                         nu_r=Sign.POSITIVE, nu_theta=Sign.POSITIVE, **kwargs):
        params = ForwardRayTracingParams.from_rc_d(
            a, r_s, theta_s, r_o, nu_r, nu_theta, rc, log_abs_d, d_sign,
            precision=self.precision, **kwargs,
        )
        return self.calc_ray(params)

    def calc_ray_by_lambda_q(self, a, r_s, theta_s, r_o, lambda_, q,
                             nu_r=Sign.POSITIVE, nu_theta=Sign.POSITIVE, **kwargs):
        params = ForwardRayTracingParams.from_lambda_q(
            a, r_s, theta_s, r_o, nu_r, nu_theta, lambda_, q,
            precision=self.precision, **kwargs,
        )
        return self.calc_ray(params)

    def to_result(self):
        """Immutable snapshot of the current evaluation."""
        return ForwardRayTracingResult(
            a=self.a, rp=self.rp, rm=self.rm,
            r_s=self.r_s, theta_s=self.theta_s, r_o=self.r_o,
            r1=self.r1, r2=self.r2, r3=self.r3, r4=self.r4,
            r1_c=self.r1_c, r2_c=self.r2_c, r3_c=self.r3_c, r4_c=self.r4_c,
            lambda_=self.lambda_, eta=self.eta, q=self.q,
            t_f=self.t_f, theta_f=self.theta_f, phi_f=self.phi_f,
            m=self.m, n_half=self.n_half,
            ray_status=self.ray_status, radial_case=self.radial_case,
            rc=self.rc, log_abs_d=self.log_abs_d, d_sign=self.d_sign,
        )


def ray_tracing_rc_d(a, r_s, theta_s, r_o, rc, log_abs_d, d_sign=Sign.POSITIVE,
                     nu_r=Sign.POSITIVE, nu_theta=Sign.POSITIVE, precision=DEFAULT_PRECISION, **kwargs):
    """Acquire a pooled instance and evaluate it; the caller releases it."""
    ray = ForwardRayTracing.get_from_cache(precision)
    ray.calc_ray_by_rc_d(a, r_s, theta_s, r_o, rc, log_abs_d, d_sign, nu_r, nu_theta, **kwargs)
    return ray


def ray_tracing_lambda_q(a, r_s, theta_s, r_o, lambda_, q,
                         nu_r=Sign.POSITIVE, nu_theta=Sign.POSITIVE, precision=DEFAULT_PRECISION, **kwargs):
    """Acquire a pooled instance and evaluate it; the caller releases it."""
    ray = ForwardRayTracing.get_from_cache(precision)
    ray.calc_ray_by_lambda_q(a, r_s, theta_s, r_o, lambda_, q, nu_r, nu_theta, **kwargs)
    return ray
