# photon/params.py
from __future__ import annotations

import copy

from kerrp2p.core.constants import DEFAULT_PRECISION, Sign, to_sign
from kerrp2p.core.kerr import lambda_eta_to_rc_d, rc_d_to_lambda_eta
from kerrp2p.core.precision import get_backend


class ForwardRayTracingParams:
    """
    Physical inputs of one forward evaluation.

    Either (rc, log_abs_d, d_sign) or (lambda_, q) is authoritative, as given
    by ``parameterization``; the other pair is derived with the fixed map of
    ``kerrp2p.core.kerr``. q = sqrt(eta).
    """

    def __init__(
        self,
        a,
        r_s,
        theta_s,
        r_o,
        nu_r=Sign.POSITIVE,
        nu_theta=Sign.POSITIVE,
        *,
        rc=None,
        log_abs_d=None,
        d_sign=Sign.POSITIVE,
        lambda_=None,
        q=None,
        precision=DEFAULT_PRECISION,
        calc_t_f=True,
        print_args_error=False,
    ):
        self.precision = precision
        bk = get_backend(precision)
        self.a = bk.mpf(a)
        self.r_s = bk.mpf(r_s)
        self.theta_s = bk.mpf(theta_s)
        self.r_o = bk.mpf(r_o)
        self.nu_r = to_sign(nu_r)
        self.nu_theta = to_sign(nu_theta)
        self.d_sign = to_sign(d_sign)
        self.calc_t_f = calc_t_f
        self.print_args_error = print_args_error

        self.rc = None if rc is None else bk.mpf(rc)
        self.log_abs_d = None if log_abs_d is None else bk.mpf(log_abs_d)
        self.lambda_ = None if lambda_ is None else bk.mpf(lambda_)
        self.q = None if q is None else bk.mpf(q)
        self.eta = None

        if self.rc is not None and self.log_abs_d is not None:
            self.parameterization = "rc_d"
            self.rc_d_to_lambda_q()
        elif self.lambda_ is not None and self.q is not None:
            self.parameterization = "lambda_q"
            self.lambda_q_to_rc_d()
        else:
            raise ValueError("Either (rc, log_abs_d) or (lambda_, q) must be given")

    @classmethod
    def from_rc_d(cls, a, r_s, theta_s, r_o, nu_r, nu_theta, rc, log_abs_d, d_sign=Sign.POSITIVE, **kwargs):
        return cls(a, r_s, theta_s, r_o, nu_r, nu_theta, rc=rc, log_abs_d=log_abs_d, d_sign=d_sign, **kwargs)

    @classmethod
    def from_lambda_q(cls, a, r_s, theta_s, r_o, nu_r, nu_theta, lambda_, q, **kwargs):
        return cls(a, r_s, theta_s, r_o, nu_r, nu_theta, lambda_=lambda_, q=q, **kwargs)

    @property
    def backend(self):
        return get_backend(self.precision)

    def rc_d_to_lambda_q(self):
        """Refresh (lambda_, eta, q) from (rc, log_abs_d, d_sign); (rc, d) becomes authoritative."""
        bk = self.backend
        self.parameterization = "rc_d"
        if self.a == 0 or self.rc == 1:
            self.lambda_, self.eta, self.q = bk.nan, bk.nan, bk.nan
            return self
        try:
            self.lambda_, self.eta = rc_d_to_lambda_eta(bk, self.a, self.rc, self.log_abs_d, self.d_sign)
        except (ArithmeticError, ValueError):
            # outside the range of the map, e.g. exp overflow for a huge log|d|
            self.lambda_, self.eta, self.q = bk.nan, bk.nan, bk.nan
            return self
        self.q = bk.sqrt(self.eta) if self.eta >= 0 else bk.nan
        return self

    def lambda_q_to_rc_d(self):
        """Refresh (rc, log_abs_d, d_sign) from (lambda_, q); (lambda, q) becomes authoritative."""
        bk = self.backend
        self.parameterization = "lambda_q"
        self.eta = self.q * self.q
        if self.a == 0 or not (-1 < self.a < 1):
            self.rc, self.log_abs_d = bk.nan, bk.nan
            return self
        try:
            self.rc, self.log_abs_d, self.d_sign = lambda_eta_to_rc_d(bk, self.a, self.lambda_, self.eta)
        except (ArithmeticError, ValueError):
            self.rc, self.log_abs_d = bk.nan, bk.nan
        return self

    def copy(self):
        return copy.copy(self)

    def with_precision(self, precision):
        """Copy of these parameters with every number re-created by the calling thread's ``precision`` backend."""
        bk = get_backend(precision)
        lifted = self.copy()
        lifted.precision = precision
        for name in ("a", "r_s", "theta_s", "r_o", "rc", "log_abs_d", "lambda_", "q", "eta"):
            value = getattr(self, name)
            if value is not None:
                setattr(lifted, name, bk.mpf(value))
        # re-derive the dependent pair at the new precision
        if lifted.parameterization == "rc_d":
            lifted.rc_d_to_lambda_q()
        else:
            lifted.lambda_q_to_rc_d()
        return lifted

    def get_high_prec(self, precision):
        """Copy of these parameters lifted to the higher ``precision``."""
        return self.with_precision(precision)

    def __repr__(self):
        if self.parameterization == "rc_d":
            tail = f"rc={self.rc}, log_abs_d={self.log_abs_d}, d_sign={self.d_sign.name}"
        else:
            tail = f"lambda_={self.lambda_}, q={self.q}"
        return (f"ForwardRayTracingParams(a={self.a}, r_s={self.r_s}, theta_s={self.theta_s}, "
                f"r_o={self.r_o}, nu_r={self.nu_r.name}, nu_theta={self.nu_theta.name}, {tail})")
