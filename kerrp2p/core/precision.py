# core/precision.py
"""
Numeric backends for the analytic ray tracer.

Every component receives one backend object and does all of its arithmetic
through it, so the same code runs in float64 (scipy.special) or in extended
precision (mpmath). mpmath functions raise and restore the working precision
of their context while they run, so a context must never be shared between
threads: ``get_backend`` hands every thread its own backend instances.
"""
from __future__ import annotations

import cmath
import math
import threading

import mpmath
import numpy as np
from scipy import special

from kerrp2p.core.constants import MP_DPS
from kerrp2p.core.elliptic import amplitude_from_sn


class Float64Backend:
    """IEEE double precision through math/cmath and scipy.special."""

    name = "float64"
    dtype = float

    def __init__(self):
        self.pi = math.pi
        self.nan = math.nan
        self.inf = math.inf
        self.eps = float(np.finfo(float).eps)
        # roots whose imaginary part is below this (relative) are real
        self.root_tol = 1e-9
        # elliptic parameters closer than this to 1 count as degenerate
        self.modulus_tol = self.eps ** (1.0 / 3.0)
        self.cube_unit = cmath.exp(2j * math.pi / 3)

    def mpf(self, x):
        return float(x)

    def mpc(self, x):
        return complex(x)

    def to_float(self, x):
        return float(x)

    sqrt = staticmethod(math.sqrt)
    exp = staticmethod(math.exp)
    log = staticmethod(math.log)
    sin = staticmethod(math.sin)
    cos = staticmethod(math.cos)
    asin = staticmethod(math.asin)
    acos = staticmethod(math.acos)
    atan = staticmethod(math.atan)
    isnan = staticmethod(math.isnan)
    isfinite = staticmethod(math.isfinite)
    csqrt = staticmethod(cmath.sqrt)

    def cbrt(self, x):
        return math.copysign(abs(x) ** (1.0 / 3.0), x)

    def ccbrt(self, z):
        return complex(z) ** (1.0 / 3.0)

    def floor(self, x):
        return int(math.floor(x))

    def elliprf(self, x, y, z):
        return float(special.elliprf(x, y, z))

    def elliprd(self, x, y, z):
        return float(special.elliprd(x, y, z))

    def elliprj(self, x, y, z, p):
        return float(special.elliprj(x, y, z, p))

    def elliprc(self, x, y):
        return float(special.elliprc(x, y))

    def ellipk(self, m):
        return float(special.ellipk(m))

    def ellipf(self, phi, m):
        return float(special.ellipkinc(phi, m))

    def ellipe(self, phi, m):
        return float(special.ellipeinc(phi, m))

    def ellipj(self, u, m):
        """Jacobi sn, cn, dn for 0 <= m <= 1."""
        sn, cn, dn, _ = special.ellipj(u, m)
        return float(sn), float(cn), float(dn)

    def am(self, u, m):
        """Unwrapped amplitude from scipy's ellipj; m < 0 through the imaginary-modulus transform."""
        if m < 0:
            mu = m / (m - 1)
            v = u * math.sqrt(1 - m)
            return math.pi / 2 - float(special.ellipj(special.ellipk(mu) - v, mu)[3])
        return float(special.ellipj(u, m)[3])


class MultiPrecisionBackend:
    """mpmath backend with its own context at ``dps`` decimal digits."""

    name = "mp"
    dtype = object

    def __init__(self, dps=MP_DPS):
        self.ctx = mpmath.MPContext()
        self.ctx.dps = dps
        self.dps = dps
        ctx = self.ctx
        self.pi = +ctx.pi
        self.nan = ctx.nan
        self.inf = ctx.inf
        self.eps = ctx.eps
        self.root_tol = ctx.mpf(10) ** (-(dps // 2))
        self.modulus_tol = ctx.cbrt(ctx.eps)
        self.cube_unit = ctx.expjpi(ctx.mpf(2) / 3)

        self.sqrt = ctx.sqrt
        self.exp = ctx.exp
        self.log = ctx.log
        self.sin = ctx.sin
        self.cos = ctx.cos
        self.asin = ctx.asin
        self.acos = ctx.acos
        self.atan = ctx.atan
        self.isnan = ctx.isnan
        self.isfinite = ctx.isfinite
        self.csqrt = ctx.sqrt
        self.elliprf = ctx.elliprf
        self.elliprd = ctx.elliprd
        self.elliprj = ctx.elliprj
        self.elliprc = ctx.elliprc
        self.ellipk = ctx.ellipk
        self.ellipf = ctx.ellipf
        self.ellipe = ctx.ellipe

    def mpf(self, x):
        return self.ctx.mpf(x)

    def mpc(self, x):
        return self.ctx.mpc(x)

    def to_float(self, x):
        return float(x)

    def cbrt(self, x):
        # ctx.cbrt returns the principal (complex) root for negative input
        if x < 0:
            return -self.ctx.cbrt(-x)
        return self.ctx.cbrt(x)

    def ccbrt(self, z):
        return self.ctx.cbrt(self.ctx.mpc(z))

    def floor(self, x):
        return int(self.ctx.floor(x))

    def ellipj(self, u, m):
        ctx = self.ctx
        return (ctx.ellipfun("sn", u, m=m),
                ctx.ellipfun("cn", u, m=m),
                ctx.ellipfun("dn", u, m=m))

    def am(self, u, m):
        return amplitude_from_sn(self, u, m)


BACKENDS = {"float64": Float64Backend, "mp": MultiPrecisionBackend}
_local = threading.local()


def get_backend(precision):
    """Return the calling thread's backend instance registered under ``precision``."""
    if precision not in BACKENDS:
        raise ValueError(f"Precision '{precision}' not supported. Available: {list(BACKENDS.keys())}")
    instances = getattr(_local, "instances", None)
    if instances is None:
        instances = _local.instances = {}
    backend = instances.get(precision)
    if backend is None:
        backend = instances[precision] = BACKENDS[precision]()
    return backend
