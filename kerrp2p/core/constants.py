from enum import Enum, IntEnum

import numpy as np

### Constants and defaults for the analytic Kerr ray tracer
### Geometrized units: G = c = M = 1


class RayStatus(Enum):
    NORMAL = 0
    CONFINED = 1
    ETA_OUT_OF_RANGE = 2
    THETA_OUT_OF_RANGE = 3
    ARGUMENT_ERROR = 4
    UNKNOWN_ERROR = 5


class Sign(IntEnum):
    POSITIVE = 1
    NEGATIVE = -1


class RadialCase(IntEnum):
    NONE = 0
    CASE_1 = 1  # four real roots, turning point r4 outside the horizon
    CASE_2 = 2  # four real roots, r3 and r4 inside the inner horizon
    CASE_3 = 3  # r1 < r2 real, r3 = conj(r4)


# Numeric precision
DEFAULT_PRECISION = "float64"
HIGH_PRECISION = "mp"
HIGHER_PRECISION = {"float64": "mp"}
MP_DPS = 40  # decimal digits of the high precision context

# Root finder
BROYDEN_MAX_ITER = 100
BROYDEN_FD_STEP = 1e-6
BROYDEN_XTOL_ULPS = 100  # step tolerance in units of the backend epsilon
BROYDEN_MAX_BACKTRACK = 12

# Sweep
DEFAULT_CUTOFF = 20
DEFAULT_TOL = 1e-8

two_pi = 2.0 * np.pi


def to_sign(value):
    """Coerce +-1 (int, float or Sign) into a Sign member."""
    if isinstance(value, Sign):
        return value
    if value in (1, 1.0):
        return Sign.POSITIVE
    if value in (-1, -1.0):
        return Sign.NEGATIVE
    raise ValueError(f"Sign must be +1 or -1, got {value!r}")
