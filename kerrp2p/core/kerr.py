# core/kerr.py
"""
Kerr geometry helpers: horizons, radial and angular potentials, the quartic
root solver and classifier, and the (rc, d) <-> (lambda, q) parameter map.

All functions take the backend ``bk`` as first argument where they need
elementary functions, so they work unchanged in float64 and in mpmath.
"""
from kerrp2p.core.constants import RadialCase, Sign


def horizons(bk, a):
    """Outer and inner horizon radii (r+, r-) for spin |a| < 1."""
    s = bk.sqrt(1 - a * a)
    return 1 + s, 1 - s


def delta(r, a):
    return r * r - 2 * r + a * a


def radial_potential(r, a, lambda_, eta):
    """R(r) = (r^2 + a^2 - a lambda)^2 - Delta (eta + (lambda - a)^2)"""
    w = r * r + a * a - a * lambda_
    return w * w - delta(r, a) * (eta + (lambda_ - a) ** 2)


def angular_turning_points(bk, a, lambda_, eta):
    """Roots u+ > 0 > u- (for eta > 0) of the angular potential in u = cos^2(theta)."""
    delta_theta = (1 - (eta + lambda_ * lambda_) / (a * a)) / 2
    root = bk.sqrt(delta_theta * delta_theta + eta / (a * a))
    return delta_theta + root, delta_theta - root


###############################################################
#  CRITICAL CURVE AND (rc, d) PARAMETERIZATION
###############################################################
def critical_lambda(rc, a):
    """Angular momentum of the spherical photon orbit at radius rc."""
    return a + rc / a * (rc - 2 * delta(rc, a) / (rc - 1))


def critical_eta(rc, a):
    """Carter constant of the spherical photon orbit at radius rc."""
    return rc ** 3 / (a * a) * (4 * delta(rc, a) / (rc - 1) ** 2 - rc)


def rc_d_to_lambda_eta(bk, a, rc, log_abs_d, d_sign):
    """
    Map (rc, log|d|, sign(d)) to (lambda, eta).

    lambda is the critical angular momentum of the photon orbit at rc and
    eta is displaced from the critical Carter constant by d = sign * exp(log|d|).
    """
    lambda_ = critical_lambda(rc, a)
    eta = critical_eta(rc, a) + int(d_sign) * bk.exp(log_abs_d)
    return lambda_, eta


def critical_radius(bk, a, lambda_):
    """
    Radius rc > 1 of the photon orbit with critical angular momentum lambda.

    With rc = 1 + y the orbit condition reduces to the depressed cubic
    y^3 + p y + c = 0, p = a(a + lambda) - 3, c = 2(a^2 - 1) < 0, which has
    exactly one positive root for |a| < 1.
    """
    p = a * (a + lambda_) - 3
    c = 2 * (a * a - 1)
    disc = (c / 2) ** 2 + (p / 3) ** 3
    if disc >= 0:
        sq = bk.sqrt(disc)
        y = bk.cbrt(-c / 2 + sq) + bk.cbrt(-c / 2 - sq)
    else:
        # three real roots, the largest one is the positive one
        amp = 2 * bk.sqrt(-p / 3)
        arg = 3 * c / (2 * p) * bk.sqrt(-3 / p)
        arg = min(max(arg, -1), 1)
        y = amp * bk.cos(bk.acos(arg) / 3)
    # polish: two Newton steps on the cubic
    for _ in range(2):
        df = 3 * y * y + p
        if df == 0:
            break
        y = y - (y ** 3 + p * y + c) / df
    return 1 + y


def lambda_eta_to_rc_d(bk, a, lambda_, eta):
    """Inverse of ``rc_d_to_lambda_eta``: returns (rc, log|d|, sign(d))."""
    rc = critical_radius(bk, a, lambda_)
    d = eta - critical_eta(rc, a)
    if d == 0:
        return rc, -bk.inf, Sign.POSITIVE
    d_sign = Sign.POSITIVE if d > 0 else Sign.NEGATIVE
    return rc, bk.log(abs(d)), d_sign


###############################################################
#  RADIAL ROOTS
###############################################################
def radial_roots(bk, a, lambda_, eta):
    """
    Four complex roots of R(r) = r^4 + A r^2 + B r + C.

    Uses the resolvent cubic: the resolvent root xi with the largest real part
    is real and positive, z = sqrt(xi / 2) splits the quartic into two
    quadratics. Returned as (r1, r2, r3, r4) in the -z, -z, +z, +z grouping.
    """
    A = a * a - eta - lambda_ * lambda_
    B = 2 * (eta + (lambda_ - a) ** 2)
    C = -a * a * eta
    P = -A * A / 12 - C
    Q = -A / 3 * ((A / 6) ** 2 - C) - B * B / 8

    omega_p = bk.ccbrt(-Q / 2 + bk.csqrt(bk.mpc((P / 3) ** 3 + (Q / 2) ** 2)))
    unit = bk.cube_unit
    best = None
    for k in range(3):
        w_p = omega_p * unit ** k
        w_m = -P / (3 * w_p) if w_p != 0 else 0
        xi = w_p + w_m - A / 3
        if best is None or xi.real > best.real:
            best = xi
    z = bk.csqrt(best / 2)
    s_12 = bk.csqrt(-A / 2 - z * z + B / (4 * z))
    s_34 = bk.csqrt(-A / 2 - z * z - B / (4 * z))
    return -z - s_12, -z + s_12, z - s_34, z + s_34


def _is_real(bk, root):
    return abs(root.imag) <= bk.root_tol * max(1, abs(root))


def classify_roots(bk, roots, rp, rm):
    """
    Order the roots and pick the radial case.

    Returns (case, (r1, r2, r3, r4) real parts, (r1_c, r2_c, r3_c, r4_c)).
    Case 1: four real roots, r4 > r+. Case 2: four real roots, r4 < r-.
    Case 3: r1 < r2 real, r3 = conj(r4) with Im(r4) > 0.
    """
    real_roots = sorted([r.real for r in roots if _is_real(bk, r)])
    complex_roots = [r for r in roots if not _is_real(bk, r)]

    if len(real_roots) == 4:
        r1, r2, r3, r4 = real_roots
        roots_c = tuple(bk.mpc(r) for r in real_roots)
        if r4 > rp:
            case = RadialCase.CASE_1
        elif r4 < rm:
            case = RadialCase.CASE_2
        else:
            case = RadialCase.NONE
        return case, (r1, r2, r3, r4), roots_c

    if len(real_roots) == 2 and len(complex_roots) == 2:
        r1, r2 = real_roots
        r4_c = complex_roots[0] if complex_roots[0].imag > 0 else complex_roots[1]
        r3_c = r4_c.conjugate()
        roots_c = (bk.mpc(r1), bk.mpc(r2), r3_c, r4_c)
        return RadialCase.CASE_3, (r1, r2, r3_c.real, r4_c.real), roots_c

    return RadialCase.NONE, tuple(r.real for r in roots), tuple(roots)
