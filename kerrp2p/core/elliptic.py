# core/elliptic.py
"""
Elliptic integrals and Jacobi functions in Legendre parameter form, usable
with any backend from ``kerrp2p.core.precision``.

``ellipf(bk, phi, m)`` is F(phi | m) = int_0^phi dt / sqrt(1 - m sin^2 t).
The parameter m may be negative (angular integrals use m = u+/u- < 0).
K, F and E come from the backend library (scipy.special or mpmath).
The third kind is built here on Carlson's R_F and R_J, since scipy has no
incomplete Pi; amplitudes of any size are reduced to [-pi/2, pi/2] with
Pi(n, phi + j pi | m) = Pi(n, phi | m) + 2 j Pi(n | m), and n > 1 returns the
Cauchy principal value.
"""


def reduce_amplitude(bk, phi):
    """Split phi into j*pi + phi_r with phi_r in [-pi/2, pi/2]."""
    j = bk.floor(phi / bk.pi + 0.5)
    return j, phi - j * bk.pi


def carlson_rc(bk, x, y):
    """R_C(x, y), principal value for y < 0."""
    if y < 0:
        return bk.sqrt(x / (x - y)) * bk.elliprc(x - y, -y)
    return bk.elliprc(x, y)


def ellipk(bk, m):
    return bk.ellipk(m)


def ellipf(bk, phi, m):
    return bk.ellipf(phi, m)


def ellipe(bk, phi, m):
    return bk.ellipe(phi, m)


def ellippi_complete(bk, n, m):
    if n > 1:
        # DLMF 19.6.5
        return ellipk(bk, m) - ellippi_complete(bk, m / n, m)
    return bk.elliprf(0, 1 - m, 1) + n / 3 * bk.elliprj(0, 1 - m, 1, 1 - n)


def _ellippi_reduced(bk, n, phi, m):
    s = bk.sin(phi)
    if s == 0:
        return s
    if n > 1:
        # DLMF 19.7.9 with omega^2 = m/n < 1, c = csc^2(phi); odd in phi
        c = 1 / (s * s)
        rc = carlson_rc(bk, (c - 1) * (c - m), (c - n) * (c - m / n))
        return bk.ellipf(phi, m) - _ellippi_reduced(bk, m / n, phi, m) + rc / s
    cs = bk.cos(phi)
    c2 = cs * cs
    d2 = 1 - m * s * s
    return s * bk.elliprf(c2, d2, 1) + n / 3 * s * s * s * bk.elliprj(c2, d2, 1, 1 - n * s * s)


def ellippi(bk, n, phi, m):
    j, phi_r = reduce_amplitude(bk, phi)
    value = _ellippi_reduced(bk, n, phi_r, m)
    if j:
        value += 2 * j * ellippi_complete(bk, n, m)
    return value


def jacobi_sn(bk, u, m):
    """sn(u | m) for m < 1, negative m through the imaginary-modulus transform."""
    if m < 0:
        mu = m / (m - 1)
        su = bk.sqrt(1 - mu)
        sn, _, dn = bk.ellipj(u / su, mu)
        return su * sn / dn
    sn, _, _ = bk.ellipj(u, m)
    return sn


def amplitude_from_sn(bk, u, m):
    """Unwrapped am(u | m) from sn on the reduced period [-K, K]."""
    k_full = ellipk(bk, m)
    j = bk.floor((u + k_full) / (2 * k_full))
    u_r = u - 2 * j * k_full
    sn = jacobi_sn(bk, u_r, m)
    if sn > 1:
        sn = bk.mpf(1)
    elif sn < -1:
        sn = bk.mpf(-1)
    return bk.asin(sn) + j * bk.pi


def jacobi_am(bk, u, m):
    """Unwrapped Jacobi amplitude am(u | m), continuous and increasing in u."""
    return bk.am(u, m)
