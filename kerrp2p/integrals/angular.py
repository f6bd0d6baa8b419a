# integrals/angular.py
"""
Angular integrals for ordinary (eta > 0) polar motion.

With u = cos^2(theta) the polar potential has roots u+ > 0 > u-, the motion
oscillates between cos^2(theta) = u+ on both sides of the equator and

    cos(theta) = sqrt(u+) sin(Phi),   X = F(Phi | k),   k = u+/u- < 0,

where X advances linearly in Mino time: X(tau) = X_s - nu_theta sqrt(-u- a^2) tau.
Turning points sit at X = (2j + 1) K(k), equatorial crossings at X = 2 j K(k).
Working with the unwrapped amplitude Phi keeps G_phi and G_t single valued
across any number of turning points.
"""
from kerrp2p.core.constants import RayStatus
from kerrp2p.core.elliptic import ellipe, ellipf, ellipk, ellippi, jacobi_am
from kerrp2p.core.kerr import angular_turning_points
from kerrp2p.integrals.base_integral import IntegralDomainError


class AngularIntegral:

    def __init__(self, ray):
        self.ray = ray

    def precompute(self):
        """Turning structure of the polar motion; checks that theta_s is reachable."""
        ray = self.ray
        bk = ray.bk
        a = ray.a
        if not ray.eta > 0:
            raise IntegralDomainError(RayStatus.ETA_OUT_OF_RANGE, f"eta = {ray.eta} admits no ordinary polar motion")

        self.u_plus, self.u_minus = angular_turning_points(bk, a, ray.lambda_, ray.eta)
        if not (0 < self.u_plus <= 1):
            raise IntegralDomainError(RayStatus.ETA_OUT_OF_RANGE, f"u+ = {self.u_plus} outside (0, 1]")

        cos_s = bk.cos(ray.theta_s)
        if cos_s * cos_s > self.u_plus:
            raise IntegralDomainError(
                RayStatus.THETA_OUT_OF_RANGE,
                f"theta_s = {ray.theta_s} outside the polar band cos^2 <= {self.u_plus}",
            )

        self.k = self.u_plus / self.u_minus
        self.rate = bk.sqrt(-self.u_minus * a * a)
        self.K = ellipk(bk, self.k)
        self.sqrt_u_plus = bk.sqrt(self.u_plus)

        x = cos_s / self.sqrt_u_plus
        x = min(max(x, -1), 1)
        self.Phi_s = bk.asin(x)
        self.X_s = ellipf(bk, self.Phi_s, self.k)

    def _crossings(self, lo, hi, offset):
        """Number of points offset + 2 j K inside (lo, hi]."""
        bk = self.ray.bk
        period = 2 * self.K
        return bk.floor((hi - offset) / period) - bk.floor((lo - offset) / period)

    def calc(self, mino_time):
        """Propagate the polar motion over ``mino_time``; fills theta_f, m, n_half and the G integrals."""
        ray = self.ray
        bk = ray.bk
        sign = -int(ray.nu_theta)

        X_f = self.X_s + sign * self.rate * mino_time
        Phi_f = jacobi_am(bk, X_f, self.k)

        cos_f = self.sqrt_u_plus * bk.sin(Phi_f)
        cos_f = min(max(cos_f, -1), 1)
        ray.theta_f = bk.acos(cos_f)

        lo, hi = min(self.X_s, X_f), max(self.X_s, X_f)
        ray.m = self._crossings(lo, hi, self.K)
        ray.n_half = self._crossings(lo, hi, 0)

        g_theta = mino_time
        # G_phi carries the factor lambda in phi_f; for lambda = 0 the pole n = u+ = 1 is harmless
        if ray.lambda_ == 0:
            g_phi = bk.mpf(0)
        else:
            g_phi = sign * (ellippi(bk, self.u_plus, Phi_f, self.k)
                            - ellippi(bk, self.u_plus, self.Phi_s, self.k)) / self.rate
        if ray.calc_t_f:
            fe_f = X_f - ellipe(bk, Phi_f, self.k)
            fe_s = self.X_s - ellipe(bk, self.Phi_s, self.k)
            g_t = sign * self.u_plus * (fe_f - fe_s) / (self.k * self.rate)
        else:
            g_t = bk.nan

        ray.angular_integrals[0] = g_theta
        ray.angular_integrals[1] = g_phi
        ray.angular_integrals[2] = g_t
        return ray.angular_integrals
