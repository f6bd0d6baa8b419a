# integrals/base_integral.py
from abc import ABC, abstractmethod

from kerrp2p.core.constants import RayStatus


class IntegralDomainError(ValueError):
    """Raised inside an evaluation when the closed forms do not apply; carries the ray status."""

    def __init__(self, status, message):
        super().__init__(message)
        self.status = status


class RadialIntegral(ABC):
    """
    Closed-form antiderivative of the radial integrals for one root configuration.

    Antiderivatives are measured from a reference root of R(r); the path
    integral between source and observer combines the two end points.
    Result layout: [0] Mino time I_0, [1] I_phi, [2] I_t (NaN unless the
    owning ray asks for the time integral).
    """

    def __init__(self, ray):
        self.ray = ray

    @abstractmethod
    def precompute(self):
        """Derive modulus and root combinations once per evaluation."""
        pass

    @abstractmethod
    def amplitude(self, r):
        """Elliptic amplitude corresponding to radius r."""
        pass

    @abstractmethod
    def evaluate(self, phi, r=None):
        """Return [I_0, I_phi, I_t] at amplitude phi (r, when known, is the matching radius)."""
        pass

    def check_modulus(self, k):
        # k within modulus_tol of 1 is a double root the integrals cannot resolve
        if not (0 <= k <= 1 - self.ray.bk.modulus_tol):
            raise IntegralDomainError(
                RayStatus.ARGUMENT_ERROR,
                f"elliptic parameter {k} outside [0, 1) or too close to 1 for {type(self).__name__}",
            )
        return k

    def horizon_terms(self, i_p, i_m):
        """Combine the horizon integrals I_+ and I_- into I_phi and the radial part of I_t."""
        ray = self.ray
        a, lam, rp, rm = ray.a, ray.lambda_, ray.rp, ray.rm
        i_phi = 2 * a / (rp - rm) * ((rp - a * lam / 2) * i_p - (rm - a * lam / 2) * i_m)
        i_t = 4 / (rp - rm) * ((rp * rp - a * lam * rp / 2) * i_p - (rm * rm - a * lam * rm / 2) * i_m)
        return i_phi, i_t

    def calc(self, is_plus):
        """Fill ``ray.radial_integrals`` for the path r_s -> r_o."""
        self.precompute()
        ray = self.ray
        integral_rs = self.evaluate(self.amplitude(ray.r_s), ray.r_s)
        integral_ro = self.evaluate(self.amplitude(ray.r_o), ray.r_o)
        for i in range(3):
            if is_plus:
                ray.radial_integrals[i] = integral_ro[i] + integral_rs[i]
            else:
                ray.radial_integrals[i] = integral_ro[i] - integral_rs[i]
        return ray.radial_integrals
