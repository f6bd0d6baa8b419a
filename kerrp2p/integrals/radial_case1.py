# integrals/radial_case1.py
"""
Radial antiderivatives for four real roots r1 < r2 < r3 < r4 with the
turning point r4 outside the horizon (Gralla & Lupsasca 2020, eqs. B35-B53).

Measured from r4, where the amplitude vanishes:
    x(r)  = sqrt(r31 (r - r4) / (r41 (r - r3))),  phi = arcsin(x)
    I_0   = 2 F(phi | k) / sqrt(r31 r42),          k = r32 r41 / (r31 r42)
"""
from kerrp2p.core.elliptic import ellipe, ellipf, ellippi
from kerrp2p.core.kerr import radial_potential
from kerrp2p.integrals.base_integral import RadialIntegral


class RadialIntegralCase1(RadialIntegral):

    def precompute(self):
        ray = self.ray
        r1, r2, r3, r4 = ray.r1, ray.r2, ray.r3, ray.r4
        self.r31 = r3 - r1
        self.r41 = r4 - r1
        self.r42 = r4 - r2
        self.r43 = r4 - r3
        r32 = r3 - r2

        self.k = self.check_modulus(r32 * self.r41 / (self.r31 * self.r42))
        self.sqrt_r3142 = ray.bk.sqrt(self.r31 * self.r42)
        self.pref = 2 / self.sqrt_r3142
        self.n_1 = self.r41 / self.r31

        # characteristics of the horizon integrals
        rp3, rp4 = ray.rp - r3, ray.rp - r4
        rm3, rm4 = ray.rm - r3, ray.rm - r4
        self.rp3, self.rm3 = rp3, rm3
        self.n_p = rp3 * self.r41 / (rp4 * self.r31)
        self.n_m = rm3 * self.r41 / (rm4 * self.r31)
        self.coef_p = self.pref * self.r43 / (rp3 * rp4)
        self.coef_m = self.pref * self.r43 / (rm3 * rm4)

    def amplitude(self, r):
        bk = self.ray.bk
        x2 = self.r31 * (r - self.ray.r4) / (self.r41 * (r - self.ray.r3))
        if x2 >= 1:
            x2 = bk.mpf(1)
        return bk.asin(bk.sqrt(x2))

    def radius(self, phi):
        """Inverse of ``amplitude``."""
        ray = self.ray
        s2 = ray.bk.sin(phi) ** 2
        return (ray.r4 * self.r31 - ray.r3 * self.r41 * s2) / (self.r31 - self.r41 * s2)

    def evaluate(self, phi, r=None):
        ray = self.ray
        bk = ray.bk
        k = self.k

        i_0 = self.pref * ellipf(bk, phi, k)
        i_p = -i_0 / self.rp3 - self.coef_p * ellippi(bk, self.n_p, phi, k)
        i_m = -i_0 / self.rm3 - self.coef_m * ellippi(bk, self.n_m, phi, k)
        i_phi, i_t_horizon = self.horizon_terms(i_p, i_m)

        if not ray.calc_t_f:
            return [i_0, i_phi, bk.nan]

        if r is None:
            r = self.radius(phi)
        i_1 = ray.r3 * i_0 + self.r43 * self.pref * ellippi(bk, self.n_1, phi, k)
        sqrt_R = bk.sqrt(max(radial_potential(r, ray.a, ray.lambda_, ray.eta), 0))
        i_2 = (sqrt_R / (r - ray.r3)
               - (ray.r1 * ray.r4 + ray.r2 * ray.r3) / 2 * i_0
               - self.sqrt_r3142 * ellipe(bk, phi, k))
        i_t = i_t_horizon + 4 * i_0 + 2 * i_1 + i_2
        return [i_0, i_phi, i_t]
