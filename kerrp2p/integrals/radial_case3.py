# integrals/radial_case3.py
"""
Radial antiderivatives for two real roots r1 < r2 < r- and a complex pair
r3 = conj(r4) (Gralla & Lupsasca 2020, eqs. B55-B82).

Measured from r2, where the amplitude vanishes:
    A = |r3 - r2|, B = |r3 - r1|
    phi(r) = arccos((A (r - r1) - B (r - r2)) / (A (r - r1) + B (r - r2)))
    I_0    = F(phi | k) / sqrt(A B),  k = ((A + B)^2 - r21^2) / (4 A B)
"""
from kerrp2p.core.elliptic import ellipe, ellipf, ellippi
from kerrp2p.integrals.base_integral import RadialIntegral


class RadialIntegralCase3(RadialIntegral):

    def R1(self, phi, alpha):
        """int_0^phi dt / ((1 + alpha cos t) sqrt(1 - k sin^2 t))"""
        bk = self.ray.bk
        k = self.k
        alpha2 = alpha * alpha
        sin_phi = bk.sin(phi)
        s2phi = bk.sqrt(1 - k * sin_phi * sin_phi)
        denom = k + (1 - k) * alpha2
        if alpha2 > 1:
            p1 = bk.sqrt((alpha2 - 1) / denom)
            f1 = p1 / 2 * bk.log(abs((p1 * s2phi + sin_phi) / (p1 * s2phi - sin_phi)))
        else:
            p1 = bk.sqrt((1 - alpha2) / denom)
            f1 = p1 * bk.atan(sin_phi / (p1 * s2phi))
        return (ellippi(bk, alpha2 / (alpha2 - 1), phi, k) - alpha * f1) / (1 - alpha2)

    def R2(self, phi, alpha, r1_value):
        """int_0^phi dt / ((1 + alpha cos t)^2 sqrt(1 - k sin^2 t))"""
        bk = self.ray.bk
        k = self.k
        alpha2 = alpha * alpha
        sin_phi = bk.sin(phi)
        s2phi = bk.sqrt(1 - k * sin_phi * sin_phi)
        denom = k + (1 - k) * alpha2
        value = (ellipf(bk, phi, k)
                 - alpha2 / denom * (ellipe(bk, phi, k) - alpha * sin_phi * s2phi / (1 + alpha * bk.cos(phi))))
        return value / (alpha2 - 1) + (2 * k - alpha2 / (alpha2 - 1)) * r1_value / denom

    def precompute(self):
        ray = self.ray
        bk = ray.bk
        r1, r2 = ray.r1, ray.r2
        re34 = ray.r4_c.real
        im34 = abs(ray.r4_c.imag)
        self.r21 = r2 - r1

        A = bk.sqrt(im34 * im34 + (re34 - r2) ** 2)
        B = bk.sqrt(im34 * im34 + (re34 - r1) ** 2)
        self.A, self.B = A, B
        self.sqrt_AB = bk.sqrt(A * B)
        self.k = self.check_modulus(((A + B) ** 2 - self.r21 ** 2) / (4 * A * B))

        rp1, rp2 = ray.rp - r1, ray.rp - r2
        rm1, rm2 = ray.rm - r1, ray.rm - r2
        self.alpha_p = (B * rp2 + A * rp1) / (B * rp2 - A * rp1)
        self.alpha_m = (B * rm2 + A * rm1) / (B * rm2 - A * rm1)
        self.coef_p = 2 * self.r21 * self.sqrt_AB / (B * rp2 - A * rp1)
        self.coef_m = 2 * self.r21 * self.sqrt_AB / (B * rm2 - A * rm1)
        self.denom_p = B * rp2 + A * rp1
        self.denom_m = B * rm2 + A * rm1

        if ray.calc_t_f:
            self.alpha_0 = (B + A) / (B - A)
            self.coef_0 = 2 * self.r21 * self.sqrt_AB / (B * B - A * A)

    def amplitude(self, r):
        bk = self.ray.bk
        A, B = self.A, self.B
        x = (A * (r - self.ray.r1) - B * (r - self.ray.r2)) / (A * (r - self.ray.r1) + B * (r - self.ray.r2))
        x = min(max(x, -1), 1)
        return bk.acos(x)

    def evaluate(self, phi, r=None):
        ray = self.ray
        bk = ray.bk
        A, B = self.A, self.B

        i_0 = ellipf(bk, phi, self.k) / self.sqrt_AB
        pi_p = self.coef_p * self.R1(phi, self.alpha_p)
        pi_m = self.coef_m * self.R1(phi, self.alpha_m)
        i_p = -((B + A) * i_0 + pi_p) / self.denom_p
        i_m = -((B + A) * i_0 + pi_m) / self.denom_m
        i_phi, i_t_horizon = self.horizon_terms(i_p, i_m)

        if not ray.calc_t_f:
            return [i_0, i_phi, bk.nan]

        r1_0 = self.R1(phi, self.alpha_0)
        pi_1 = self.coef_0 * r1_0
        pi_2 = self.coef_0 ** 2 * self.R2(phi, self.alpha_0, r1_0)
        pref = (B * ray.r2 + A * ray.r1) / (B + A)
        i_1 = pref * i_0 + pi_1
        i_2 = pref * pref * i_0 + 2 * pref * pi_1 + self.sqrt_AB * pi_2
        i_t = i_t_horizon + 4 * i_0 + 2 * i_1 + i_2
        return [i_0, i_phi, i_t]
