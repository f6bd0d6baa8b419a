# integrals/radial_case2.py
"""
Radial antiderivatives for four real roots with r3 <= r4 < r- (the second
pair hides behind the inner horizon).

The elliptic reduction is the one of case 1, still measured from r4, but the
path from r4 to any radius outside the black hole now crosses r- and r+:
the horizon integrals pick up their poles and are taken as principal values.
Differences between two radii outside r+ are unaffected. No turning point
exists outside the horizon, so the path is never a sum of two branches.
"""
from kerrp2p.core.constants import RayStatus
from kerrp2p.integrals.base_integral import IntegralDomainError
from kerrp2p.integrals.radial_case1 import RadialIntegralCase1


class RadialIntegralCase2(RadialIntegralCase1):

    def calc(self, is_plus):
        if is_plus:
            raise IntegralDomainError(RayStatus.CONFINED, "no radial turning point outside the horizon")
        return super().calc(is_plus)
