"""
Ray tracing entry points.

Forward evaluation of single rays and batches, the inverse (root finding)
problem, and grid sweeps discovering every image of a source.
"""

from .forward_ray_tracing import (
    ForwardRayTracing,
    ray_tracing_lambda_q,
    ray_tracing_rc_d
)

from .ray_utils import (
    calc_ray,
    calc_ray_batch,
    clean_cache,
    wrap_phi
)

from .root_finder import (
    RootFunctor,
    find_root,
    find_root_period
)

from .sweep import (
    deduplicate_results,
    sweep_rc_d,
    sweep_rc_d_high
)

__all__ = [
    'ForwardRayTracing',
    'ray_tracing_lambda_q',
    'ray_tracing_rc_d',
    'calc_ray',
    'calc_ray_batch',
    'clean_cache',
    'wrap_phi',
    'RootFunctor',
    'find_root',
    'find_root_period',
    'deduplicate_results',
    'sweep_rc_d',
    'sweep_rc_d_high'
]
