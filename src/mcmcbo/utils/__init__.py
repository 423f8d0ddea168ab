"""
utils
=====

Shared utility functions and helpers for mcmcbo.

This subpackage provides:
- math : covariance kernels and scaled distances (JAX).
- rng : random number handling for reproducibility, including the bridge
  from JAX PRNG keys to NumPy generators used inside Markov chains.
"""

from .math import matern52_kernel, rbf_kernel, scaled_sq_dist
from .rng import as_key, numpy_generator, seed, split

__all__ = [
    # math
    "rbf_kernel",
    "matern52_kernel",
    "scaled_sq_dist",
    # rng
    "seed",
    "split",
    "as_key",
    "numpy_generator",
]
