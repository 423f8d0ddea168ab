"""
inference
=========

Sampling engines for surrogate hyperparameters.

This subpackage provides:
- MCMCSampler : one Markov chain over a negative log density, producing a
  fixed-size particle set per run.
- slice_sample : one coordinate-wise slice-sampling sweep (Neal, 2003).
- MCMCAlgorithm / MCMC_ALGORITHMS : algorithm choice, by enum or by name.
- Density / as_density : protocol for sampling targets.
"""

from .base import Density, MCMCAlgorithm, as_density
from .mcmc_sampler import MCMC_ALGORITHMS, MCMCSampler
from .slice_sampling import slice_sample

__all__ = [
    "Density",
    "MCMCAlgorithm",
    "MCMCSampler",
    "MCMC_ALGORITHMS",
    "as_density",
    "slice_sample",
]
