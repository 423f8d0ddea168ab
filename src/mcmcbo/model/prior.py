"""
prior.py
--------

Prior distribution for surrogate hyperparameters.

Hyperparameters live in log space (log lengthscales, log signal std), and
the prior is an independent Gaussian on each of them, i.e. a log-normal
prior on the positive quantities.

Connections
-----------
- GaussianProcess starts from HyperPrior.initial() before any sampling.
- GaussianProcess adds HyperPrior.log_prob(theta) to the marginal
  log-likelihood to form the target density the MCMC sampler explores.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import jax.numpy as jnp


@dataclass
class HyperPrior:
    """
    Independent Gaussian prior over log-hyperparameters.

    Parameters
    ----------
    mean : float | Sequence[float], default=0.0
        Prior mean per log-hyperparameter (broadcast when scalar).
    scale : float | Sequence[float], default=1.0
        Prior standard deviation per log-hyperparameter.
    """

    mean: float | Sequence[float] = 0.0
    scale: float | Sequence[float] = 1.0

    def __post_init__(self):
        """Validate parameters."""
        if jnp.any(jnp.asarray(self.scale) <= 0.0):
            raise ValueError("scale must be positive")

    def initial(self, n_hyperparameters: int) -> jnp.ndarray:
        """Prior mean as a vector of length n_hyperparameters."""
        return jnp.broadcast_to(
            jnp.asarray(self.mean, dtype=float), (n_hyperparameters,)
        )

    def log_prob(self, theta: jnp.ndarray) -> jnp.ndarray:
        """
        Log density of theta under the prior.

        Parameters
        ----------
        theta : jnp.ndarray, shape (n_hyperparameters,)
            Log-hyperparameters.

        Returns
        -------
        jnp.ndarray
            Scalar log density (normalised).
        """
        mean = jnp.asarray(self.mean, dtype=float)
        scale = jnp.asarray(self.scale, dtype=float)
        z = (theta - mean) / scale
        log_norm = jnp.log(scale) + 0.5 * jnp.log(2.0 * jnp.pi)
        return jnp.sum(-0.5 * z**2 - log_norm * jnp.ones_like(theta))
