"""
parameter_posterior.py
---------------------

Target density over surrogate hyperparameters, p(θ | data).

HyperparameterPosterior adapts a surrogate to the sampler's Density
protocol. It reads the surrogate's (shared) observation history at every
evaluation, so the target follows the data without being rebuilt.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from mcmcbo.model import SurrogateModel


class HyperparameterPosterior:
    """
    Negative log posterior of a surrogate's log-hyperparameters.

    Parameters
    ----------
    surrogate : SurrogateModel
        Defines likelihood and prior. Its own hyperparameters are not used.

    Examples
    --------
    >>> target = HyperparameterPosterior(gp)
    >>> sampler = MCMCSampler(target, dim=gp.n_hyperparameters)
    """

    def __init__(self, surrogate: SurrogateModel):
        self.surrogate = surrogate

    @property
    def dim(self) -> int:
        return self.surrogate.n_hyperparameters

    def evaluate(self, theta: np.ndarray) -> float:
        """-log p(y | X, θ) - log p(θ); +inf where the kernel matrix is singular."""
        return self.surrogate.negative_log_posterior(theta)

    __call__ = evaluate
