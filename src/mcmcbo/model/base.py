"""
base.py
-------

Base class for surrogate models.

Provides:
- SurrogateModel.fit() --> factorise the model on the full observation history
- SurrogateModel.update(x, y) --> incorporate one new observation
- SurrogateModel.predict(X) --> predictive posterior at query points
- SurrogateModel.negative_log_posterior(theta) --> hyperparameter target density

Design
------
A surrogate never owns its data: it holds a reference to an Observations
instance shared by the whole ensemble, and reads it on fit / update. The
hyperparameter vector is fixed at construction (one surrogate per MCMC
particle); changing it means building a new surrogate.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

import jax.numpy as jnp
import numpy as np

from mcmcbo.data import Observations
from mcmcbo.model.prior import HyperPrior

if TYPE_CHECKING:
    from mcmcbo.posterior import PredictivePosterior


class SurrogateModel(ABC):
    """
    Abstract base class for probabilistic surrogates.

    Subclasses must implement:
    - n_hyperparameters --> length of the log-hyperparameter vector
    - fit() / update(x, y) / predict(X)
    - negative_log_likelihood(theta) --> -log p(y | X, theta)

    Parameters
    ----------
    input_dim : int
        Dimensionality of the query space.
    data : Observations | None
        Shared observation history. A private empty one is created if None.
    prior : HyperPrior | None
        Prior over log-hyperparameters. Defaults to HyperPrior().
    hyperparameters : array-like | None
        Log-hyperparameters. Defaults to the prior mean.
    """

    def __init__(
        self,
        input_dim: int,
        data: Observations | None = None,
        *,
        prior: HyperPrior | None = None,
        hyperparameters=None,
    ):
        if input_dim <= 0:
            raise ValueError(f"input_dim must be positive, got {input_dim}")
        self.input_dim = int(input_dim)
        self._data = data if data is not None else Observations(input_dim)
        if self._data.input_dim != self.input_dim:
            raise ValueError(
                f"data has input_dim={self._data.input_dim}, expected {self.input_dim}"
            )
        self.prior = prior or HyperPrior()
        if hyperparameters is None:
            theta = self.prior.initial(self.n_hyperparameters)
        else:
            theta = jnp.asarray(hyperparameters, dtype=float).reshape(-1)
            if theta.shape[0] != self.n_hyperparameters:
                raise ValueError(
                    f"expected {self.n_hyperparameters} hyperparameters, got {theta.shape[0]}"
                )
        self._theta = theta

    # ------------------------------------------------------------------
    # Abstract methods (must be implemented by subclasses)
    # ------------------------------------------------------------------

    @property
    @abstractmethod
    def n_hyperparameters(self) -> int:
        """Length of the log-hyperparameter vector."""
        ...

    @abstractmethod
    def fit(self) -> SurrogateModel:
        """Fit on the complete observation history. Returns self."""
        ...

    @abstractmethod
    def update(self, x, y: float) -> SurrogateModel:
        """
        Incorporate one observation that was just appended to the shared data.

        Parameters
        ----------
        x : array-like, shape (input_dim,)
            Newest query point.
        y : float
            Its observed value.
        """
        ...

    @abstractmethod
    def predict(self, X: jnp.ndarray) -> PredictivePosterior:
        """
        Predictive posterior at query points.

        Parameters
        ----------
        X : jnp.ndarray
            Shape (input_dim,) for one point or (n, input_dim) for a batch.
        """
        ...

    @abstractmethod
    def negative_log_likelihood(self, theta: jnp.ndarray) -> jnp.ndarray:
        """-log p(y | X, theta) on the current observation history."""
        ...

    # ------------------------------------------------------------------
    # Shared API
    # ------------------------------------------------------------------

    @property
    def data(self) -> Observations:
        """Shared observation history."""
        return self._data

    @property
    def hyperparameters(self) -> np.ndarray:
        """Log-hyperparameters of this surrogate (copy)."""
        return np.array(self._theta)

    @property
    def train_targets(self) -> jnp.ndarray:
        """Observed values of the history, shape (n,)."""
        return self._data.to_jax()[1]

    def negative_log_posterior(self, theta) -> float:
        """
        Negative log of the unnormalised hyperparameter posterior.

        -log p(y | X, theta) - log p(theta). This is the density the MCMC
        sampler explores; non-finite values mean zero probability.
        """
        theta = jnp.asarray(theta, dtype=float)
        nll = self.negative_log_likelihood(theta)
        return float(nll - self.prior.log_prob(theta))
