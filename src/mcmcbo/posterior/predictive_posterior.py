"""
predictive_posterior.py
----------------------

Predictive posterior distributions p(f(X*) | data) at query points.

This module defines posteriors over **predictions** (not hyperparameters),
used by acquisition criteria and returned by `EnsemblePosterior.get_prediction`.

Design
------
- PredictivePosterior: protocol (mean, variance) so any surrogate can plug in.
- GaussianPredictive: marginal Gaussian returned by the GP surrogate.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

import jax.numpy as jnp


@runtime_checkable
class PredictivePosterior(Protocol):
    """
    Protocol for predictive distributions p(f(X*) | data) at query points.

    Returned by SurrogateModel.predict(X) for use in acquisition criteria.
    """

    @property
    def mean(self) -> jnp.ndarray:
        """
        Posterior predictive mean E[f(X*) | data].

        Returns
        -------
        jnp.ndarray
            Shape (n_test,) for a batch, shape () for a single point.
        """
        ...

    @property
    def variance(self) -> jnp.ndarray:
        """
        Posterior predictive marginal variances Var[f(X*) | data].

        Returns
        -------
        jnp.ndarray
            Same shape as `mean`.
        """
        ...


@dataclass(frozen=True)
class GaussianPredictive:
    """
    Independent Gaussian marginals at each query point.

    Parameters
    ----------
    mean : jnp.ndarray
        Predictive means.
    variance : jnp.ndarray
        Predictive variances (non-negative).
    """

    mean: jnp.ndarray
    variance: jnp.ndarray
