"""
model
=====

Surrogate models and hyperparameter priors.

This subpackage provides:
- SurrogateModel : abstract interface consumed by EnsemblePosterior.
- GaussianProcess : exact GP with RBF / Matern 5/2 kernels.
- HyperPrior : Gaussian prior over log-hyperparameters.
- SURROGATES / KERNELS : registries for string-based selection.
"""

from __future__ import annotations

from mcmcbo.errors import ConfigurationError

from .base import SurrogateModel
from .gaussian_process import KERNELS, GaussianProcess
from .prior import HyperPrior

# Registry for string-based surrogate selection
SURROGATES = {
    "gp": GaussianProcess,
}


def create_surrogate(name: str, input_dim: int, data=None, **params) -> SurrogateModel:
    """
    Build a surrogate from its registry name.

    Parameters
    ----------
    name : str
        Key of SURROGATES (e.g. "gp").
    input_dim : int
        Dimensionality of the query space.
    data : Observations | None
        Shared observation history.
    **params
        Passed through to the surrogate constructor (kernel, noise, prior,
        hyperparameters, ...).
    """
    if name not in SURROGATES:
        available = ", ".join(SURROGATES.keys())
        raise ConfigurationError(f"Unknown surrogate: '{name}'. Available: {available}")
    return SURROGATES[name](input_dim, data, **params)


__all__ = [
    "SurrogateModel",
    "GaussianProcess",
    "HyperPrior",
    "KERNELS",
    "SURROGATES",
    "create_surrogate",
]
