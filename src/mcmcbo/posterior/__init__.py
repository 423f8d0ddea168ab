"""
posterior
=========

Posterior representations and diagnostics.

This subpackage provides:
- EnsemblePosterior: fully-Bayesian surrogate, one (surrogate, criterion)
  member per MCMC sample of the hyperparameters
- EnsembleConfig / EnsembleMember: its configuration and member records
- HyperparameterPosterior: target density p(θ | data) for the sampler
- PredictivePosterior / GaussianPredictive: p(f(X*) | data) at query points
- diagnostics: tools for checking particle quality (ESS, R-hat)

Two-tier design
---------------
- HyperparameterPosterior: represents p(θ | data), sampled by MCMCSampler
- PredictivePosterior: represents p(f(X*) | data) for acquisition criteria
"""

from .diagnostics import effective_sample_size, rhat
from .ensemble import EnsembleConfig, EnsembleMember, EnsemblePosterior
from .parameter_posterior import HyperparameterPosterior
from .predictive_posterior import GaussianPredictive, PredictivePosterior

__all__ = [
    # Ensemble
    "EnsemblePosterior",
    "EnsembleConfig",
    "EnsembleMember",
    # Hyperparameter target
    "HyperparameterPosterior",
    # Predictive posterior
    "PredictivePosterior",
    "GaussianPredictive",
    # Diagnostics
    "effective_sample_size",
    "rhat",
]
