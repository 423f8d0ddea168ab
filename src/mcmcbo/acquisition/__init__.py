"""
acquisition
===========

Acquisition functions and criteria for Bayesian optimization.

This module provides:
- Functional acquisition functions on a predictive posterior (mean, variance):
  expected_improvement, log_expected_improvement, probability_of_improvement,
  upper_confidence_bound, lower_confidence_bound
- Criterion classes bound to one surrogate, as owned by EnsemblePosterior:
  ExpectedImprovement, LogExpectedImprovement, ProbabilityOfImprovement,
  ConfidenceBound, and the GPHedge portfolio
- CRITERIA registry and create_criterion() for string-based selection
- optimize_acqf*(): search utilities

Examples
--------
>>> # Functional use
>>> posterior = gp.predict(candidates)
>>> ei = expected_improvement(posterior, best_f=0.5, maximize=False)

>>> # Criterion bound to a surrogate
>>> crit = create_criterion("hedge", gp, criteria=("ei", "ucb"), key=jr.PRNGKey(0))
>>> crit.evaluate(candidates)
"""

from __future__ import annotations

from typing import Any

from mcmcbo.acquisition.base import AcquisitionFunction, Criterion
from mcmcbo.acquisition.criteria import (
    STRATEGIES,
    ConfidenceBound,
    ExpectedImprovement,
    LogExpectedImprovement,
    ProbabilityOfImprovement,
)
from mcmcbo.acquisition.functions import (
    expected_improvement,
    log_expected_improvement,
    lower_confidence_bound,
    probability_of_improvement,
    upper_confidence_bound,
)
from mcmcbo.acquisition.hedge import GPHedge
from mcmcbo.acquisition.optimize import (
    optimize_acqf,
    optimize_acqf_discrete,
    optimize_acqf_random,
)
from mcmcbo.errors import ConfigurationError

# Registry for string-based criterion selection
CRITERIA = {**STRATEGIES, GPHedge.name: GPHedge}


def create_criterion(name: str, surrogate, *, key: Any = None, **params) -> Criterion:
    """
    Build a criterion from its registry name.

    Parameters
    ----------
    name : str
        Key of CRITERIA ("ei", "log_ei", "pi", "ucb", "hedge").
    surrogate : SurrogateModel
        Surrogate the criterion scores.
    key : jax.Array | int | None
        Randomness (used by "hedge").
    **params
        Passed through to the criterion constructor.
    """
    if name not in CRITERIA:
        available = ", ".join(CRITERIA.keys())
        raise ConfigurationError(f"Unknown criterion: '{name}'. Available: {available}")
    return CRITERIA[name](surrogate, key=key, **params)


__all__ = [
    "AcquisitionFunction",
    "Criterion",
    "ExpectedImprovement",
    "LogExpectedImprovement",
    "ProbabilityOfImprovement",
    "ConfidenceBound",
    "GPHedge",
    "CRITERIA",
    "create_criterion",
    "expected_improvement",
    "log_expected_improvement",
    "probability_of_improvement",
    "upper_confidence_bound",
    "lower_confidence_bound",
    "optimize_acqf",
    "optimize_acqf_discrete",
    "optimize_acqf_random",
]
