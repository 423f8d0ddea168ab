"""
criteria.py
-----------

Single-strategy criteria: stateful wrappers that bind the functional
acquisition functions to one surrogate.

- ExpectedImprovement : "ei"
- LogExpectedImprovement : "log_ei"
- ProbabilityOfImprovement : "pi"
- ConfidenceBound : "ucb"

The incumbent (best_f) is read from the surrogate's observation history on
every evaluation, so a criterion stays valid after the surrogate is updated.
"""

from __future__ import annotations

from mcmcbo.acquisition.base import Criterion
from mcmcbo.acquisition.functions import (
    expected_improvement,
    log_expected_improvement,
    probability_of_improvement,
    upper_confidence_bound,
)


class ExpectedImprovement(Criterion):
    name = "ei"

    def score(self, posterior):
        return expected_improvement(posterior, self.best_observed(), maximize=self.maximize)


class LogExpectedImprovement(Criterion):
    name = "log_ei"

    def score(self, posterior):
        return log_expected_improvement(
            posterior, self.best_observed(), maximize=self.maximize
        )


class ProbabilityOfImprovement(Criterion):
    """PI with an optional improvement margin ``xi``."""

    name = "pi"

    def __init__(self, surrogate, *, xi: float = 0.0, **kwargs):
        super().__init__(surrogate, **kwargs)
        self.xi = xi

    def score(self, posterior):
        return probability_of_improvement(
            posterior, self.best_observed(), maximize=self.maximize, xi=self.xi
        )


class ConfidenceBound(Criterion):
    """
    Optimistic confidence bound.

    Upper bound when maximizing, negated lower bound when minimizing. Does
    not need an incumbent, so it also works before any observation.
    """

    name = "ucb"

    def __init__(self, surrogate, *, beta: float = 2.0, **kwargs):
        super().__init__(surrogate, **kwargs)
        if beta < 0.0:
            raise ValueError(f"beta must be non-negative, got {beta}")
        self.beta = beta

    def score(self, posterior):
        return upper_confidence_bound(posterior, beta=self.beta, maximize=self.maximize)


# Registry of single-strategy criteria (GP-Hedge candidates)
STRATEGIES = {
    cls.name: cls
    for cls in (
        ExpectedImprovement,
        LogExpectedImprovement,
        ProbabilityOfImprovement,
        ConfidenceBound,
    )
}
