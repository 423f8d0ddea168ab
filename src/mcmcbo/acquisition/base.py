"""
base.py
-------

Interfaces for acquisition functions and acquisition criteria.

Design
------
Two levels:

- AcquisitionFunction: any callable X -> scores (higher = better). Plain
  functions such as `expected_improvement` are used through it, and it is
  what the `optimize_acqf*` search utilities consume.
- Criterion: a stateful object bound to one surrogate. This is what
  EnsemblePosterior owns, one per MCMC particle. Besides `evaluate(X)` it
  carries the rotation protocol used by portfolio criteria (GP-Hedge):

      initialize()              -> back to the first candidate strategy
      rotate() -> bool          -> next candidate; True when it wrapped around
      push_result(x, value)     -> feedback for the active candidate
      best_criterion()          -> (label, chosen point)
      requires_comparison()     -> whether the caller must run the rotation

  A single-strategy criterion has exactly one candidate: rotate() always
  wraps and requires_comparison() is False.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Callable, Protocol

import jax.numpy as jnp
import numpy as np

from mcmcbo.utils.rng import numpy_generator

if TYPE_CHECKING:
    from mcmcbo.model import SurrogateModel
    from mcmcbo.posterior import PredictivePosterior


class AcquisitionFunction(Protocol):
    """
    Protocol for acquisition functions.

    Examples
    --------
    >>> acq_fn = lambda X: -gp.predict(X).variance
    >>> X_next, _ = optimize_acqf(acq_fn, bounds, q=1)

    >>> # An ensemble is an acquisition function too
    >>> X_next, _ = optimize_acqf(ensemble.evaluate_criteria, bounds, q=1)
    """

    def __call__(self, X: jnp.ndarray) -> jnp.ndarray:
        """
        Evaluate acquisition function at candidate points.

        Parameters
        ----------
        X : jnp.ndarray, shape (n_candidates, input_dim)
            Candidate query points

        Returns
        -------
        jnp.ndarray, shape (n_candidates,)
            Acquisition scores (higher = better)
        """
        ...


# Type alias for convenience
AcqFn = Callable[[jnp.ndarray], jnp.ndarray]


class Criterion(ABC):
    """
    Acquisition criterion bound to a surrogate.

    Parameters
    ----------
    surrogate : SurrogateModel
        Surrogate whose predictions are scored.
    maximize : bool, default=True
        Direction of the objective.
    key : jax.Array | int | None
        Randomness for criteria that need it (GP-Hedge).
    """

    name: str = "criterion"

    def __init__(self, surrogate: SurrogateModel, *, maximize: bool = True, key: Any = None):
        self.surrogate = surrogate
        self.maximize = maximize
        self._rng = numpy_generator(key)
        self._last_result: np.ndarray | None = None

    @abstractmethod
    def score(self, posterior: PredictivePosterior) -> jnp.ndarray:
        """Acquisition value from a predictive posterior (higher = better)."""
        ...

    def evaluate(self, query: jnp.ndarray) -> jnp.ndarray:
        """
        Score query point(s).

        Parameters
        ----------
        query : jnp.ndarray
            Shape (input_dim,) or (n, input_dim).

        Returns
        -------
        jnp.ndarray
            Scalar or shape (n,).
        """
        return self.score(self.surrogate.predict(query))

    __call__ = evaluate

    def best_observed(self) -> jnp.ndarray:
        """Incumbent value of the surrogate's observation history."""
        y = self.surrogate.train_targets
        if y.shape[0] == 0:
            raise RuntimeError(f"{self.name} needs at least one observation")
        return jnp.max(y) if self.maximize else jnp.min(y)

    # ------------------------------------------------------------------
    # Rotation protocol (single candidate)
    # ------------------------------------------------------------------

    def requires_comparison(self) -> bool:
        return False

    def initialize(self) -> None:
        self._last_result = None

    def rotate(self) -> bool:
        return True

    def push_result(self, point, value: float | None = None) -> None:
        self._last_result = np.array(point, dtype=float)

    def best_criterion(self) -> tuple[str, np.ndarray]:
        if self._last_result is None:
            raise RuntimeError("push_result() must be called before best_criterion()")
        return self.name, self._last_result.copy()
