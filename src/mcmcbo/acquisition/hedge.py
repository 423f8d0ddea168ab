"""
hedge.py
--------

GP-Hedge: a portfolio of acquisition strategies chosen by a Hedge bandit.

Each round the caller maximises every candidate strategy in turn
(initialize -> evaluate/optimise -> push_result -> rotate, until rotate()
wraps), then asks best_criterion() which proposal to evaluate. The bandit
rewards each strategy with the surrogate's predicted value at its own
proposal and favours strategies with large cumulative reward.

Inside an EnsemblePosterior every particle owns a GPHedge, and all of them
rotate in lock-step, but only the canonical one receives push_result: the
bandit state describes ensemble-level performance, so there is one feedback
stream, and its reward is the ensemble-averaged predicted value.

References
----------
Hoffman, M., Brochu, E., & de Freitas, N. (2011). Portfolio allocation for
Bayesian optimization. UAI.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

import numpy as np

from mcmcbo.acquisition.base import Criterion
from mcmcbo.acquisition.criteria import STRATEGIES
from mcmcbo.errors import ConfigurationError

logger = logging.getLogger(__name__)


class GPHedge(Criterion):
    """
    Hedge portfolio over single-strategy criteria.

    Parameters
    ----------
    surrogate : SurrogateModel
        Surrogate shared by every candidate strategy.
    criteria : sequence of str, default=("ei", "pi", "ucb")
        Names of the candidate strategies (keys of STRATEGIES).
    criteria_params : dict[str, dict] | None
        Extra constructor arguments per candidate name, e.g. {"ucb": {"beta": 3.0}}.
    eta : float | None
        Hedge learning rate. None picks min(10, sqrt(2 log k / max|g|)) from
        the current (centred) gains.
    maximize : bool, default=True
        Direction of the objective.
    key : jax.Array | int | None
        Randomness for the bandit draw.
    """

    name = "hedge"

    def __init__(
        self,
        surrogate,
        *,
        criteria: Sequence[str] = ("ei", "pi", "ucb"),
        criteria_params: dict[str, dict] | None = None,
        eta: float | None = None,
        maximize: bool = True,
        key: Any = None,
    ):
        super().__init__(surrogate, maximize=maximize, key=key)
        if len(criteria) == 0:
            raise ConfigurationError("GPHedge needs at least one candidate criterion")
        unknown = [c for c in criteria if c not in STRATEGIES]
        if unknown:
            available = ", ".join(STRATEGIES.keys())
            raise ConfigurationError(
                f"Unknown hedge candidates: {unknown}. Available: {available}"
            )
        if eta is not None and eta <= 0.0:
            raise ConfigurationError(f"eta must be positive, got {eta}")

        params = criteria_params or {}
        self.candidates: list[Criterion] = [
            STRATEGIES[c](surrogate, maximize=maximize, **params.get(c, {}))
            for c in criteria
        ]
        self.eta = eta
        self.gains = np.zeros(len(self.candidates))
        self.last_choice: int | None = None
        self._index = 0
        self._rewards = np.full(len(self.candidates), np.nan)
        self._proposals: list[np.ndarray | None] = [None] * len(self.candidates)

    @property
    def current(self) -> Criterion:
        """Active candidate strategy."""
        return self.candidates[self._index]

    @property
    def index(self) -> int:
        return self._index

    def score(self, posterior):
        return self.current.score(posterior)

    # ------------------------------------------------------------------
    # Rotation protocol
    # ------------------------------------------------------------------

    def requires_comparison(self) -> bool:
        return True

    def initialize(self) -> None:
        self._index = 0
        self._rewards[:] = np.nan
        self._proposals = [None] * len(self.candidates)
        for candidate in self.candidates:
            candidate.initialize()

    def rotate(self) -> bool:
        self._index += 1
        if self._index >= len(self.candidates):
            self._index = 0
            return True
        return False

    def push_result(self, point, value: float | None = None) -> None:
        """
        Record the active strategy's proposal and its reward.

        Parameters
        ----------
        point : array-like, shape (input_dim,)
            Proposal of the active strategy.
        value : float | None
            Predicted objective value at `point`. None uses this criterion's
            own surrogate; an ensemble passes its averaged prediction.
        """
        point = np.array(point, dtype=float)
        if value is None:
            value = float(np.asarray(self.surrogate.predict(point).mean))
        self._rewards[self._index] = value if self.maximize else -value
        self._proposals[self._index] = point
        self.current.push_result(point)

    def probabilities(self) -> np.ndarray:
        """Softmax of the cumulative gains with the current learning rate."""
        centred = self.gains - np.mean(self.gains)
        eta = self.eta
        if eta is None:
            max_g = float(np.max(np.abs(centred)))
            k = len(self.candidates)
            eta = 10.0 if max_g == 0.0 else min(10.0, np.sqrt(2.0 * np.log(max(k, 2)) / max_g))
        logits = eta * (centred - np.max(centred))
        p = np.exp(logits)
        return p / np.sum(p)

    def best_criterion(self) -> tuple[str, np.ndarray]:
        """
        Draw the winning strategy of this round and update the gains.

        Raises
        ------
        RuntimeError
            If some candidate has no proposal yet in this round.
        """
        missing = [c.name for c, p in zip(self.candidates, self._proposals) if p is None]
        if missing:
            raise RuntimeError(
                f"push_result() missing for candidates {missing}; run a full rotation first"
            )
        probs = self.probabilities()
        self.gains = self.gains + self._rewards
        choice = int(self._rng.choice(len(self.candidates), p=probs))
        self.last_choice = choice
        logger.debug(
            "hedge probabilities %s, rewards %s -> %s",
            np.round(probs, 4),
            np.round(self._rewards, 4),
            self.candidates[choice].name,
        )
        return self.candidates[choice].name, self._proposals[choice].copy()
