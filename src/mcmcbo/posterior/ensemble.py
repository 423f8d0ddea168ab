"""
ensemble.py
-----------

Fully-Bayesian surrogate: an ensemble of (particle, surrogate, criterion)
members whose hyperparameters are MCMC samples.

Instead of one surrogate at a point estimate of its hyperparameters, the
ensemble owns `n_particles` surrogates, one per draw from
p(θ | data), each with its own criterion. Callers see a single surrogate /
criterion interface:

- evaluate_criteria(X) averages every member's criterion, a Monte Carlo
  estimate of the hyperparameter-marginalized acquisition value.
- get_prediction(X) uses the canonical member only (a representative
  sample, not a mixture).
- Criterion rotation (GP-Hedge) runs on every member in lock-step, but only
  the canonical member receives feedback.

Design
------
- Members live in a tuple of frozen EnsembleMember records (the "arena").
  update_hyper_parameters() builds a complete new tuple and only then
  swaps it in, so a failed rebuild leaves the previous ensemble intact.
- The canonical member is members[0], exposed as `canonical`.
- All surrogates share one Observations instance. A separate "walker"
  surrogate defines the sampler's target density on that same history.
- Any member error aborts the ensemble call as MemberFailure(index, ...).

Connections
-----------
- MCMCSampler (inference) draws the particles from HyperparameterPosterior.
- SURROGATES / CRITERIA registries build members from EnsembleConfig names.
- evaluate_criteria is a batch acquisition function for optimize_acqf*.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Sequence

import numpy as np

from mcmcbo.data import Observations
from mcmcbo.errors import ConfigurationError, MemberFailure
from mcmcbo.utils.rng import as_key, split

if TYPE_CHECKING:
    from mcmcbo.acquisition import Criterion
    from mcmcbo.inference import MCMCSampler
    from mcmcbo.model import SurrogateModel
    from mcmcbo.posterior.predictive_posterior import PredictivePosterior

logger = logging.getLogger(__name__)


@dataclass
class EnsembleConfig:
    """
    Configuration of an EnsemblePosterior.

    Parameters
    ----------
    n_particles : int, default=10
        Number of ensemble members (MCMC particles).
    n_burn_out : int, default=300
        Discarded sweeps per hyperparameter update.
    algorithm : str, default="slice"
        Key of MCMC_ALGORITHMS.
    step_out : bool, default=True
        Doubling step-out in the slice sampler.
    sigma : float | Sequence[float], default=6.0
        Initial slice width per hyperparameter.
    surrogate : str, default="gp"
        Key of SURROGATES.
    surrogate_params : dict
        Passed through to the surrogate constructor (kernel, noise, prior, ...).
    criterion : str, default="ei"
        Key of CRITERIA.
    criterion_params : dict
        Passed through to the criterion constructor (maximize, beta, ...).
    n_workers : int, default=1
        Threads for fit_surrogate_model / update_surrogate_model.
    """

    n_particles: int = 10
    n_burn_out: int = 300
    algorithm: str = "slice"
    step_out: bool = True
    sigma: float | Sequence[float] = 6.0
    surrogate: str = "gp"
    surrogate_params: dict = field(default_factory=dict)
    criterion: str = "ei"
    criterion_params: dict = field(default_factory=dict)
    n_workers: int = 1

    def __post_init__(self):
        from mcmcbo.acquisition import CRITERIA
        from mcmcbo.inference import MCMC_ALGORITHMS
        from mcmcbo.model import SURROGATES

        if self.n_particles < 1:
            raise ConfigurationError(f"n_particles must be at least 1, got {self.n_particles}")
        if self.n_burn_out < 0:
            raise ConfigurationError(f"n_burn_out must be non-negative, got {self.n_burn_out}")
        if self.n_workers < 1:
            raise ConfigurationError(f"n_workers must be at least 1, got {self.n_workers}")
        for kind, name, registry in (
            ("MCMC algorithm", self.algorithm, MCMC_ALGORITHMS),
            ("surrogate", self.surrogate, SURROGATES),
            ("criterion", self.criterion, CRITERIA),
        ):
            if name not in registry:
                available = ", ".join(registry.keys())
                raise ConfigurationError(f"Unknown {kind}: '{name}'. Available: {available}")
        if np.any(np.asarray(self.sigma, dtype=float) <= 0.0):
            raise ConfigurationError(f"sigma must be positive, got {self.sigma}")


@dataclass(frozen=True)
class EnsembleMember:
    """One hyperparameter particle with the surrogate and criterion built on it."""

    particle: np.ndarray
    surrogate: SurrogateModel
    criterion: Criterion


class EnsemblePosterior:
    """
    Ensemble of surrogates over posterior hyperparameter samples.

    Parameters
    ----------
    input_dim : int
        Dimensionality of the query space.
    config : EnsembleConfig | None
        Ensemble configuration; defaults to EnsembleConfig().
    key : jax.Array | int | None
        PRNG key or integer seed for the sampler and the criteria.

    Examples
    --------
    >>> ens = EnsemblePosterior(2, EnsembleConfig(n_particles=5), key=jr.PRNGKey(0))
    >>> ens.set_samples(X, y)
    >>> ens.update_hyper_parameters()
    >>> X_next, _ = optimize_acqf(ens.evaluate_criteria, bounds, q=1)
    >>> ens.add_sample(X_next[0], f(X_next[0]))
    >>> ens.update_surrogate_model()
    """

    def __init__(self, input_dim: int, config: EnsembleConfig | None = None, key: Any = None):
        from mcmcbo.inference import MCMCSampler
        from mcmcbo.model import create_surrogate
        from mcmcbo.posterior.parameter_posterior import HyperparameterPosterior

        if input_dim <= 0:
            raise ConfigurationError(f"input_dim must be positive, got {input_dim}")
        self.input_dim = int(input_dim)
        self.config = config or EnsembleConfig()
        self._data = Observations(self.input_dim)

        sampler_key, self._criterion_key = split(as_key(key))

        # defines the hyperparameter target, never used for predictions
        self._walker = create_surrogate(
            self.config.surrogate, self.input_dim, self._data, **self.config.surrogate_params
        )
        target = HyperparameterPosterior(self._walker)
        self._sampler = MCMCSampler(
            target,
            target.dim,
            sampler_key,
            sigma=self.config.sigma,
            step_out=self.config.step_out,
            n_particles=self.config.n_particles,
            n_burn_out=self.config.n_burn_out,
        )
        self._sampler.set_algorithm(self.config.algorithm)

        initial = np.tile(self._walker.hyperparameters, (self.config.n_particles, 1))
        self._members: tuple[EnsembleMember, ...] = self._build_members(initial, "construction")

    def __copy__(self):
        raise TypeError("EnsemblePosterior owns its members and cannot be copied")

    def __deepcopy__(self, memo):
        raise TypeError("EnsemblePosterior owns its members and cannot be copied")

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def data(self) -> Observations:
        """Observation history shared by every member."""
        return self._data

    @property
    def members(self) -> tuple[EnsembleMember, ...]:
        return self._members

    @property
    def canonical(self) -> EnsembleMember:
        """Member whose criterion state is authoritative for the ensemble."""
        return self._members[0]

    @property
    def n_particles(self) -> int:
        return len(self._members)

    @property
    def particles(self) -> np.ndarray:
        """Hyperparameters of the current members, shape (n_particles, n_hyperparameters)."""
        return np.stack([m.particle for m in self._members])

    @property
    def sampler(self) -> MCMCSampler:
        return self._sampler

    # ------------------------------------------------------------------
    # Observations
    # ------------------------------------------------------------------

    def add_sample(self, x, y: float) -> None:
        """Append one observation to the shared history (surrogates are not refit)."""
        self._data.add_sample(x, y)

    def set_samples(self, X, y) -> None:
        """Replace the shared history (surrogates are not refit)."""
        self._data.replace(Observations.from_arrays(X, y))

    # ------------------------------------------------------------------
    # Hyperparameters and surrogates
    # ------------------------------------------------------------------

    def update_hyper_parameters(self) -> None:
        """
        Resample hyperparameters and rebuild every member.

        The chain starts at the canonical member's hyperparameters. New
        surrogates are fit on the full history before the new members
        replace the old ones.

        Raises
        ------
        MemberFailure
            If building a member fails; the previous members stay in place.
        """
        start = self.canonical.surrogate.hyperparameters
        self._sampler.run(start)
        members = self._build_members(self._sampler.particles, "update_hyper_parameters")
        self._members = members
        logger.info(
            "rebuilt %d ensemble members on %d observations (%d step failures)",
            len(members),
            len(self._data),
            self._sampler.diagnostics()["n_step_failures"],
        )
        if logger.isEnabledFor(logging.DEBUG):
            self._sampler.log_particles()

    def fit_surrogate_model(self) -> None:
        """Fit every member's surrogate on the full history."""
        self._for_each_member("fit_surrogate_model", lambda m: m.surrogate.fit())

    def update_surrogate_model(self) -> None:
        """
        Feed the newest observation to every member's surrogate.

        Raises
        ------
        RuntimeError
            If there are no observations.
        MemberFailure
            If a surrogate update fails.
        """
        if len(self._data) == 0:
            raise RuntimeError("update_surrogate_model() needs at least one observation")
        x, y = self._data.last()
        self._for_each_member("update_surrogate_model", lambda m: m.surrogate.update(x, y))

    def get_prediction(self, query) -> PredictivePosterior:
        """Predictive distribution of the canonical surrogate."""
        return self.canonical.surrogate.predict(query)

    # ------------------------------------------------------------------
    # Criteria
    # ------------------------------------------------------------------

    def evaluate_criteria(self, query):
        """
        Average of every member's criterion at `query`.

        Parameters
        ----------
        query : array-like
            Shape (input_dim,) or (n, input_dim).

        Returns
        -------
        jnp.ndarray
            Scalar or shape (n,). Differentiable w.r.t. `query`.
        """
        total = 0.0
        for i, member in enumerate(self._members):
            try:
                total = total + member.criterion.evaluate(query)
            except Exception as exc:
                raise MemberFailure(i, "evaluate_criteria", exc) from exc
        return total / self.n_particles

    __call__ = evaluate_criteria

    def criteria_requires_comparison(self) -> bool:
        return self.canonical.criterion.requires_comparison()

    def set_first_criterium(self) -> None:
        """Reset every member's criterion to its first candidate."""
        self._for_each_member_sequential("set_first_criterium", lambda m: m.criterion.initialize())

    def set_next_criterium(self, prev_result) -> bool:
        """
        Give feedback for the active candidate and rotate to the next one.

        Parameters
        ----------
        prev_result : array-like, shape (input_dim,)
            Point proposed by the active candidate.

        Returns
        -------
        bool
            True when the rotation wrapped back to the first candidate.
        """
        point = np.asarray(prev_result, dtype=float).reshape(-1)
        if point.shape[0] != self.input_dim:
            raise ValueError(
                f"prev_result must have {self.input_dim} entries, got {point.shape[0]}"
            )
        means = self._for_each_member_sequential(
            "set_next_criterium", lambda m: np.asarray(m.surrogate.predict(point).mean)
        )
        try:
            self.canonical.criterion.push_result(point, float(np.mean(means)))
        except Exception as exc:
            raise MemberFailure(0, "set_next_criterium", exc) from exc
        wrapped = self._for_each_member_sequential(
            "set_next_criterium", lambda m: m.criterion.rotate()
        )
        return wrapped[0]

    def get_best_criteria(self, out: np.ndarray | None = None) -> tuple[str, np.ndarray]:
        """
        Label and point chosen by the canonical criterion.

        Parameters
        ----------
        out : np.ndarray | None
            Optional writable array of shape (input_dim,) that receives the
            point as well.
        """
        label, best = self.canonical.criterion.best_criterion()
        if out is not None:
            out[...] = np.reshape(best, out.shape)
        return label, best

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _build_members(self, particles: np.ndarray, operation: str) -> tuple[EnsembleMember, ...]:
        from mcmcbo.acquisition import create_criterion
        from mcmcbo.model import create_surrogate

        self._criterion_key, sub = split(self._criterion_key)
        keys = split(sub, particles.shape[0])
        members = []
        for i, theta in enumerate(particles):
            try:
                surrogate = create_surrogate(
                    self.config.surrogate,
                    self.input_dim,
                    self._data,
                    hyperparameters=theta,
                    **self.config.surrogate_params,
                )
                surrogate.fit()
                criterion = create_criterion(
                    self.config.criterion,
                    surrogate,
                    key=keys[i],
                    **self.config.criterion_params,
                )
            except Exception as exc:
                raise MemberFailure(i, operation, exc) from exc
            particle = np.array(theta, dtype=float)
            particle.flags.writeable = False
            members.append(EnsembleMember(particle, surrogate, criterion))
        return tuple(members)

    def _for_each_member(self, operation: str, fn: Callable[[EnsembleMember], Any]) -> list:
        if self.config.n_workers == 1 or self.n_particles == 1:
            return self._for_each_member_sequential(operation, fn)

        with ThreadPoolExecutor(max_workers=self.config.n_workers) as pool:
            futures = [pool.submit(fn, m) for m in self._members]
            # collected in index order, so the lowest failing index wins
            results = []
            for i, future in enumerate(futures):
                exc = future.exception()
                if exc is not None:
                    raise MemberFailure(i, operation, exc) from exc
                results.append(future.result())
        return results

    def _for_each_member_sequential(
        self, operation: str, fn: Callable[[EnsembleMember], Any]
    ) -> list:
        results = []
        for i, member in enumerate(self._members):
            try:
                results.append(fn(member))
            except Exception as exc:
                raise MemberFailure(i, operation, exc) from exc
        return results
