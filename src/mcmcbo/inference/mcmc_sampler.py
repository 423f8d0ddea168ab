"""
mcmc_sampler.py
---------------

Markov chain sampler over an arbitrary negative log density.

The sampler turns the point estimate of a quantity (ML / MAP
hyperparameters) into a posterior sample of it. It draws the sample of one
chain: a randomized restart, `n_burn_out` discarded sweeps, then one retained
particle per sweep.

Connections
-----------
- EnsemblePosterior runs one sampler on the hyperparameter target
  (HyperparameterPosterior) and builds one surrogate per particle.
- A sweep is delegated to the step function registered for the selected
  MCMCAlgorithm (slice_sampling.slice_sample for SLICE).
"""

from __future__ import annotations

import logging
from typing import Any

import numpy as np

from mcmcbo.errors import ConfigurationError
from mcmcbo.inference.base import MCMCAlgorithm, as_density
from mcmcbo.inference.slice_sampling import slice_sample
from mcmcbo.posterior.diagnostics import effective_sample_size
from mcmcbo.utils.rng import numpy_generator

logger = logging.getLogger(__name__)

# Registry for string-based algorithm selection
MCMC_ALGORITHMS = {
    "slice": MCMCAlgorithm.SLICE,
}

_STEP_FUNCTIONS = {
    MCMCAlgorithm.SLICE: slice_sample,
}

# Attempts at a randomized restart that lands inside the support
_MAX_JUMP_TRIES = 10


class MCMCSampler:
    """
    Slice-sampling Markov chain.

    Parameters
    ----------
    density : Density | callable
        Target as a NEGATIVE log density, point -> float. Non-finite values
        mean zero probability. Exceptions raised by it abort `run`.
    dim : int
        Dimension of the sampled space.
    key : jax.Array | int | None
        PRNG key or integer seed. The chain keeps one generator for its
        lifetime, so consecutive `run` calls give different particles.
    sigma : float | array-like, default=6.0
        Initial slice width per dimension; also the scale of the randomized
        restart.
    step_out : bool, default=True
        Use the doubling procedure to grow the slice interval.
    n_particles : int, default=10
        Retained sweeps per run.
    n_burn_out : int, default=100
        Discarded sweeps per run. Zero also disables the randomized restart.
    max_doublings : int, default=20
        Bound on doublings per coordinate update.
    max_shrinks : int, default=200
        Bound on shrinkage draws per coordinate update.

    Examples
    --------
    >>> sampler = MCMCSampler(lambda x: 0.5 * float(x @ x), dim=2, key=jr.PRNGKey(0))
    >>> x = np.zeros(2)
    >>> sampler.run(x)
    >>> sampler.get_particle(0)
    """

    def __init__(
        self,
        density: Any,
        dim: int,
        key: Any = None,
        *,
        sigma: Any = 6.0,
        step_out: bool = True,
        n_particles: int = 10,
        n_burn_out: int = 100,
        max_doublings: int = 20,
        max_shrinks: int = 200,
    ):
        if dim <= 0:
            raise ConfigurationError(f"dim must be positive, got {dim}")
        if max_doublings < 0 or max_shrinks < 1:
            raise ConfigurationError(
                f"invalid loop bounds: max_doublings={max_doublings}, max_shrinks={max_shrinks}"
            )
        self._density = as_density(density)
        self.dim = int(dim)
        self._rng = numpy_generator(key)
        self.step_out = bool(step_out)
        self.max_doublings = int(max_doublings)
        self.max_shrinks = int(max_shrinks)

        self.set_algorithm(MCMCAlgorithm.SLICE)
        self.set_sigma(sigma)
        self.set_n_particles(n_particles)
        self.set_n_burn_out(n_burn_out)

        self._particles: list[np.ndarray] = []
        self._n_step_failures = 0
        self._n_evaluations = 0

    def __copy__(self):
        raise TypeError("MCMCSampler owns a random stream and cannot be copied")

    def __deepcopy__(self, memo):
        raise TypeError("MCMCSampler owns a random stream and cannot be copied")

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def set_algorithm(self, algorithm: MCMCAlgorithm | str) -> None:
        """Select the sampling method (`MCMCAlgorithm.SLICE` or "slice")."""
        if isinstance(algorithm, str):
            if algorithm not in MCMC_ALGORITHMS:
                available = ", ".join(MCMC_ALGORITHMS.keys())
                raise ConfigurationError(
                    f"Unknown MCMC algorithm: '{algorithm}'. Available: {available}"
                )
            algorithm = MCMC_ALGORITHMS[algorithm]
        if algorithm not in _STEP_FUNCTIONS:
            raise ConfigurationError(f"Unsupported MCMC algorithm: {algorithm!r}")
        self.algorithm = algorithm

    def set_n_particles(self, n_particles: int) -> None:
        if n_particles < 1:
            raise ConfigurationError(f"n_particles must be at least 1, got {n_particles}")
        self.n_particles = int(n_particles)

    def set_n_burn_out(self, n_burn_out: int) -> None:
        if n_burn_out < 0:
            raise ConfigurationError(f"n_burn_out must be non-negative, got {n_burn_out}")
        self.n_burn_out = int(n_burn_out)

    def set_sigma(self, sigma) -> None:
        """
        Set the initial slice width.

        Parameters
        ----------
        sigma : float | array-like, shape (dim,)
            One positive width for every dimension, or one per dimension.
        """
        sigma = np.asarray(sigma, dtype=float)
        if sigma.ndim == 0:
            sigma = np.full(self.dim, float(sigma))
        if sigma.shape != (self.dim,):
            raise ConfigurationError(
                f"sigma must be a scalar or have shape ({self.dim},), got {sigma.shape}"
            )
        if not np.all(np.isfinite(sigma)) or np.any(sigma <= 0.0):
            raise ConfigurationError(f"sigma must be positive and finite, got {sigma}")
        self.sigma = sigma

    # ------------------------------------------------------------------
    # Sampling
    # ------------------------------------------------------------------

    def run(self, x) -> np.ndarray:
        """
        Draw a new set of particles starting from `x`.

        Parameters
        ----------
        x : array-like, shape (dim,)
            Starting point. If it is a writable float numpy array, the final
            chain position is also written into it.

        Returns
        -------
        np.ndarray, shape (dim,)
            Final chain position (equal to the last particle).
        """
        x0 = np.array(x, dtype=float).reshape(-1)
        if x0.shape[0] != self.dim:
            raise ValueError(f"x must have {self.dim} entries, got {x0.shape[0]}")

        step = _STEP_FUNCTIONS[self.algorithm]
        failures = 0
        self._n_evaluations = 0
        current = self._jump(x0) if self.n_burn_out > 0 else x0

        for _ in range(self.n_burn_out):
            current, n_failed = self._sweep(step, current)
            failures += n_failed

        particles = []
        for _ in range(self.n_particles):
            current, n_failed = self._sweep(step, current)
            failures += n_failed
            particle = current.copy()
            particle.flags.writeable = False
            particles.append(particle)

        self._particles = particles
        self._n_step_failures = failures
        if failures:
            logger.warning(
                "%d slice step failures in %d sweeps",
                failures,
                self.n_burn_out + self.n_particles,
            )

        if (
            isinstance(x, np.ndarray)
            and x.flags.writeable
            and np.issubdtype(x.dtype, np.floating)
            and x.size == self.dim
        ):
            x[...] = current.reshape(x.shape)
        return current.copy()

    def _sweep(self, step, current: np.ndarray) -> tuple[np.ndarray, int]:
        return step(
            current,
            self._log_density,
            self.sigma,
            self._rng,
            step_out=self.step_out,
            max_doublings=self.max_doublings,
            max_shrinks=self.max_shrinks,
        )

    def _jump(self, x: np.ndarray) -> np.ndarray:
        """Randomized restart x + sigma * N(0, 1), kept inside the support."""
        for _ in range(_MAX_JUMP_TRIES):
            candidate = x + self.sigma * self._rng.standard_normal(self.dim)
            if np.isfinite(self._log_density(candidate)):
                return candidate
        logger.warning(
            "randomized restart left the support %d times, starting from the given point",
            _MAX_JUMP_TRIES,
        )
        return x

    def _log_density(self, point: np.ndarray) -> float:
        self._n_evaluations += 1
        value = float(self._density(point))
        if not np.isfinite(value):
            return -np.inf
        return -value

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def get_particle(self, i: int) -> np.ndarray:
        """
        Return particle `i` of the last run (read-only array).

        Raises
        ------
        IndexError
            If `i` is negative, or not below the number of stored particles
            (every index before the first run).
        """
        if not 0 <= i < len(self._particles):
            raise IndexError(
                f"particle index {i} out of range for {len(self._particles)} particles"
            )
        return self._particles[i]

    @property
    def particles(self) -> np.ndarray:
        """Particles of the last run, shape (n, dim), in chain order (read-only)."""
        if not self._particles:
            out = np.zeros((0, self.dim))
        else:
            out = np.stack(self._particles)
        out.flags.writeable = False
        return out

    def log_particles(self) -> np.ndarray:
        """
        Log every particle with its log density at DEBUG level.

        Returns
        -------
        np.ndarray, shape (n,)
            Log density (negated target) of each particle.
        """
        values = np.array([-float(self._density(p)) for p in self._particles])
        for i, (p, v) in enumerate(zip(self._particles, values)):
            logger.debug("particle %d: %s log-likelihood %.6g", i, np.array2string(p), v)
        return values

    def diagnostics(self) -> dict:
        """Summary of the last run."""
        particles = self.particles
        if particles.shape[0] > 1:
            ess = np.asarray(effective_sample_size(particles))
        else:
            ess = np.full(self.dim, float(particles.shape[0]))
        return {
            "n_step_failures": self._n_step_failures,
            "n_density_evaluations": self._n_evaluations,
            "n_particles": self.n_particles,
            "n_burn_out": self.n_burn_out,
            "ess": ess,
        }
