"""
gaussian_process.py
-------------------

Gaussian process surrogate with fixed log-hyperparameters.

Hyperparameters (log space):
    theta = [log l_1, ..., log l_D, log s]   (ard=True)
    theta = [log l, log s]                   (ard=False)
where l are lengthscales and s the signal standard deviation. Observation
noise is a fixed variance, not a hyperparameter.

The mean function is the constant empirical mean of the observed values.

Connections
-----------
- EnsemblePosterior builds one GaussianProcess per MCMC particle.
- negative_log_posterior(theta) is the target density of the sampler.
- predict(X) is differentiable w.r.t. X (pure jax.numpy), so criteria built
  on it work with gradient-based acquisition search.
"""

from __future__ import annotations

import logging
from functools import partial

import jax
import jax.numpy as jnp
import numpy as np
from jax.scipy.linalg import cho_solve, solve_triangular

from mcmcbo.data import Observations
from mcmcbo.errors import ConfigurationError
from mcmcbo.model.base import SurrogateModel
from mcmcbo.model.prior import HyperPrior
from mcmcbo.posterior.predictive_posterior import GaussianPredictive
from mcmcbo.utils.math import matern52_kernel, rbf_kernel

logger = logging.getLogger(__name__)

# Registry for string-based kernel selection
KERNELS = {
    "rbf": rbf_kernel,
    "matern52": matern52_kernel,
}


def _unpack(theta: jnp.ndarray) -> tuple[jnp.ndarray, jnp.ndarray]:
    """Split log-hyperparameters into (lengthscale(s), signal variance)."""
    return jnp.exp(theta[:-1]), jnp.exp(2.0 * theta[-1])


@partial(jax.jit, static_argnames=("kernel",))
def _negative_log_marginal_likelihood(theta, X, y, noise, kernel):
    kernel_fn = KERNELS[kernel]
    lengthscale, variance = _unpack(theta)
    n = X.shape[0]
    K = kernel_fn(X, X, lengthscale, variance) + noise * jnp.eye(n)
    L = jnp.linalg.cholesky(K)
    r = y - jnp.mean(y)
    alpha = cho_solve((L, True), r)
    nll = (
        0.5 * jnp.dot(r, alpha)
        + jnp.sum(jnp.log(jnp.diag(L)))
        + 0.5 * n * jnp.log(2.0 * jnp.pi)
    )
    # failed factorisations come back as nan
    return jnp.where(jnp.isfinite(nll), nll, jnp.inf)


class GaussianProcess(SurrogateModel):
    """
    Exact GP regression on the shared observation history.

    Parameters
    ----------
    input_dim : int
        Dimensionality of the query space.
    data : Observations | None
        Shared observation history.
    kernel : {"rbf", "matern52"}, default="rbf"
        Covariance function.
    ard : bool, default=True
        One lengthscale per input dimension when True, a single one otherwise.
    noise : float, default=1e-6
        Observation noise variance (also acts as jitter).
    prior : HyperPrior | None
        Prior over log-hyperparameters.
    hyperparameters : array-like | None
        Log-hyperparameters; defaults to the prior mean.

    Examples
    --------
    >>> data = Observations.from_arrays(X, y)
    >>> gp = GaussianProcess(input_dim=2, data=data).fit()
    >>> pred = gp.predict(jnp.array([[0.5, 0.5]]))
    >>> pred.mean, pred.variance
    """

    def __init__(
        self,
        input_dim: int,
        data: Observations | None = None,
        *,
        kernel: str = "rbf",
        ard: bool = True,
        noise: float = 1e-6,
        prior: HyperPrior | None = None,
        hyperparameters=None,
    ):
        if kernel not in KERNELS:
            available = ", ".join(KERNELS.keys())
            raise ConfigurationError(f"Unknown kernel: '{kernel}'. Available: {available}")
        if noise <= 0.0:
            raise ConfigurationError(f"noise must be positive, got {noise}")
        self.kernel = kernel
        self.ard = ard
        self.noise = float(noise)
        super().__init__(input_dim, data, prior=prior, hyperparameters=hyperparameters)

        # Factorisation state, set by fit()/update()
        self._n_fitted: int | None = None
        self._revision: int | None = None
        self._X: jnp.ndarray | None = None
        self._L: jnp.ndarray | None = None
        self._alpha: jnp.ndarray | None = None
        self._mean_const = jnp.asarray(0.0)

    @property
    def n_hyperparameters(self) -> int:
        return self.input_dim + 1 if self.ard else 2

    @property
    def lengthscale(self) -> jnp.ndarray:
        return _unpack(self._theta)[0]

    @property
    def signal_variance(self) -> jnp.ndarray:
        return _unpack(self._theta)[1]

    def _kernel(self, x1: jnp.ndarray, x2: jnp.ndarray) -> jnp.ndarray:
        lengthscale, variance = _unpack(self._theta)
        return KERNELS[self.kernel](x1, x2, lengthscale, variance)

    # ------------------------------------------------------------------
    # SurrogateModel API
    # ------------------------------------------------------------------

    def fit(self) -> GaussianProcess:
        """
        Factorise the kernel matrix of the full observation history.

        Raises
        ------
        numpy.linalg.LinAlgError
            If the kernel matrix is not numerically positive definite.
        """
        X, y = self._data.to_jax()
        n = X.shape[0]
        if n == 0:
            # prior only
            self._X, self._L, self._alpha = X, jnp.zeros((0, 0)), jnp.zeros((0,))
            self._mean_const = jnp.asarray(0.0)
            self._n_fitted = 0
            self._revision = self._data.revision
            return self

        K = self._kernel(X, X) + self.noise * jnp.eye(n)
        L = jnp.linalg.cholesky(K)
        self._check_factor(L)
        self._X, self._L = X, L
        self._refresh_weights(y)
        self._n_fitted = n
        self._revision = self._data.revision
        return self

    def update(self, x, y: float) -> GaussianProcess:
        """
        Extend the Cholesky factor with the newest observation.

        The observation must already be the last entry of the shared
        history. If the history moved on by more than one sample since the
        last fit, was replaced, or was never fit, this falls back to a full
        fit().
        """
        n = len(self._data)
        stale = self._revision != self._data.revision
        if self._n_fitted is None or stale or self._n_fitted + 1 != n or self._n_fitted == 0:
            logger.debug("GP out of sync with data (%s vs %d), refitting", self._n_fitted, n)
            return self.fit()

        X, y_all = self._data.to_jax()
        x_new = jnp.asarray(x, dtype=float).reshape(1, -1)
        if not jnp.allclose(x_new[0], X[-1]) or not np.isclose(float(y), float(y_all[-1])):
            raise ValueError("update() expects the observation just added to the data")

        k = self._kernel(self._X, x_new)[:, 0]
        kss = self._kernel(x_new, x_new)[0, 0] + self.noise
        l = solve_triangular(self._L, k, lower=True)
        d = jnp.sqrt(kss - jnp.dot(l, l))
        L = jnp.block([[self._L, jnp.zeros((n - 1, 1))], [l[None, :], d.reshape(1, 1)]])
        self._check_factor(L)
        self._X, self._L = X, L
        self._refresh_weights(y_all)
        self._n_fitted = n
        self._revision = self._data.revision
        return self

    def predict(self, X: jnp.ndarray) -> GaussianPredictive:
        """
        Predictive mean and variance of the latent function.

        Parameters
        ----------
        X : jnp.ndarray
            Shape (input_dim,) or (n, input_dim).

        Returns
        -------
        GaussianPredictive
            Scalars for a single point, shape (n,) arrays for a batch.
        """
        if self._n_fitted is None:
            raise RuntimeError("Must call fit() before predict()")
        X = jnp.asarray(X)
        single = X.ndim == 1
        Xq = jnp.atleast_2d(X)

        kss = jnp.full((Xq.shape[0],), self.signal_variance)
        if self._n_fitted == 0:
            mean = jnp.zeros((Xq.shape[0],)) + self._mean_const
            var = kss
        else:
            Ks = self._kernel(Xq, self._X)
            mean = self._mean_const + Ks @ self._alpha
            v = solve_triangular(self._L, Ks.T, lower=True)
            var = jnp.maximum(kss - jnp.sum(v**2, axis=0), 0.0)

        if single:
            return GaussianPredictive(mean=mean[0], variance=var[0])
        return GaussianPredictive(mean=mean, variance=var)

    def negative_log_likelihood(self, theta: jnp.ndarray) -> jnp.ndarray:
        """
        -log p(y | X, theta) with the constant empirical mean.

        Returns +inf where the kernel matrix cannot be factorised, and 0 when
        there is no data (the likelihood is then flat).
        """
        theta = jnp.asarray(theta, dtype=float)
        if theta.shape != (self.n_hyperparameters,):
            raise ValueError(
                f"theta must have shape ({self.n_hyperparameters},), got {theta.shape}"
            )
        X, y = self._data.to_jax()
        if X.shape[0] == 0:
            return jnp.asarray(0.0)
        return _negative_log_marginal_likelihood(theta, X, y, self.noise, self.kernel)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _refresh_weights(self, y: jnp.ndarray) -> None:
        self._mean_const = jnp.mean(y)
        self._alpha = cho_solve((self._L, True), y - self._mean_const)

    @staticmethod
    def _check_factor(L: jnp.ndarray) -> None:
        if not bool(jnp.all(jnp.isfinite(L))):
            raise np.linalg.LinAlgError(
                "kernel matrix is not positive definite; increase noise or check inputs"
            )
