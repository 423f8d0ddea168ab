"""
diagnostics.py
--------------

Posterior diagnostics.

Provides functions to check the quality of an MCMC particle set:
- effective_sample_size: number of independent draws a correlated chain is
  worth, per dimension
- rhat: Gelman-Rubin potential scale reduction across several chains

Both operate on jax.numpy arrays and reduce over the sample axis only, so
trailing axes (e.g. hyperparameter dimensions) are kept.
"""

from __future__ import annotations

import math

import jax.numpy as jnp


def _autocorrelation(samples: jnp.ndarray) -> jnp.ndarray:
    """
    Normalized autocorrelation along axis 0, computed with an FFT.

    Returns an array of the same shape as `samples`; lag 0 is 1 (or nan for
    a constant chain).
    """
    n = samples.shape[0]
    centred = samples - jnp.mean(samples, axis=0)
    # zero-pad to avoid circular wrap-around
    size = 2 * n
    f = jnp.fft.rfft(centred, n=size, axis=0)
    acov = jnp.fft.irfft(f * jnp.conj(f), n=size, axis=0)[:n]
    return acov / acov[0]


def effective_sample_size(samples: jnp.ndarray) -> jnp.ndarray:
    """
    Estimate effective sample size (ESS) to calculate the number of independent
    samples that a correlated MCMC chain is equivalent to.

    Parameters
    ----------
    samples : jnp.ndarray
        Posterior samples, shape (n_samples, ...).

    Returns
    -------
    jnp.ndarray
        ESS with shape samples.shape[1:] (a scalar for a 1-D chain), in
        [1, n_samples * max(1, log10(n_samples))].

    Notes
    -----
    ESS = n / tau with the integrated autocorrelation time
        tau = -1 + 2 * sum_k (rho_2k + rho_2k+1)
    truncated at the first negative pair sum (Geyer's initial positive
    sequence estimator). A constant chain has ESS = n.
    """
    samples = jnp.asarray(samples, dtype=float)
    n = samples.shape[0]
    if n < 2:
        return jnp.full(samples.shape[1:], float(n))

    rho = _autocorrelation(samples)
    n_pairs = n // 2
    pairs = rho[: 2 * n_pairs].reshape((n_pairs, 2) + samples.shape[1:]).sum(axis=1)
    keep = jnp.cumprod(pairs > 0, axis=0)
    tau = -1.0 + 2.0 * jnp.sum(pairs * keep, axis=0)

    # antithetic chains can beat n, but not by more than log10(n)
    upper = max(1.0, math.log10(n))
    ess = jnp.clip(n / jnp.maximum(tau, 1.0 / upper), 1.0, n * upper)
    return jnp.where(jnp.isfinite(ess), ess, float(n))


def rhat(chains: jnp.ndarray) -> jnp.ndarray:
    """
    Compute R-hat convergence diagnostic.

    Parameters
    ----------
    chains : jnp.ndarray
        Posterior samples across chains, shape (n_chains, n_samples, ...).

    Returns
    -------
    jnp.ndarray
        R-hat with shape chains.shape[2:]. Close to 1 when all chains sample
        the same distribution, larger when they disagree.

    Notes
    -----
    Gelman-Rubin [1]:
        W = mean of within-chain variances
        B = n * variance of chain means
        R-hat = sqrt(((n - 1) / n * W + B / n) / W)

    References:
    ----------
        [1] https://bookdown.org/rdpeng/advstatcomp/monitoring-convergence.html

    """
    chains = jnp.asarray(chains, dtype=float)
    if chains.ndim < 2 or chains.shape[0] < 2 or chains.shape[1] < 2:
        raise ValueError(
            f"rhat needs at least 2 chains of 2 samples, got shape {chains.shape}"
        )
    n = chains.shape[1]
    within = jnp.mean(jnp.var(chains, axis=1, ddof=1), axis=0)
    between = n * jnp.var(jnp.mean(chains, axis=1), axis=0, ddof=1)
    var_hat = (n - 1) / n * within + between / n
    return jnp.sqrt(var_hat / within)
