"""
functions.py
------------

Acquisition functions on a Gaussian predictive posterior.

Every function takes any object with `mean` and `variance` arrays and
returns scores where higher is better, whatever the direction of the
objective. They are pure JAX and differentiable w.r.t. the query points
that produced the posterior.

- expected_improvement / log_expected_improvement
- probability_of_improvement
- upper_confidence_bound / lower_confidence_bound

References
----------
Jones, D. R., Schonlau, M., & Welch, W. J. (1998). Efficient global
optimization of expensive black-box functions. J. Global Optim., 13(4).

Srinivas, N., Krause, A., Kakade, S. M., & Seeger, M. (2010). Gaussian
process optimization in the bandit setting: No regret and experimental
design. ICML.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import jax.numpy as jnp
from jax.scipy import stats

if TYPE_CHECKING:
    from mcmcbo.posterior import PredictivePosterior

_STD_FLOOR = 1e-9

# below this standardized improvement log(u Φ(u) + φ(u)) loses all digits
_LOG_EI_SWITCH = -6.0


def _improvement_z(posterior, best_f, maximize: bool, xi: float = 0.0):
    """Standardized improvement z = ±(μ - best_f) ∓ xi over σ, and σ."""
    std = jnp.sqrt(jnp.maximum(posterior.variance, 0.0))
    gap = posterior.mean - best_f if maximize else best_f - posterior.mean
    return (gap - xi) / (std + _STD_FLOOR), std


def expected_improvement(
    posterior: PredictivePosterior,
    best_f: float,
    maximize: bool = True,
) -> jnp.ndarray:
    """
    Expected improvement over the incumbent `best_f`.

    EI(x) = σ(x) [z Φ(z) + φ(z)], z the standardized improvement.

    Parameters
    ----------
    posterior : PredictivePosterior
        Predictive posterior at the candidates.
    best_f : float
        Incumbent: largest observed value when maximizing, smallest otherwise.
    maximize : bool, default=True
        Direction of the objective.

    Returns
    -------
    jnp.ndarray
        Non-negative EI, same shape as posterior.mean.

    Examples
    --------
    >>> posterior = gp.predict(X_candidates)
    >>> ei = expected_improvement(posterior, jnp.min(y), maximize=False)
    >>> X_next = X_candidates[jnp.argmax(ei)]
    """
    z, std = _improvement_z(posterior, best_f, maximize)
    ei = std * (z * stats.norm.cdf(z) + stats.norm.pdf(z))
    # round-off can leave tiny negative values
    return jnp.maximum(ei, 0.0)


def log_expected_improvement(
    posterior: PredictivePosterior,
    best_f: float,
    maximize: bool = True,
) -> jnp.ndarray:
    """
    log EI, accurate far below the incumbent where EI itself underflows.

    For z < -6 the asymptotic expansion
    z Φ(z) + φ(z) ≈ φ(z) / z² (1 - 3 / z²) is used in log space, so the
    ranking of hopeless candidates survives and gradients stay finite.
    """
    z, std = _improvement_z(posterior, best_f, maximize)

    # both branches are evaluated; clamp inputs so neither produces nan
    z_hi = jnp.maximum(z, _LOG_EI_SWITCH)
    z_lo = jnp.minimum(z, _LOG_EI_SWITCH)
    direct = jnp.log(z_hi * stats.norm.cdf(z_hi) + stats.norm.pdf(z_hi))
    tail = stats.norm.logpdf(z_lo) - 2.0 * jnp.log(-z_lo) + jnp.log1p(-3.0 / z_lo**2)

    log_h = jnp.where(z > _LOG_EI_SWITCH, direct, tail)
    return log_h + jnp.log(std + _STD_FLOOR)


def probability_of_improvement(
    posterior: PredictivePosterior,
    best_f: float,
    maximize: bool = True,
    xi: float = 0.0,
) -> jnp.ndarray:
    """
    Probability that f(x) beats `best_f` by at least `xi`.

    Parameters
    ----------
    posterior : PredictivePosterior
    best_f : float
        Incumbent value.
    maximize : bool, default=True
    xi : float, default=0.0
        Improvement margin; larger values push towards exploration.
    """
    z, _ = _improvement_z(posterior, best_f, maximize, xi)
    return stats.norm.cdf(z)


def upper_confidence_bound(
    posterior: PredictivePosterior,
    beta: float = 2.0,
    maximize: bool = True,
) -> jnp.ndarray:
    r"""
    Optimistic confidence-bound score.

    μ(x) + β σ(x) when maximizing, -(μ(x) - β σ(x)) when minimizing: the
    optimistic end of the interval, signed so that higher is better.

    Parameters
    ----------
    posterior : PredictivePosterior
    beta : float, default=2.0
        Width of the interval in standard deviations. 0 is greedy on the mean.
    maximize : bool, default=True
    """
    mean = posterior.mean
    std = jnp.sqrt(jnp.maximum(posterior.variance, 0.0))
    if maximize:
        return mean + beta * std
    return beta * std - mean


def lower_confidence_bound(posterior: PredictivePosterior, beta: float = 2.0) -> jnp.ndarray:
    """
    Raw lower bound μ(x) - β σ(x), to be minimized.

    Equals -upper_confidence_bound(posterior, beta, maximize=False).
    """
    std = jnp.sqrt(jnp.maximum(posterior.variance, 0.0))
    return posterior.mean - beta * std
