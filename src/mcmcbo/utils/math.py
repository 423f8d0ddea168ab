"""
math.py
-------

Math utilities for mcmcbo.

Includes:
- scaled_sq_dist : pairwise squared distances with per-dimension lengthscales.
- rbf_kernel : squared-exponential covariance.
- matern52_kernel : Matern covariance with smoothness 5/2.

All functions use JAX (jax.numpy) for compatibility with autodiff, so the
GP predictive mean and variance can be differentiated w.r.t. the query
inside the acquisition optimizer.

Examples
--------
>>> import jax.numpy as jnp
>>> from mcmcbo.utils import math
>>> X = jnp.linspace(-1, 1, 5)[:, None]
>>> math.rbf_kernel(X, X, lengthscale=jnp.array([0.5])).shape
(5, 5)
"""

from __future__ import annotations

import jax.numpy as jnp


def scaled_sq_dist(
    x1: jnp.ndarray, x2: jnp.ndarray, lengthscale: jnp.ndarray | float = 1.0
) -> jnp.ndarray:
    """
    Pairwise squared Euclidean distance after dividing inputs by lengthscales.

    Parameters
    ----------
    x1 : jnp.ndarray
        First set of points, shape (N, D).
    x2 : jnp.ndarray
        Second set of points, shape (M, D).
    lengthscale : jnp.ndarray | float
        Scalar (isotropic) or shape (D,) (ARD) lengthscales.

    Returns
    -------
    jnp.ndarray
        Distance matrix of shape (N, M).
    """
    z1 = x1 / lengthscale
    z2 = x2 / lengthscale
    sqdist = jnp.sum((z1[:, None, :] - z2[None, :, :]) ** 2, axis=-1)
    # cancellation can leave tiny negatives
    return jnp.maximum(sqdist, 0.0)


def rbf_kernel(
    x1: jnp.ndarray,
    x2: jnp.ndarray,
    lengthscale: jnp.ndarray | float = 1.0,
    variance: float = 1.0,
) -> jnp.ndarray:
    """
    Radial Basis Function (RBF) kernel between two sets of points.

    Parameters
    ----------
    x1 : jnp.ndarray
        First set of points, shape (N, D).
    x2 : jnp.ndarray
        Second set of points, shape (M, D).
    lengthscale : jnp.ndarray | float, default=1.0
        Length-scale parameter(s) controlling smoothness.
    variance : float, default=1.0
        Signal variance (kernel amplitude).

    Returns
    -------
    jnp.ndarray
        Kernel matrix of shape (N, M).

    Notes
    -----
    - RBF kernel: k(x, x') = s^2 * exp(-||(x - x') / l||^2 / 2)
    """
    return variance * jnp.exp(-0.5 * scaled_sq_dist(x1, x2, lengthscale))


def matern52_kernel(
    x1: jnp.ndarray,
    x2: jnp.ndarray,
    lengthscale: jnp.ndarray | float = 1.0,
    variance: float = 1.0,
) -> jnp.ndarray:
    """
    Matern 5/2 kernel between two sets of points.

    Parameters
    ----------
    x1 : jnp.ndarray
        First set of points, shape (N, D).
    x2 : jnp.ndarray
        Second set of points, shape (M, D).
    lengthscale : jnp.ndarray | float, default=1.0
        Length-scale parameter(s).
    variance : float, default=1.0
        Signal variance.

    Returns
    -------
    jnp.ndarray
        Kernel matrix of shape (N, M).

    Notes
    -----
    k(r) = s^2 * (1 + sqrt(5) r + 5/3 r^2) * exp(-sqrt(5) r)
    """
    sqdist = scaled_sq_dist(x1, x2, lengthscale)
    # sqrt has an infinite gradient at 0; guard the diagonal
    r = jnp.sqrt(jnp.where(sqdist > 0.0, sqdist, 1.0))
    r = jnp.where(sqdist > 0.0, r, 0.0)
    sqrt5_r = jnp.sqrt(5.0) * r
    return variance * (1.0 + sqrt5_r + 5.0 / 3.0 * sqdist) * jnp.exp(-sqrt5_r)
