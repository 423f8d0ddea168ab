"""
optimize.py
-----------

Search utilities for maximizing acquisition functions.

Provides functional interface for maximizing acquisition functions:
- optimize_acqf_discrete: Exhaustive search over candidate set
- optimize_acqf: Gradient-based optimization (continuous, Optax)
- optimize_acqf_random: Random search baseline

Design
------
Following BoTorch's functional API:
    X_next, acq_value = optimize_acqf(acq_fn, bounds, q=1)

`acq_fn` is any batch callable (n, d) -> (n,), in particular
`EnsemblePosterior.evaluate_criteria`, so the search maximizes the
hyperparameter-marginalized acquisition value.
"""

from __future__ import annotations

from typing import Any, Callable, Literal

import jax
import jax.numpy as jnp
import jax.random as jr
import optax

from mcmcbo.utils.rng import as_key


def optimize_acqf_discrete(
    acq_fn: Callable[[jnp.ndarray], jnp.ndarray],
    candidates: jnp.ndarray,
    q: int = 1,
) -> tuple[jnp.ndarray, jnp.ndarray]:
    """
    Optimize acquisition function over discrete candidate set.

    Parameters
    ----------
    acq_fn : callable
        Acquisition function. Takes (n_candidates, input_dim) array,
        returns (n_candidates,) scores.
    candidates : jnp.ndarray, shape (n_candidates, input_dim)
        Discrete candidate points to evaluate
    q : int, default=1
        Batch size (number of points to select)

    Returns
    -------
    X_next : jnp.ndarray, shape (q, input_dim)
        Selected candidate points
    acq_values : jnp.ndarray, shape (q,)
        Acquisition values of selected points

    Examples
    --------
    >>> candidates = jnp.array([[0.0, 0.0], [0.5, 0.5], [1.0, 1.0]])
    >>> X_next, acq_val = optimize_acqf_discrete(ensemble.evaluate_criteria, candidates)
    """
    acq_values = acq_fn(candidates)

    # Select top-q by acquisition value, descending
    top_indices = jnp.argsort(acq_values)[-q:][::-1]
    return candidates[top_indices], acq_values[top_indices]


def optimize_acqf(
    acq_fn: Callable[[jnp.ndarray], jnp.ndarray],
    bounds: jnp.ndarray,
    q: int = 1,
    *,
    method: Literal["gradient", "random"] = "gradient",
    num_restarts: int = 10,
    raw_samples: int = 100,
    optim_steps: int = 100,
    lr: float = 0.01,
    optimizer: optax.GradientTransformation | None = None,
    key: Any = None,
) -> tuple[jnp.ndarray, jnp.ndarray]:
    """
    Optimize acquisition function over a box.

    Parameters
    ----------
    acq_fn : callable
        Acquisition function. Takes (n_points, input_dim) array,
        returns (n_points,) scores.
    bounds : jnp.ndarray, shape (input_dim, 2)
        Box constraints [[x1_min, x1_max], [x2_min, x2_max], ...]
    q : int, default=1
        Batch size (number of points to select)
    method : {"gradient", "random"}, default="gradient"
        Optimization method
    num_restarts : int, default=10
        Number of starting points refined by gradient ascent
    raw_samples : int, default=100
        Number of random samples to pick the starting points from
    optim_steps : int, default=100
        Number of optimizer steps per restart
    lr : float, default=0.01
        Learning rate of the default optimizer (Adam)
    optimizer : optax.GradientTransformation | None
        Optax optimizer to use instead of Adam.
    key : jax.Array | int | None
        PRNG key for random initialization

    Returns
    -------
    X_next : jnp.ndarray, shape (q, input_dim)
        Optimized points
    acq_values : jnp.ndarray, shape (q,)
        Acquisition values at X_next

    Notes
    -----
    For method="gradient", acq_fn must be differentiable through JAX.
    For non-differentiable acquisition functions, use method="random"
    or optimize_acqf_discrete() with a candidate grid.
    """
    key = as_key(key)

    if method == "random":
        return optimize_acqf_random(acq_fn, bounds, q=q, num_samples=raw_samples, key=key)
    elif method == "gradient":
        return _optimize_acqf_gradient(
            acq_fn,
            bounds,
            q=q,
            num_restarts=max(num_restarts, q),
            raw_samples=raw_samples,
            optim_steps=optim_steps,
            optimizer=optimizer or optax.adam(lr),
            key=key,
        )
    else:
        raise ValueError(f"Unknown method: {method}. Use 'gradient' or 'random'.")


def optimize_acqf_random(
    acq_fn: Callable[[jnp.ndarray], jnp.ndarray],
    bounds: jnp.ndarray,
    q: int = 1,
    *,
    num_samples: int = 1000,
    key: Any = None,
) -> tuple[jnp.ndarray, jnp.ndarray]:
    """
    Optimize acquisition function via random search.

    Parameters
    ----------
    acq_fn : callable
        Acquisition function
    bounds : jnp.ndarray, shape (input_dim, 2)
        Box constraints
    q : int, default=1
        Batch size
    num_samples : int, default=1000
        Number of random samples to evaluate
    key : jax.Array | int | None
        PRNG key

    Returns
    -------
    X_next : jnp.ndarray, shape (q, input_dim)
        Best random samples
    acq_values : jnp.ndarray, shape (q,)
        Acquisition values
    """
    samples = _uniform_in_bounds(as_key(key), bounds, num_samples)
    return optimize_acqf_discrete(acq_fn, samples, q=q)


def _uniform_in_bounds(key, bounds: jnp.ndarray, num: int) -> jnp.ndarray:
    bounds = jnp.asarray(bounds, dtype=float)
    lower, upper = bounds[:, 0], bounds[:, 1]
    u = jr.uniform(key, (num, bounds.shape[0]))
    return lower + u * (upper - lower)


def _optimize_acqf_gradient(
    acq_fn: Callable[[jnp.ndarray], jnp.ndarray],
    bounds: jnp.ndarray,
    q: int,
    num_restarts: int,
    raw_samples: int,
    optim_steps: int,
    optimizer: optax.GradientTransformation,
    key: Any,
) -> tuple[jnp.ndarray, jnp.ndarray]:
    """
    Internal: projected gradient ascent from the best raw samples.

    All restarts are optimized jointly as one (num_restarts, d) batch; the
    loss is the negated sum of their scores, which decouples per restart.
    """
    bounds = jnp.asarray(bounds, dtype=float)
    lower, upper = bounds[:, 0], bounds[:, 1]

    init_samples = _uniform_in_bounds(key, bounds, raw_samples)
    init_acq = acq_fn(init_samples)
    starts = init_samples[jnp.argsort(init_acq)[-num_restarts:]]

    def loss_fn(X):
        return -jnp.sum(acq_fn(X))

    grad_fn = jax.grad(loss_fn)

    X = starts
    opt_state = optimizer.init(X)
    for _ in range(optim_steps):
        grads = grad_fn(X)
        # a nan gradient (e.g. zero predictive variance) freezes that restart
        grads = jnp.where(jnp.isfinite(grads), grads, 0.0)
        updates, opt_state = optimizer.update(grads, opt_state, X)
        X = jnp.clip(optax.apply_updates(X, updates), lower, upper)

    return optimize_acqf_discrete(acq_fn, X, q=q)
