"""
rng.py
------

Random number utilities for mcmcbo.

This module standardizes RNG handling across the package,
especially important when mixing NumPy and JAX.

- Public APIs take JAX PRNG keys (or plain integer seeds).
- Markov chains draw many scalars one at a time; dispatching a JAX op per
  scalar is slow, so samplers convert their key once into a NumPy
  Generator with `numpy_generator` and draw from that.

Examples
--------
>>> import jax
>>> from mcmcbo.utils.rng import seed, split, numpy_generator
>>> key = seed(0)
>>> k1, k2 = split(key)
>>> gen = numpy_generator(k1)
>>> gen.standard_exponential()  # doctest: +SKIP
"""

from __future__ import annotations

from typing import Any

import jax
import jax.random as jr
import numpy as np


def seed(seed_value: int) -> jax.Array:
    """
    Create a new PRNG key from an integer seed.

    Parameters
    ----------
    seed_value : int
        Seed for random number generation.

    Returns
    -------
    jax.Array
        New PRNG key.
    """
    return jr.PRNGKey(seed_value)


def split(key: jax.Array, num: int = 2):
    """
    Split a PRNG key into multiple independent keys.

    Parameters
    ----------
    key : jax.Array
        RNG key to split.
    num : int, default=2
        Number of new keys to return.

    Returns
    -------
    tuple of jax.Array
        Independent new PRNG keys.
    """
    return jr.split(key, num=num)


def as_key(key: Any = None) -> jax.Array:
    """
    Normalize a key argument to a JAX PRNG key.

    Parameters
    ----------
    key : jax.Array | int | None
        Existing key, integer seed, or None (seed 0).

    Returns
    -------
    jax.Array
        PRNG key.
    """
    if key is None:
        return seed(0)
    if isinstance(key, (int, np.integer)):
        return seed(int(key))
    return key


def numpy_generator(key: Any = None) -> np.random.Generator:
    """
    Derive a NumPy Generator deterministically from a JAX key.

    Parameters
    ----------
    key : jax.Array | int | None
        PRNG key or integer seed.

    Returns
    -------
    numpy.random.Generator
        PCG64 generator seeded from the raw key data. The same key always
        yields the same stream.
    """
    key = as_key(key)
    if _is_typed_key(key):
        key = jr.key_data(key)
    entropy = [int(v) for v in np.asarray(key, dtype=np.uint32).ravel()]
    return np.random.default_rng(entropy)


def _is_typed_key(key: Any) -> bool:
    """Return True for new-style typed keys created by ``jax.random.key``."""
    dtype = getattr(key, "dtype", None)
    return dtype is not None and jax.dtypes.issubdtype(dtype, jax.dtypes.prng_key)
