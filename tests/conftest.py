"""
Central pytest configuration for this project.

This file is automatically discovered by pytest and is intended for:

- **Fixtures**: reusable objects or setup logic shared across multiple test files.
- **Pytest hooks**: project-wide customizations of pytest behavior (e.g., modifying CLI options, adding markers).

Notes
-----
- Contributors should
  install the package in editable mode (`pip install -e .`) so that imports are resolved
  consistently in local dev and CI environments.
- Importing mcmcbo enables 64-bit JAX arrays; fixtures import it first so
  every test runs in float64.
- Keep this file focused on test setup. Do not add application logic here.
"""

import jax.numpy as jnp
import numpy as np
import pytest

import mcmcbo  # noqa: F401
from mcmcbo.data import Observations


def _objective(X):
    """Smooth 2D test function (maximum near [0.3, 0.7])."""
    X = np.atleast_2d(X)
    return np.sin(3.0 * X[:, 0]) + np.cos(3.0 * X[:, 1])


@pytest.fixture
def training_data():
    """Eight observations of a smooth 2D function on [0, 1]^2."""
    rng = np.random.default_rng(0)
    X = rng.uniform(0.0, 1.0, size=(8, 2))
    y = _objective(X)
    return X, y


@pytest.fixture
def observations(training_data):
    """Observations container holding the training data."""
    X, y = training_data
    return Observations.from_arrays(X, y)


@pytest.fixture
def query_points():
    """Three query points in [0, 1]^2."""
    return jnp.array([[0.1, 0.2], [0.5, 0.5], [0.9, 0.4]])


@pytest.fixture
def standard_normal():
    """Negative log density of N(0, I), up to a constant."""

    def density(x):
        return 0.5 * float(np.sum(np.asarray(x) ** 2))

    return density
