"""
dataset.py
-----------

Core data container for mcmcbo.

defines:
- Observations: the evaluated (input, objective value) history

Notes
-----
- Data is stored in Python lists of NumPy arrays (mutable!), so appending a
  sample is O(1).
- Convert to jax.numpy (jnp) (immutable!) arrays only when passing into a
  surrogate. `to_jax` caches the conversion until the next append, because
  the hyperparameter sampler reads the full history on every density
  evaluation.
- One Observations instance is shared by every surrogate of an ensemble.
"""

from __future__ import annotations

import jax.numpy as jnp
import numpy as np


class Observations:
    """
    Container for objective evaluations.

    Parameters
    ----------
    input_dim : int
        Dimensionality of the query space.

    Attributes
    ----------
    inputs : list[np.ndarray]
        Query points, each of shape (input_dim,).
    values : list[float]
        Observed objective values.
    revision : int
        Incremented by replace().
    """

    def __init__(self, input_dim: int) -> None:
        self.input_dim = int(input_dim)
        self.inputs: list[np.ndarray] = []
        self.values: list[float] = []
        self._cache: tuple[jnp.ndarray, jnp.ndarray] | None = None
        # bumped whenever the history is rewritten rather than appended to
        self.revision = 0

    def add_sample(self, x, y: float) -> None:
        """
        append a single observation.

        Parameters
        ----------
        x : array-like, shape (input_dim,)
            Query point.
        y : float
            Observed objective value.
        """
        x = np.asarray(x, dtype=float).reshape(-1)
        if x.shape[0] != self.input_dim:
            raise ValueError(
                f"x must have {self.input_dim} entries, got {x.shape[0]}"
            )
        self.inputs.append(x)
        self.values.append(float(y))
        self._cache = None

    def to_numpy(self) -> tuple[np.ndarray, np.ndarray]:
        """
        Return inputs, values as numpy arrays.

        Returns
        -------
        X : np.ndarray, shape (n, input_dim)
        y : np.ndarray, shape (n,)
        """
        if not self.inputs:
            return np.zeros((0, self.input_dim)), np.zeros((0,))
        return np.stack(self.inputs), np.asarray(self.values, dtype=float)

    def to_jax(self) -> tuple[jnp.ndarray, jnp.ndarray]:
        """Return inputs, values as (cached) jax arrays."""
        if self._cache is None:
            X, y = self.to_numpy()
            self._cache = (jnp.asarray(X), jnp.asarray(y))
        return self._cache

    def last(self) -> tuple[np.ndarray, float]:
        """
        Return the most recent observation.

        Raises
        ------
        IndexError
            If no observation has been recorded.
        """
        if not self.inputs:
            raise IndexError("no observations recorded")
        return self.inputs[-1], self.values[-1]

    def __len__(self) -> int:
        """Return number of observations."""
        return len(self.values)

    @classmethod
    def from_arrays(cls, X, y) -> Observations:
        """
        Construct Observations from arrays.

        Parameters
        ----------
        X : array, shape (n, input_dim)
            Query points.
        y : array, shape (n,)
            Objective values.

        Returns
        -------
        Observations
            Data container

        Examples
        --------
        >>> X = jnp.array([[0.0, 0.0], [1.0, 1.0]])
        >>> y = jnp.array([0.3, -0.1])
        >>> data = Observations.from_arrays(X, y)
        """
        X = np.asarray(X, dtype=float)
        y = np.asarray(y, dtype=float).reshape(-1)
        if X.ndim != 2:
            raise ValueError("X must be shape (n, input_dim)")
        if X.shape[0] != y.shape[0]:
            raise ValueError(
                f"X and y disagree on the number of samples: {X.shape[0]} != {y.shape[0]}"
            )
        data = cls(X.shape[1])
        for x, value in zip(X, y):
            data.add_sample(x, value)
        return data

    def replace(self, other: Observations) -> None:
        """
        Replace the contents with those of another dataset (in-place).

        Surrogates hold a reference to this object, so the history is swapped
        without rebinding it. Bumps `revision`, so surrogates fitted on the old
        history know they have to refit.
        """
        if other.input_dim != self.input_dim:
            raise ValueError(
                f"input_dim mismatch: {other.input_dim} != {self.input_dim}"
            )
        self.inputs = list(other.inputs)
        self.values = list(other.values)
        self._cache = None
        self.revision += 1
