"""
base.py
-------

Shared types for the MCMC engines.

- MCMCAlgorithm : enumerated choice of sampling method. Only slice sampling
  exists today; the enum keeps `set_algorithm` stable when others are added.
- Density : protocol for the target. IMPORTANT: the sampler replaces a
  point estimate (ML / MAP) of the same quantity, so like an optimizer
  objective the target is a NEGATIVE log density (lower = more probable).
  `+inf` (or any non-finite value) marks zero probability.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Protocol, runtime_checkable

import numpy as np


class MCMCAlgorithm(Enum):
    """Sampling methods understood by MCMCSampler."""

    SLICE = "slice"


@runtime_checkable
class Density(Protocol):
    """
    Protocol for a target density to sample from.

    Examples
    --------
    >>> class StandardNormal:
    ...     def evaluate(self, x):
    ...         return 0.5 * float(np.sum(x**2))
    """

    def evaluate(self, point: np.ndarray) -> float:
        """Negative log density (up to a constant) at `point`."""
        ...


def as_density(density: Any) -> Callable[[np.ndarray], float]:
    """
    Normalize a target into a callable point -> negative log density.

    Accepts objects implementing `Density.evaluate` or plain callables.
    """
    if isinstance(density, Density):
        return density.evaluate
    if callable(density):
        return density
    raise TypeError(
        f"density must be callable or provide evaluate(point), got {type(density)}"
    )
