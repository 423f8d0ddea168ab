"""
slice_sampling.py
-----------------

Univariate slice sampling applied coordinate-wise.

One sweep updates every coordinate once, in a random order:

1. height   log_y = log p(x) - Exponential(1)
   (a uniform draw under the density curve, in log space)
2. interval [L, R] of width sigma_j randomly positioned around x_j;
   with step-out, Neal's doubling procedure grows it until both ends are
   outside the slice
3. shrinkage: draw x'_j uniformly in the interval, accept if it is on the
   slice (and, after doubling, passes Neal's acceptability test), otherwise
   cut the interval at x'_j and retry

Non-finite log densities count as -inf, i.e. outside every slice. Exceptions
raised by the density are not caught here.

Both interval loops are bounded. Overrunning a bound, or the interval
collapsing onto the current value, raises StepFailure for that coordinate;
`slice_sample` catches it, logs it, keeps the coordinate's last valid value
and carries on with the next coordinate.

References
----------
Neal, R. M. (2003). Slice sampling. The Annals of Statistics, 31(3), 705-767.
"""

from __future__ import annotations

import logging
from typing import Callable

import numpy as np

from mcmcbo.errors import StepFailure

logger = logging.getLogger(__name__)

LogDensity = Callable[[np.ndarray], float]


def slice_sample(
    x: np.ndarray,
    log_density: LogDensity,
    sigma: np.ndarray,
    rng: np.random.Generator,
    *,
    step_out: bool = True,
    max_doublings: int = 20,
    max_shrinks: int = 200,
) -> tuple[np.ndarray, int]:
    """
    One slice-sampling sweep over all coordinates.

    Parameters
    ----------
    x : np.ndarray, shape (d,)
        Current chain position (not modified).
    log_density : callable
        Point -> log density (NOT negated). Must return -inf, never nan,
        outside the support.
    sigma : np.ndarray, shape (d,)
        Initial interval width per coordinate.
    rng : numpy.random.Generator
        Source of randomness.
    step_out : bool, default=True
        Grow the interval by doubling before shrinking.
    max_doublings : int, default=20
        Bound on interval doublings per coordinate.
    max_shrinks : int, default=200
        Bound on candidate draws per coordinate.

    Returns
    -------
    x_new : np.ndarray, shape (d,)
        New chain position.
    n_failures : int
        Number of coordinates whose update raised StepFailure (and were left
        unchanged).
    """
    x = np.array(x, dtype=float)
    n_failures = 0
    for j in rng.permutation(x.shape[0]):
        try:
            x[j] = _update_coordinate(
                x,
                int(j),
                log_density,
                float(sigma[j]),
                rng,
                step_out=step_out,
                max_doublings=max_doublings,
                max_shrinks=max_shrinks,
            )
        except StepFailure as e:
            n_failures += 1
            logger.warning("slice step failed on coordinate %d, keeping %g: %s", j, x[j], e)
    return x, n_failures


def _update_coordinate(
    x: np.ndarray,
    j: int,
    log_density: LogDensity,
    w: float,
    rng: np.random.Generator,
    *,
    step_out: bool,
    max_doublings: int,
    max_shrinks: int,
) -> float:
    """Draw a new value for coordinate j with the others held fixed."""
    x0 = float(x[j])

    def log_p(value: float) -> float:
        trial = x.copy()
        trial[j] = value
        return log_density(trial)

    log_y = log_p(x0) - rng.standard_exponential()

    left = x0 - w * rng.uniform()
    right = left + w
    if step_out:
        left, right = _double(log_p, log_y, left, right, rng, max_doublings)

    return _shrink(
        log_p, log_y, x0, left, right, w, rng, max_shrinks, check_doubling=step_out
    )


def _double(
    log_p: Callable[[float], float],
    log_y: float,
    left: float,
    right: float,
    rng: np.random.Generator,
    max_doublings: int,
) -> tuple[float, float]:
    """Neal's doubling: extend a random side by the current width."""
    log_left, log_right = log_p(left), log_p(right)
    for _ in range(max_doublings):
        if log_left <= log_y and log_right <= log_y:
            return left, right
        width = right - left
        if rng.uniform() < 0.5:
            left -= width
            log_left = log_p(left)
        else:
            right += width
            log_right = log_p(right)
    if log_left <= log_y and log_right <= log_y:
        return left, right
    raise StepFailure(
        f"interval [{left:g}, {right:g}] still inside the slice after "
        f"{max_doublings} doublings"
    )


def _shrink(
    log_p: Callable[[float], float],
    log_y: float,
    x0: float,
    left: float,
    right: float,
    w: float,
    rng: np.random.Generator,
    max_shrinks: int,
    *,
    check_doubling: bool,
) -> float:
    """Draw from [left, right], shrinking towards x0 on every rejection."""
    lo, hi = left, right
    for _ in range(max_shrinks):
        x1 = lo + rng.uniform() * (hi - lo)
        if log_p(x1) > log_y and (
            not check_doubling or _acceptable(log_p, log_y, x0, x1, left, right, w)
        ):
            return x1
        if x1 < x0:
            lo = x1
        elif x1 > x0:
            hi = x1
        else:
            raise StepFailure(f"slice collapsed onto the current value {x0:g}")
    raise StepFailure(f"no point accepted after {max_shrinks} shrinkage steps")


def _acceptable(
    log_p: Callable[[float], float],
    log_y: float,
    x0: float,
    x1: float,
    left: float,
    right: float,
    w: float,
) -> bool:
    """
    Neal's acceptability test for intervals built by doubling.

    Rejects x1 if the doubling procedure started from x1 could not have
    produced [left, right]; this keeps the chain reversible.
    """
    lo, hi = left, right
    differs = False
    while hi - lo > 1.1 * w:
        mid = 0.5 * (lo + hi)
        if (x0 < mid) != (x1 < mid):
            differs = True
        if x1 < mid:
            hi = mid
        else:
            lo = mid
        if differs and log_y >= log_p(lo) and log_y >= log_p(hi):
            return False
    return True
