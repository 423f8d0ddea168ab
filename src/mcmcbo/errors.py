"""
errors.py
---------

Exception types raised by mcmcbo.

They subclass builtin exceptions so callers that already catch
ValueError / RuntimeError keep working:

- ConfigurationError : invalid configuration, rejected before sampling starts.
- StepFailure : a slice interval search did not terminate within its bound.
  Raised and recovered inside the sampler; callers never see it.
- MemberFailure : an ensemble member failed; fatal for the whole ensemble call.
"""

from __future__ import annotations


class ConfigurationError(ValueError):
    """Invalid sampler or ensemble configuration."""


class StepFailure(RuntimeError):
    """Interval expansion or shrinkage did not converge."""


class MemberFailure(RuntimeError):
    """
    An ensemble member failed during an ensemble-wide operation.

    Parameters
    ----------
    index : int
        Position of the failing member (0 is the canonical member).
    operation : str
        Name of the ensemble operation that was running.
    cause : BaseException
        Original error. Also chained as ``__cause__`` by the raiser.
    """

    def __init__(self, index: int, operation: str, cause: BaseException):
        self.index = index
        self.operation = operation
        self.cause = cause
        super().__init__(
            f"ensemble member {index} failed during {operation}: "
            f"{type(cause).__name__}: {cause}"
        )
