"""
data
====

Data container for objective evaluations.

- Observations : shared (input, value) history read by every surrogate.
"""

from .dataset import Observations

__all__ = ["Observations"]
