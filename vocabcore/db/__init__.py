"""Database package for vocabcore.

Only ProgressDatabase is exported as the public API.
"""

from .database import ProgressDatabase

__all__ = ["ProgressDatabase"]
