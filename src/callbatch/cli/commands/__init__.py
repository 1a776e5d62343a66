"""CLI command modules."""

from . import batch, targets

__all__ = [
    "batch",
    "targets",
]
