"""Category statistics and reporting."""

from phylohmm.inference.stats import CategoryStats

__all__ = [
    'CategoryStats',
]
