"""
Data access package for the subsampling pipeline.

This package contains saving and loading components for result and summary
stores, including their seed and FDR level metadata.
"""

from .data_loader import ResultsDataLoader
from .data_saver import ResultsDataSaver

__all__ = ["ResultsDataLoader", "ResultsDataSaver"]
