"""
This package contains the domain layer for the subsampling pipeline.

The domain layer is responsible for the business logic of the pipeline.
"""

from .models import ResultsStore, SubsampleConfig, SummaryConfig, SummaryStore

__all__ = ["ResultsStore", "SubsampleConfig", "SummaryConfig", "SummaryStore"]
