"""
This package contains the application layer for the subsampling pipeline.

The application layer is responsible for orchestrating subsampling runs and
their summaries.
"""

from .subsampling_service import SubsamplingService
from .summary_service import SummaryService

__all__ = ["SubsamplingService", "SummaryService"]
