"""
Subsampling Depth Analysis Package

Evaluates how sequencing depth affects the conclusions of a count-based
differential expression analysis. A count matrix is binomially thinned to
several read proportions, pluggable analysis methods are re-run on each
subsample, and every depth is compared against a full-depth oracle.
"""

__version__ = "0.1.0"

from subseq.application.subsampling_service import subsample
from subseq.application.summary_service import summary
from subseq.domain.exceptions import (
    DegenerateMetric,
    HandlerContractViolation,
    IncompatibleHandlerArguments,
    InvalidProportion,
    InvalidSeedReuse,
    OracleJoinFailure,
    SubsamplingCancelled,
    SubseqError,
    UnknownHandler,
)
from subseq.domain.models import ResultsStore, SummaryStore
from subseq.domain.services.handler_registry import handlers
from subseq.domain.services.results_store import combine_subsamples
from subseq.domain.services.seed_manager import get_seed
from subseq.domain.services.subsampler import generate_subsampled_matrix
from subseq.presentation.visualization.plot_generator import plot

__all__ = [
    "subsample",
    "summary",
    "get_seed",
    "generate_subsampled_matrix",
    "combine_subsamples",
    "plot",
    "handlers",
    "ResultsStore",
    "SummaryStore",
    "SubseqError",
    "InvalidProportion",
    "InvalidSeedReuse",
    "UnknownHandler",
    "HandlerContractViolation",
    "IncompatibleHandlerArguments",
    "OracleJoinFailure",
    "SubsamplingCancelled",
    "DegenerateMetric",
    "__version__",
]
