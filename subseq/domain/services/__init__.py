"""
Business logic services package for the subsampling pipeline.
"""

from .handler_dispatcher import HandlerDispatcher
from .handler_registry import HandlerRegistry, handlers
from .metrics_engine import MetricsEngine
from .oracle_resolver import OracleResolver
from .results_store import ResultsStoreBuilder, combine_subsamples
from .seed_manager import SeedManager
from .statistical_analyzer import StatisticalAnalyzer
from .subsampler import Subsampler

__all__ = [
    "HandlerDispatcher",
    "HandlerRegistry",
    "MetricsEngine",
    "OracleResolver",
    "ResultsStoreBuilder",
    "SeedManager",
    "StatisticalAnalyzer",
    "Subsampler",
    "combine_subsamples",
    "handlers",
]
