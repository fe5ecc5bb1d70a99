"""
Application service summarising a results store against its oracle.
"""

from typing import Optional

from subseq.domain.models import ResultsStore, SummaryConfig, SummaryStore
from subseq.domain.services.aggregator import average_replications
from subseq.domain.services.metrics_engine import MetricsEngine
from subseq.domain.services.oracle_resolver import OracleInput
from subseq.infrastructure.logger import Logger


class SummaryService:
    """Builds the per-depth summary table of a subsampling run"""

    def __init__(self, metrics_engine: Optional[MetricsEngine] = None):
        self.logger = Logger()
        self.metrics_engine = metrics_engine if metrics_engine is not None else MetricsEngine()

    def summarize(
        self,
        store: ResultsStore,
        config: SummaryConfig,
        oracle: Optional[OracleInput] = None,
    ) -> SummaryStore:
        """
        Compare every depth to the oracle, optionally averaging replications.

        Args:
            store: Results of a subsampling run
            config: FDR level, averaging and p-value adjustment
            oracle: Explicit reference results, or None for each method's deepest

        Returns:
            SummaryStore: Metrics table carrying the store seed and FDR level
        """
        if not isinstance(store, ResultsStore):
            raise TypeError(f"Expected ResultsStore, got {type(store).__name__}")
        config.validate()

        self.logger.log_step(
            "Summary",
            f"FDR level {config.fdr_level}, adjustment '{config.p_adjust_method}', "
            f"oracle {'supplied' if oracle is not None else 'deepest subsample'}",
        )
        table = self.metrics_engine.compare(store, oracle, config)
        if config.average:
            table = average_replications(table)
            self.logger.log_step("Summary", "Averaged metrics over replications")

        self.logger.log_success(f"Summarised {len(table)} group(s)")
        return SummaryStore(table, store.seed, config.fdr_level)


def summary(
    store: ResultsStore,
    oracle: Optional[OracleInput] = None,
    fdr_level: float = 0.05,
    average: bool = False,
    p_adjust_method: str = "qvalue",
) -> SummaryStore:
    """
    Summarise the power, specificity and accuracy of each subsampled depth.

    Each depth is compared against an oracle: by default the deepest
    subsample of the same method.

    Args:
        store: Results of ``subsample``
        oracle: Explicit reference results (one row per gene)
        fdr_level: Threshold on adjusted p-values for significance
        average: Average metrics over replications at each proportion
        p_adjust_method: "qvalue" to reuse stored q-values, or an R-style
            correction name such as "BH" or "bonferroni"

    Returns:
        SummaryStore: depth, proportion, method, replication, significant,
            pearson, spearman, concordance, MSE, estFDP, rFDP, percent
    """
    config = SummaryConfig(
        fdr_level=fdr_level, average=average, p_adjust_method=p_adjust_method
    )
    return SummaryService().summarize(store, config, oracle)
