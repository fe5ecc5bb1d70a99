"""
Comparison of every subsampled depth against its oracle.
"""

from typing import Any, Dict, Optional

import numpy as np
import pandas as pd

from subseq.domain.models import METRIC_COLUMNS, SUMMARY_COLUMNS, ResultsStore, SummaryConfig
from subseq.domain.services.oracle_resolver import OracleInput, OracleResolver
from subseq.domain.services.statistical_analyzer import StatisticalAnalyzer
from subseq.infrastructure.logger import Logger

SUMMARY_KEYS = ["depth", "proportion", "method", "replication"]


class MetricsEngine:
    """Per-(depth, proportion, method, replication) agreement with the oracle"""

    def __init__(
        self,
        statistical_analyzer: Optional[StatisticalAnalyzer] = None,
        oracle_resolver: Optional[OracleResolver] = None,
    ):
        self.logger = Logger()
        self.statistical_analyzer = (
            statistical_analyzer if statistical_analyzer is not None else StatisticalAnalyzer()
        )
        self.oracle_resolver = oracle_resolver if oracle_resolver is not None else OracleResolver()

    def compare(
        self,
        store: ResultsStore,
        oracle: Optional[OracleInput] = None,
        config: Optional[SummaryConfig] = None,
    ) -> pd.DataFrame:
        """
        Compute the metric table, one row per group.

        Args:
            store: Results of a subsampling run
            oracle: Explicit reference results; defaults to each method's
                deepest subsample
            config: FDR level and p-value adjustment method

        Returns:
            pd.DataFrame: SUMMARY_COLUMNS, sorted by depth
        """
        config = config if config is not None else SummaryConfig()
        config.validate()

        # Genes never observed at a depth carry no information about it
        tab = store.data[store.data["count"] != 0].copy()
        if tab.empty:
            self.logger.log_warning("No rows with nonzero counts to summarise")
            return pd.DataFrame(columns=SUMMARY_COLUMNS)

        oracles = self.oracle_resolver.resolve(tab, oracle)
        oracles = self._add_oracle_lfdr(oracles)
        tab, oracles = self._add_padj(tab, oracles, config.p_adjust_method)

        reference = oracles[["method", "ID", "padj", "coefficient", "lfdr"]].rename(
            columns={"padj": "o_padj", "coefficient": "o_coefficient", "lfdr": "o_lfdr"}
        )
        merged = tab.merge(reference, on=["method", "ID"], how="inner")
        self.logger.log_step(
            "Oracle join", f"{len(merged)} of {len(tab)} rows matched an oracle gene"
        )

        rows = [
            {**dict(zip(SUMMARY_KEYS, key)), **self.group_metrics(group, config.fdr_level, key)}
            for key, group in merged.groupby(SUMMARY_KEYS, sort=True)
        ]
        return pd.DataFrame(rows, columns=SUMMARY_COLUMNS)

    def _add_oracle_lfdr(self, oracles: pd.DataFrame) -> pd.DataFrame:
        oracles = oracles.copy()
        oracles["lfdr"] = np.nan
        for _, index in oracles.groupby("method", sort=False).groups.items():
            pvalues = oracles.loc[index, "pvalue"].to_numpy(dtype=np.float64)
            oracles.loc[index, "lfdr"] = self.statistical_analyzer.local_fdr_excluding_ones(
                pvalues
            )
        return oracles

    def _add_padj(self, tab: pd.DataFrame, oracles: pd.DataFrame, method: str):
        """Adjusted p-values for the results and the oracle"""
        analyzer = self.statistical_analyzer
        oracles = oracles.copy()

        if method == "qvalue":
            tab["padj"] = tab["qvalue"]
            if "qvalue" in oracles.columns:
                oracles["padj"] = oracles["qvalue"]
            else:
                oracles["padj"] = oracles.groupby("method", sort=False)["pvalue"].transform(
                    lambda p: analyzer.qvalues(p.to_numpy(dtype=np.float64))
                )
            return tab, oracles

        def adjust(p: pd.Series) -> np.ndarray:
            return analyzer.adjust_pvalues(p.to_numpy(dtype=np.float64), method)

        tab["padj"] = tab.groupby(["method", "proportion", "replication"], sort=False)[
            "pvalue"
        ].transform(adjust)
        oracles["padj"] = oracles.groupby("method", sort=False)["pvalue"].transform(adjust)
        return tab, oracles

    def group_metrics(self, group: pd.DataFrame, fdr_level: float, key: Any = None) -> Dict[str, float]:
        """
        Metrics for one group already joined to its oracle.

        estFDP and rFDP are 0 when nothing is significant; correlations,
        concordance and MSE are NaN with fewer than two valid pairs.
        """
        analyzer = self.statistical_analyzer
        x = group["coefficient"].to_numpy(dtype=np.float64)
        y = group["o_coefficient"].to_numpy(dtype=np.float64)

        significant = (group["padj"] < fdr_level).to_numpy()
        oracle_significant = (group["o_padj"] < fdr_level).to_numpy()
        o_lfdr = group["o_lfdr"].to_numpy(dtype=np.float64)
        n_significant = int(significant.sum())

        n_valid = int((~np.isnan(x) & ~np.isnan(y)).sum())
        if n_valid < 2:
            analyzer.warn_degenerate(f"Group {key}", n_valid)

        if n_significant == 0:
            est_fdp = 0.0
            r_fdp = 0.0
        else:
            lfdr_sig = o_lfdr[significant]
            lfdr_sig = lfdr_sig[~np.isnan(lfdr_sig)]
            est_fdp = float(lfdr_sig.mean()) if lfdr_sig.size else np.nan
            r_fdp = float(np.mean(~oracle_significant[significant]))

        # A missing padj is a non-discovery for percent as well as for rFDP
        if oracle_significant.any():
            percent = float(np.mean(significant[oracle_significant]))
        else:
            percent = np.nan

        metrics = {
            "significant": n_significant,
            "pearson": analyzer.pearson(x, y),
            "spearman": analyzer.spearman(x, y),
            "concordance": analyzer.concordance(x, y),
            "MSE": analyzer.mean_squared_error(x, y),
            "estFDP": est_fdp,
            "rFDP": r_fdp,
            "percent": percent,
        }
        return {name: metrics[name] for name in METRIC_COLUMNS}
