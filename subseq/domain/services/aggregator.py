"""
Averaging of summary metrics over replications.
"""

import pandas as pd

from subseq.domain.models import METRIC_COLUMNS


def average_replications(summary: pd.DataFrame) -> pd.DataFrame:
    """
    One row per (proportion, method) with every metric, depth included,
    averaged over replications. Missing values are skipped.
    """
    columns = ["depth", "proportion", "method"] + METRIC_COLUMNS
    if summary.empty:
        return pd.DataFrame(columns=columns)
    values = ["depth"] + METRIC_COLUMNS
    averaged = (
        summary.astype({c: "float64" for c in values})
        .groupby(["proportion", "method"], sort=True)[values]
        .mean()
        .reset_index()
    )
    return averaged[columns].sort_values(["depth", "method"], kind="mergesort").reset_index(
        drop=True
    )
