"""
Assembly of long-format result stores and merging of independent runs.
"""

from typing import List, Optional, Sequence

import numpy as np
import pandas as pd

from subseq.domain.models import RESULT_COLUMNS, ResultsStore
from subseq.domain.services.statistical_analyzer import StatisticalAnalyzer
from subseq.infrastructure.logger import Logger


def order_columns(frames: Sequence[pd.DataFrame]) -> List[str]:
    """Required columns first, then extension columns in first-seen order"""
    extras: List[str] = []
    for frame in frames:
        extras.extend(c for c in frame.columns if c not in RESULT_COLUMNS and c not in extras)
    return RESULT_COLUMNS + extras


def concat_rows(frames: Sequence[pd.DataFrame]) -> pd.DataFrame:
    """
    Stack result tables; columns missing from some tables are filled with NaN.
    """
    frames = [f for f in frames if len(f.columns)]
    if not frames:
        return pd.DataFrame(columns=RESULT_COLUMNS)
    columns = order_columns(frames)
    combined = pd.concat(frames, ignore_index=True, sort=False)
    return combined.reindex(columns=columns)


class ResultsStoreBuilder:
    """Turns normalised handler tables into result rows and stores"""

    def __init__(self, statistical_analyzer: Optional[StatisticalAnalyzer] = None):
        self.logger = Logger()
        self.statistical_analyzer = (
            statistical_analyzer if statistical_analyzer is not None else StatisticalAnalyzer()
        )

    def group_rows(
        self,
        table: pd.DataFrame,
        method: str,
        proportion: float,
        replication: int,
        depth: int,
        lambdas: Optional[np.ndarray] = None,
    ) -> pd.DataFrame:
        """
        Label one (method, proportion, replication) table and add its q-values.

        The q-values use only this group's p-values.
        """
        rows = table.copy()
        rows["depth"] = depth
        rows["proportion"] = proportion
        rows["replication"] = replication
        rows["method"] = method
        rows["qvalue"] = self.statistical_analyzer.qvalues(
            rows["pvalue"].to_numpy(dtype=np.float64), lambdas
        )
        return rows.reindex(columns=order_columns([rows]))

    def assemble(self, frames: Sequence[pd.DataFrame], seed: int) -> ResultsStore:
        data = concat_rows(frames)
        self.logger.log_matrix_shape("Results store", data.shape)
        return ResultsStore(data, seed)


def combine_subsamples(*stores: ResultsStore) -> ResultsStore:
    """
    Concatenate the rows of several result stores into a new store.

    The first store's seed is kept. Overlapping (method, proportion,
    replication) groups are not deduplicated.
    """
    if len(stores) == 1 and isinstance(stores[0], (list, tuple)):
        stores = tuple(stores[0])
    if not stores:
        raise ValueError("combine_subsamples needs at least one results store")
    for store in stores:
        if not isinstance(store, ResultsStore):
            raise TypeError(f"Expected ResultsStore, got {type(store).__name__}")

    logger = Logger()
    seeds = {store.seed for store in stores}
    if len(seeds) > 1:
        logger.log_warning(
            f"Combining stores with seeds {sorted(seeds)}; keeping {stores[0].seed}"
        )

    combined = ResultsStore(concat_rows([s.data for s in stores]), stores[0].seed)
    logger.log_step(
        "Combining", f"Merged {len(stores)} stores into {len(combined)} rows"
    )
    return combined
