"""
Selection of the reference ("oracle") results each depth is compared against.
"""

from typing import List, Optional, Union

import pandas as pd

from subseq.domain.exceptions import OracleJoinFailure
from subseq.domain.models import ResultsStore
from subseq.infrastructure.logger import Logger

OracleInput = Union[ResultsStore, pd.DataFrame]

ORACLE_FIELDS = ["ID", "coefficient", "pvalue"]


class OracleResolver:
    """Picks a per-method oracle from the results, or spreads a supplied one"""

    def __init__(self):
        self.logger = Logger()

    def resolve(self, tab: pd.DataFrame, oracle: Optional[OracleInput] = None) -> pd.DataFrame:
        """
        Oracle rows for every method in ``tab``, with a ``method`` column.

        Args:
            tab: Result rows being summarised
            oracle: Explicit reference results, or None to use each method's
                deepest subsample

        Returns:
            pd.DataFrame: Oracle rows; an explicit oracle is repeated per method
        """
        if oracle is None:
            return self.deepest(tab)
        return self.explicit(tab, oracle)

    def deepest(self, tab: pd.DataFrame) -> pd.DataFrame:
        """
        Rows of the group with the highest realized depth, per method.

        Ties on depth go to the lowest replication index, then to the
        highest nominal proportion.
        """
        groups = tab[["method", "proportion", "replication", "depth"]].drop_duplicates()
        groups = groups.sort_values(
            ["method", "depth", "replication", "proportion"],
            ascending=[True, False, True, False],
            kind="mergesort",
        )
        chosen = groups.drop_duplicates("method", keep="first")

        for row in chosen.itertuples(index=False):
            self.logger.log_step(
                "Oracle",
                f"{row.method}: depth {row.depth} "
                f"(proportion {row.proportion}, replication {row.replication})",
            )

        keys = ["method", "proportion", "replication"]
        return tab.merge(chosen[keys], on=keys, how="inner")

    def explicit(self, tab: pd.DataFrame, oracle: OracleInput) -> pd.DataFrame:
        """
        Repeat a single supplied oracle for every method in ``tab``.

        Raises:
            ValueError: If required columns are missing or gene IDs repeat
            OracleJoinFailure: If the oracle shares no gene ID with a method's rows
        """
        frame = oracle.data if isinstance(oracle, ResultsStore) else pd.DataFrame(oracle)
        missing = [c for c in ORACLE_FIELDS if c not in frame.columns]
        if missing:
            raise ValueError(f"Oracle is missing required column(s) {missing}")
        if frame["ID"].duplicated().any():
            raise ValueError(
                "An explicit oracle must hold one row per gene; "
                "select a single method, proportion and replication first"
            )

        keep = ORACLE_FIELDS + (["qvalue"] if "qvalue" in frame.columns else [])
        frame = frame[keep]

        methods: List[str] = list(pd.unique(tab["method"]))
        per_method = []
        for method in methods:
            ids = tab.loc[tab["method"] == method, "ID"]
            if not frame["ID"].isin(ids).any():
                raise OracleJoinFailure(
                    f"Oracle shares no gene IDs with the results of method '{method}'"
                )
            per_method.append(frame.assign(method=method))

        self.logger.log_step(
            "Oracle", f"Using supplied oracle of {len(frame)} rows for {len(methods)} method(s)"
        )
        return pd.concat(per_method, ignore_index=True)
