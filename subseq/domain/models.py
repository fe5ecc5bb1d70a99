"""
Core domain models for the subsampling pipeline.
Contains data structures for configuration, result stores and summaries.
"""

import numbers
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from subseq.domain.exceptions import InvalidProportion, InvalidSeedReuse

# Required columns of every result row, in output order
RESULT_COLUMNS = [
    "ID",
    "count",
    "depth",
    "proportion",
    "replication",
    "method",
    "coefficient",
    "pvalue",
    "qvalue",
]

# Columns identifying one (method, proportion, replication) group
GROUP_KEYS = ["method", "proportion", "replication"]

METRIC_COLUMNS = [
    "significant",
    "pearson",
    "spearman",
    "concordance",
    "MSE",
    "estFDP",
    "rFDP",
    "percent",
]

SUMMARY_COLUMNS = ["depth", "proportion", "method", "replication"] + METRIC_COLUMNS

# R-style correction names -> statsmodels multipletests methods
P_ADJUST_METHODS = {
    "BH": "fdr_bh",
    "fdr": "fdr_bh",
    "BY": "fdr_by",
    "bonferroni": "bonferroni",
    "holm": "holm",
    "hochberg": "simes-hochberg",
    "hommel": "hommel",
    "none": None,
}


def check_proportion(proportion: Any) -> float:
    """Return the proportion as a float, raising InvalidProportion outside (0, 1]"""
    if isinstance(proportion, bool) or not isinstance(proportion, numbers.Real):
        raise InvalidProportion(proportion)
    value = float(proportion)
    if not (0 < value <= 1):
        raise InvalidProportion(proportion)
    return value


def check_seed(seed: Any) -> int:
    """Return the seed as a Python int, raising InvalidSeedReuse if it is not one"""
    if isinstance(seed, bool) or not isinstance(seed, numbers.Integral):
        raise InvalidSeedReuse(f"Seed must be a non-negative integer, got {seed!r}")
    if seed < 0:
        raise InvalidSeedReuse(f"Seed must be a non-negative integer, got {seed!r}")
    return int(seed)


@dataclass
class SubsampleConfig:
    """Configuration for one subsampling run"""

    proportions: List[float]
    replications: Union[int, Sequence[int]] = 1
    seed: Optional[int] = None
    n_jobs: int = 1
    qvalue_lambdas: np.ndarray = field(
        default_factory=lambda: np.arange(0.05, 0.951, 0.05)
    )

    def validate(self) -> None:
        """Check every field, raising before any work is scheduled"""
        if len(self.proportions) == 0:
            raise ValueError("At least one proportion is required")
        self.proportions = [check_proportion(p) for p in self.proportions]
        if len(set(self.proportions)) != len(self.proportions):
            raise ValueError(f"Proportions must be unique: {self.proportions}")
        if self.seed is not None:
            self.seed = check_seed(self.seed)
        if self.n_jobs < 1:
            raise ValueError(f"n_jobs must be at least 1, got {self.n_jobs}")
        indices = self.replication_indices
        if not indices:
            raise ValueError("At least one replication is required")
        if any(r < 0 for r in indices) or len(set(indices)) != len(indices):
            raise ValueError(
                f"Replication indices must be unique and non-negative: {indices}"
            )

    @property
    def replication_indices(self) -> List[int]:
        if isinstance(self.replications, numbers.Integral):
            return list(range(int(self.replications)))
        return [int(r) for r in self.replications]

    @property
    def tasks(self) -> List[Tuple[float, int]]:
        """Every (proportion, replication) pair, in scheduling order"""
        return [
            (proportion, replication)
            for proportion in self.proportions
            for replication in self.replication_indices
        ]


@dataclass
class SummaryConfig:
    """Configuration for comparing a results store against its oracle"""

    fdr_level: float = 0.05
    average: bool = False
    p_adjust_method: str = "qvalue"

    def validate(self) -> None:
        if not (0 < self.fdr_level < 1):
            raise ValueError(f"FDR level must be in (0, 1), got {self.fdr_level}")
        if self.p_adjust_method != "qvalue" and self.p_adjust_method not in P_ADJUST_METHODS:
            raise ValueError(
                f"Unknown p-value adjustment method '{self.p_adjust_method}'. "
                f"Use 'qvalue' or one of {sorted(P_ADJUST_METHODS)}"
            )


class ResultsStore:
    """
    Long-format results of a subsampling run.

    One row per gene x depth x replication x method. The run's seed is
    attached as metadata and cannot be changed once the store exists.
    """

    def __init__(self, data: pd.DataFrame, seed: int):
        self._seed = check_seed(seed)
        self._data = data.reset_index(drop=True)

    @property
    def data(self) -> pd.DataFrame:
        return self._data

    @property
    def seed(self) -> int:
        return self._seed

    @seed.setter
    def seed(self, value: int) -> None:
        raise InvalidSeedReuse(
            f"The seed of a results store is fixed at {self._seed}; "
            "combine stores instead of reassigning it"
        )

    @property
    def columns(self) -> List[str]:
        return list(self._data.columns)

    @property
    def extension_columns(self) -> List[str]:
        """Optional handler-specific columns beyond the required core"""
        return [c for c in self._data.columns if c not in RESULT_COLUMNS]

    @property
    def methods(self) -> List[str]:
        return list(pd.unique(self._data["method"]))

    @property
    def proportions(self) -> List[float]:
        return sorted(pd.unique(self._data["proportion"]).tolist())

    def keys(self) -> List[Tuple[str, float, int]]:
        """Distinct (method, proportion, replication) groups in row order"""
        frame = self._data[GROUP_KEYS].drop_duplicates()
        return [tuple(row) for row in frame.itertuples(index=False, name=None)]

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self) -> Iterator[Tuple[Tuple[str, float, int], pd.DataFrame]]:
        return iter(self._data.groupby(GROUP_KEYS, sort=False))

    def __repr__(self) -> str:
        return (
            f"ResultsStore(rows={len(self)}, methods={self.methods}, "
            f"proportions={self.proportions}, seed={self._seed})"
        )


class SummaryStore:
    """Per-depth comparison metrics, carrying the run seed and the FDR level used"""

    def __init__(self, data: pd.DataFrame, seed: int, fdr_level: float):
        self._data = data.reset_index(drop=True)
        self._seed = check_seed(seed)
        self._fdr_level = float(fdr_level)

    @property
    def data(self) -> pd.DataFrame:
        return self._data

    @property
    def seed(self) -> int:
        return self._seed

    @property
    def fdr_level(self) -> float:
        return self._fdr_level

    @property
    def metadata(self) -> Dict[str, Any]:
        return {"seed": self._seed, "fdr_level": self._fdr_level}

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return (
            f"SummaryStore(rows={len(self)}, seed={self._seed}, "
            f"fdr_level={self._fdr_level})"
        )
