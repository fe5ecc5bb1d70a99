"""
Binomial thinning of count matrices.
"""

from typing import Tuple, Union

import numpy as np
import pandas as pd

from subseq.domain.models import check_proportion, check_seed
from subseq.domain.services.seed_manager import SeedManager
from subseq.infrastructure.logger import Logger

CountMatrix = Union[np.ndarray, pd.DataFrame]


def as_count_frame(matrix: CountMatrix) -> pd.DataFrame:
    """
    Validate a count matrix and return it as a genes x samples DataFrame.

    Args:
        matrix: DataFrame indexed by gene ID, or a 2-D integer array

    Returns:
        pd.DataFrame: int64 counts; arrays get gene IDs 0..n-1

    Raises:
        ValueError: If the matrix is not 2-D, has missing, negative or
            non-integer entries
    """
    if isinstance(matrix, pd.DataFrame):
        frame = matrix
    else:
        values = np.asarray(matrix)
        if values.ndim != 2:
            raise ValueError(f"Count matrix must be 2-D, got shape {values.shape}")
        frame = pd.DataFrame(values)

    values = frame.to_numpy()
    if not np.issubdtype(values.dtype, np.number):
        raise ValueError("Count matrix must be numeric")
    if np.isnan(values.astype(np.float64)).any():
        raise ValueError("Count matrix contains missing values")
    if (values < 0).any():
        raise ValueError("Count matrix contains negative values")
    if not np.array_equal(values, np.round(values)):
        raise ValueError("Count matrix contains non-integer values")
    if frame.index.has_duplicates:
        raise ValueError("Count matrix gene IDs must be unique")

    return frame.astype(np.int64)


class Subsampler:
    """Thins each count independently with a seed-derived binomial draw"""

    def __init__(self, seed_manager: SeedManager = None):
        self.logger = Logger()
        self.seed_manager = seed_manager if seed_manager is not None else SeedManager()

    def thin(
        self, counts: np.ndarray, proportion: float, seed: int, replication: int
    ) -> np.ndarray:
        """
        Draw Y[m, n] ~ Binomial(X[m, n], proportion) for every entry.

        Args:
            counts: Non-negative integer array
            proportion: Fraction of reads kept, in (0, 1]
            seed: Run seed
            replication: Replication index

        Returns:
            np.ndarray: Thinned counts, same shape and dtype
        """
        proportion = check_proportion(proportion)
        seed = check_seed(seed)
        if proportion == 1:
            return counts.copy()
        rng = self.seed_manager.task_rng(seed, proportion, replication)
        return rng.binomial(counts, proportion).astype(counts.dtype, copy=False)

    def subsample_matrix(
        self, matrix: CountMatrix, proportion: float, seed: int, replication: int = 0
    ) -> CountMatrix:
        """
        Subsample a count matrix, returning the same container type.

        The output is a pure function of (matrix, proportion, seed,
        replication); proportion 1 returns an exact copy.
        """
        proportion = check_proportion(proportion)
        frame = as_count_frame(matrix)
        thinned = self.thin(frame.to_numpy(), proportion, seed, replication)

        if isinstance(matrix, pd.DataFrame):
            return pd.DataFrame(thinned, index=frame.index, columns=frame.columns)
        return thinned

    def subsample_frame(
        self, frame: pd.DataFrame, proportion: float, seed: int, replication: int
    ) -> Tuple[pd.DataFrame, int]:
        """Subsample an already validated frame; returns it with its realized depth"""
        thinned = self.thin(frame.to_numpy(), proportion, seed, replication)
        sub = pd.DataFrame(thinned, index=frame.index, columns=frame.columns)
        return sub, int(thinned.sum())


def generate_subsampled_matrix(
    matrix: CountMatrix, proportion: float, seed: int, replication: int = 0
) -> CountMatrix:
    """Re-derive the subsampled matrix a run used at (proportion, replication)"""
    return Subsampler().subsample_matrix(matrix, proportion, seed, replication)
