"""
Seed generation and per-task random stream derivation.
"""

from typing import Optional, Union

import numpy as np

from subseq.domain.models import ResultsStore, SummaryStore, check_proportion, check_seed
from subseq.infrastructure.logger import Logger

MAX_SEED = 2**31


class SeedManager:
    """Generates run seeds and derives one independent stream per task"""

    def __init__(self):
        self.logger = Logger()

    def resolve_seed(self, seed: Optional[int] = None) -> int:
        """
        Return the given seed, or draw a fresh one from OS entropy.

        Args:
            seed: Caller-supplied seed, or None

        Returns:
            int: Validated seed for the run
        """
        if seed is None:
            seed = int(np.random.default_rng().integers(0, MAX_SEED))
            self.logger.log_step("Seed", f"Generated seed {seed}")
        return check_seed(seed)

    @staticmethod
    def proportion_key(proportion: float) -> int:
        """IEEE-754 bit pattern of a proportion, an exact integer key"""
        return int(np.array(proportion, dtype=np.float64).view(np.uint64))

    def task_rng(self, seed: int, proportion: float, replication: int) -> np.random.Generator:
        """
        Random stream keyed to (seed, proportion, replication).

        Streams for different keys are statistically independent, and a key
        always maps to the same stream regardless of what else is drawn.
        """
        seed = check_seed(seed)
        proportion = check_proportion(proportion)
        if replication < 0:
            raise ValueError(f"Replication index must be non-negative, got {replication}")
        sequence = np.random.SeedSequence(
            [seed, int(replication), self.proportion_key(proportion)]
        )
        return np.random.default_rng(sequence)


def get_seed(store: Union[ResultsStore, SummaryStore]) -> int:
    """Seed that generated a results store (or the store a summary came from)"""
    return store.seed
