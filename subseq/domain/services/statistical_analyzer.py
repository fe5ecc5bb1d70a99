"""
Statistical calculations for the subsampling pipeline: q-values, local FDR,
p-value corrections and agreement statistics.
"""

import warnings
from typing import Optional, Sequence

import numpy as np
from scipy.interpolate import UnivariateSpline
from scipy.stats import gaussian_kde, norm, rankdata
from statsmodels.stats.multitest import multipletests

from subseq.domain.exceptions import DegenerateMetric
from subseq.domain.models import P_ADJUST_METHODS
from subseq.infrastructure.logger import Logger

DEFAULT_LAMBDAS = np.arange(0.05, 0.951, 0.05)


class StatisticalAnalyzer:
    """Statistical analysis and calculations"""

    def __init__(self):
        self.logger = Logger()

    def estimate_pi0(
        self, pvalues: np.ndarray, lambdas: Optional[Sequence[float]] = None
    ) -> float:
        """
        Estimate the proportion of true nulls with Storey's smoother method.

        Args:
            pvalues: Non-missing p-values
            lambdas: Tuning grid; defaults to 0.05..0.95 in steps of 0.05

        Returns:
            float: pi0 in (0, 1]
        """
        p = np.asarray(pvalues, dtype=np.float64)
        if p.size == 0:
            return 1.0
        lambdas = DEFAULT_LAMBDAS if lambdas is None else np.asarray(lambdas, dtype=np.float64)

        raw = np.array([np.mean(p >= lam) / (1 - lam) for lam in lambdas])
        if lambdas.size < 4:
            pi0 = raw[-1]
        else:
            smoothed = UnivariateSpline(lambdas, raw, k=3)(lambdas)
            pi0 = smoothed[-1]

        # A non-positive estimate carries no information; fall back to BH
        if not np.isfinite(pi0) or pi0 <= 0:
            return 1.0
        return float(min(pi0, 1.0))

    def qvalues(
        self, pvalues: np.ndarray, lambdas: Optional[Sequence[float]] = None
    ) -> np.ndarray:
        """
        Storey q-values; missing p-values stay missing.

        Args:
            pvalues: P-values for one group
            lambdas: Tuning grid passed to estimate_pi0

        Returns:
            np.ndarray: q-values aligned with the input
        """
        p_all = np.asarray(pvalues, dtype=np.float64)
        out = np.full(p_all.shape, np.nan)
        present = ~np.isnan(p_all)
        p = p_all[present]
        m = p.size
        if m == 0:
            return out

        pi0 = self.estimate_pi0(p, lambdas)
        order = np.argsort(-p, kind="mergesort")
        ranks = np.arange(m, 0, -1)
        q_sorted = np.minimum(1.0, np.minimum.accumulate(p[order] * m / ranks))
        q = np.empty(m)
        q[order] = pi0 * q_sorted
        out[present] = q
        return out

    def local_fdr(
        self,
        pvalues: np.ndarray,
        pi0: Optional[float] = None,
        adjust: float = 1.5,
        eps: float = 1e-8,
    ) -> np.ndarray:
        """
        Local false discovery rate from the density of probit-transformed p-values.

        Args:
            pvalues: P-values; missing values stay missing
            pi0: Null proportion; estimated when not given
            adjust: Multiplier on the rule-of-thumb kernel bandwidth
            eps: Clipping distance from 0 and 1 before the probit transform

        Returns:
            np.ndarray: lfdr in [0, 1], non-decreasing in p
        """
        p_all = np.asarray(pvalues, dtype=np.float64)
        out = np.full(p_all.shape, np.nan)
        present = ~np.isnan(p_all)
        p = p_all[present]
        if p.size == 0:
            return out
        if pi0 is None:
            pi0 = self.estimate_pi0(p)

        x = norm.ppf(np.clip(p, eps, 1 - eps))
        if np.unique(x).size < 2:
            out[present] = min(pi0, 1.0)
            return out

        bandwidth = adjust * self._silverman_bandwidth(x)
        kde = gaussian_kde(x, bw_method=bandwidth / np.std(x, ddof=1))
        lfdr = np.minimum(pi0 * norm.pdf(x) / kde(x), 1.0)

        order = np.argsort(p, kind="mergesort")
        monotone = np.empty_like(lfdr)
        monotone[order] = np.maximum.accumulate(lfdr[order])
        out[present] = monotone
        return out

    @staticmethod
    def _silverman_bandwidth(x: np.ndarray) -> float:
        """Silverman's rule of thumb, falling back when the spread is zero"""
        sd = np.std(x, ddof=1)
        q75, q25 = np.percentile(x, [75, 25])
        lo = min(sd, (q75 - q25) / 1.34)
        if lo <= 0:
            lo = sd or abs(x[0]) or 1.0
        return 0.9 * lo * x.size ** -0.2

    def local_fdr_excluding_ones(self, pvalues: np.ndarray) -> np.ndarray:
        """
        Local FDR with p-values equal to 1 held out of the density estimate.

        P-values of exactly 1 are assigned the largest lfdr among the others.
        """
        p = np.asarray(pvalues, dtype=np.float64)
        out = np.full(p.shape, np.nan)
        is_one = p == 1
        rest = ~is_one & ~np.isnan(p)
        if not rest.any():
            out[is_one] = 1.0
            return out

        non_one = self.local_fdr(p[rest])
        out[rest] = non_one
        out[is_one] = np.max(non_one)
        return out

    def adjust_pvalues(self, pvalues: np.ndarray, method: str) -> np.ndarray:
        """
        Multiple-testing correction by R-style method name ('BH', 'holm', ...).

        Missing p-values stay missing and are excluded from the correction.
        """
        if method not in P_ADJUST_METHODS:
            raise ValueError(f"Unknown p-value adjustment method '{method}'")
        p = np.asarray(pvalues, dtype=np.float64)
        out = np.full(p.shape, np.nan)
        present = ~np.isnan(p)
        sm_method = P_ADJUST_METHODS[method]
        if not present.any():
            return out
        if sm_method is None:
            out[present] = p[present]
        else:
            out[present] = multipletests(p[present], method=sm_method)[1]
        return out

    @staticmethod
    def valid_pairs(x: np.ndarray, y: np.ndarray):
        """Entries where both values are present"""
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        valid = ~np.isnan(x) & ~np.isnan(y)
        return x[valid], y[valid]

    def pearson(self, x: np.ndarray, y: np.ndarray) -> float:
        x, y = self.valid_pairs(x, y)
        if x.size < 2 or np.ptp(x) == 0 or np.ptp(y) == 0:
            return np.nan
        return float(np.corrcoef(x, y)[0, 1])

    def spearman(self, x: np.ndarray, y: np.ndarray) -> float:
        x, y = self.valid_pairs(x, y)
        if x.size < 2 or np.ptp(x) == 0 or np.ptp(y) == 0:
            return np.nan
        return float(np.corrcoef(rankdata(x), rankdata(y))[0, 1])

    def concordance(self, x: np.ndarray, y: np.ndarray) -> float:
        """
        Lin's concordance correlation coefficient.

        2 cov(x, y) / (var(x) + var(y) + (mean(x) - mean(y))^2), using
        sample (n - 1) moments over valid pairs.
        """
        x, y = self.valid_pairs(x, y)
        if x.size < 2:
            return np.nan
        cov = np.cov(x, y, ddof=1)
        denominator = cov[0, 0] + cov[1, 1] + (x.mean() - y.mean()) ** 2
        if denominator == 0:
            return np.nan
        return float(2 * cov[0, 1] / denominator)

    def mean_squared_error(self, x: np.ndarray, y: np.ndarray) -> float:
        x, y = self.valid_pairs(x, y)
        if x.size < 2:
            return np.nan
        return float(np.mean((x - y) ** 2))

    def warn_degenerate(self, label: str, n_valid: int) -> None:
        """Report a group whose agreement metrics are undefined"""
        message = f"{label}: only {n_valid} valid coefficient pair(s); metrics set to NaN"
        self.logger.log_warning(message)
        warnings.warn(message, DegenerateMetric, stacklevel=2)
