"""
Built-in differential expression handlers.

Both compare the two levels of a treatment vector (the second level,
in sorted order, against the first) and report log2 fold changes.
"""

import math
import warnings
from typing import Optional, Sequence, Tuple

import numpy as np
import pandas as pd
import statsmodels.api as sm
from scipy.stats import t as t_dist
from statsmodels.tools.sm_exceptions import PerfectSeparationError

from subseq.domain.services.handler_registry import handlers
from subseq.infrastructure.logger import Logger

logger = Logger()


def treatment_indicator(treatment: Sequence, n_samples: int) -> np.ndarray:
    """
    Encode a two-level treatment vector as 0/1.

    Raises:
        ValueError: If the length does not match the samples or there are
            not exactly two levels
    """
    labels = pd.Categorical(list(treatment))
    if len(labels) != n_samples:
        raise ValueError(
            f"Treatment has {len(labels)} entries but the matrix has {n_samples} samples"
        )
    if len(labels.categories) != 2:
        raise ValueError(
            f"Treatment must have exactly two levels, got {list(labels.categories)}"
        )
    return labels.codes.astype(np.float64)


def _library_sizes(values: np.ndarray) -> np.ndarray:
    lib = values.sum(axis=0).astype(np.float64)
    return np.where(lib > 0, lib, 1.0)


def _common_dispersion(values: np.ndarray, lib: np.ndarray) -> float:
    """Method-of-moments negative binomial dispersion on library-scaled counts"""
    scaled = values / lib * lib.mean()
    means = scaled.mean(axis=1)
    variances = scaled.var(axis=1, ddof=1)
    expressed = means > 0
    if not expressed.any():
        return 1e-8
    phi = (variances[expressed] - means[expressed]) / means[expressed] ** 2
    return float(max(np.mean(np.maximum(phi, 0.0)), 1e-8))


@handlers.register("negative_binomial")
def negative_binomial(
    counts: pd.DataFrame, treatment: Sequence, dispersion: Optional[float] = None
) -> pd.DataFrame:
    """
    Per-gene negative binomial GLM with a log library-size offset.

    Args:
        counts: Genes x samples counts
        treatment: Two-level condition per sample
        dispersion: Fixed NB dispersion; estimated across genes when None

    Returns:
        pd.DataFrame: coefficient (log2 fold change), pvalue (Wald),
            count, average_expression
    """
    values = counts.to_numpy(dtype=np.float64)
    indicator = treatment_indicator(treatment, values.shape[1])
    lib = _library_sizes(values)
    offset = np.log(lib)
    design = sm.add_constant(indicator, has_constant="add")
    alpha = _common_dispersion(values, lib) if dispersion is None else float(dispersion)

    coefficients = np.full(values.shape[0], np.nan)
    pvalues = np.full(values.shape[0], np.nan)
    failed = 0
    for i, y in enumerate(values):
        if y.sum() == 0:
            continue
        try:
            with warnings.catch_warnings():
                warnings.simplefilter("ignore")
                fit = sm.GLM(
                    y, design, family=sm.families.NegativeBinomial(alpha=alpha), offset=offset
                ).fit()
        except (PerfectSeparationError, np.linalg.LinAlgError, ValueError):
            failed += 1
            continue
        coefficients[i] = fit.params[1] / math.log(2)
        pvalues[i] = fit.pvalues[1]

    if failed:
        logger.log_warning(f"Negative binomial fit failed for {failed} gene(s)")

    return pd.DataFrame(
        {
            "coefficient": coefficients,
            "pvalue": pvalues,
            "count": values.sum(axis=1),
            "average_expression": (values / lib * lib.mean()).mean(axis=1),
        },
        index=counts.index,
    )


def _log_cpm(values: np.ndarray, prior_count: float) -> np.ndarray:
    lib = values.sum(axis=0).astype(np.float64)
    return np.log2((values + prior_count) / (lib + 2 * prior_count) * 1e6)


def _two_group_t(
    y: np.ndarray, indicator: np.ndarray
) -> Tuple[np.ndarray, np.ndarray]:
    """Vectorised least-squares slope and two-sided p-value for y ~ 1 + indicator"""
    second = indicator == 1
    n1 = second.sum()
    n0 = (~second).sum()
    df = n0 + n1 - 2
    if n0 == 0 or n1 == 0 or df < 1:
        raise ValueError("Each treatment level needs samples and at least one residual degree of freedom")

    mean0 = y[:, ~second].mean(axis=1)
    mean1 = y[:, second].mean(axis=1)
    rss = ((y[:, ~second] - mean0[:, None]) ** 2).sum(axis=1) + (
        (y[:, second] - mean1[:, None]) ** 2
    ).sum(axis=1)
    slope = mean1 - mean0
    with np.errstate(divide="ignore", invalid="ignore"):
        se = np.sqrt(rss / df * (1.0 / n0 + 1.0 / n1))
        t_stat = slope / se
    return slope, 2 * t_dist.sf(np.abs(t_stat), df)


@handlers.register("linear_model")
def linear_model(
    counts: pd.DataFrame, treatment: Sequence, prior_count: float = 0.5
) -> pd.DataFrame:
    """
    Per-gene linear model on log2 counts-per-million.

    Args:
        counts: Genes x samples counts
        treatment: Two-level condition per sample
        prior_count: Pseudo-count added before the log transform

    Returns:
        pd.DataFrame: coefficient (log2 fold change), pvalue (t-test),
            count, average_expression (mean log2 CPM)
    """
    values = counts.to_numpy(dtype=np.float64)
    indicator = treatment_indicator(treatment, values.shape[1])
    log_cpm = _log_cpm(values, prior_count)
    slope, pvalues = _two_group_t(log_cpm, indicator)

    totals = values.sum(axis=1)
    silent = totals == 0
    slope[silent] = np.nan
    pvalues[silent] = np.nan

    return pd.DataFrame(
        {
            "coefficient": slope,
            "pvalue": pvalues,
            "count": totals,
            "average_expression": log_cpm.mean(axis=1),
        },
        index=counts.index,
    )
