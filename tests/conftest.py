"""Shared fixtures for the subsampling pipeline tests."""

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

N_GENES = 300
N_DE = 30


def simulate_counts(n_genes=N_GENES, n_per_group=6, n_de=N_DE, fold=4.0, seed=1):
    """Negative binomial counts where the first ``n_de`` genes are up in treatment"""
    rng = np.random.default_rng(seed)
    base = rng.lognormal(mean=4.0, sigma=1.0, size=n_genes)
    effect = np.ones(n_genes)
    effect[:n_de] = fold
    means = np.column_stack(
        [np.repeat(base[:, None], n_per_group, axis=1),
         np.repeat((base * effect)[:, None], n_per_group, axis=1)]
    )
    size = 10.0  # dispersion 0.1
    counts = rng.negative_binomial(size, size / (size + means))
    ids = [f"gene{i:04d}" for i in range(n_genes)]
    samples = [f"ctrl{i}" for i in range(n_per_group)] + [f"trt{i}" for i in range(n_per_group)]
    return pd.DataFrame(counts, index=ids, columns=samples)


@pytest.fixture
def counts():
    return simulate_counts()


@pytest.fixture
def treatment():
    return ["ctrl"] * 6 + ["trt"] * 6


@pytest.fixture
def small_counts():
    return simulate_counts(n_genes=40, n_per_group=4, n_de=8, seed=3)


@pytest.fixture
def small_treatment():
    return ["a"] * 4 + ["b"] * 4


def log_ratio_handler(counts, treatment):
    """Deterministic handler: log2 ratio of group means with a fixed p-value ramp"""
    values = counts.to_numpy(dtype=float)
    labels = np.asarray(treatment)
    first = labels == sorted(set(labels))[0]
    ratio = np.log2((values[:, ~first].mean(axis=1) + 1) / (values[:, first].mean(axis=1) + 1))
    pvalues = np.exp(-np.abs(ratio) * 5)
    return pd.DataFrame({"coefficient": ratio, "pvalue": pvalues, "count": values.sum(axis=1)})


@pytest.fixture
def ratio_handler():
    return log_ratio_handler
