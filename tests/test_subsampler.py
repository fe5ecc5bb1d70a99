"""Tests for seeded binomial thinning."""

import numpy as np
import pandas as pd
import pytest

from subseq import InvalidProportion, InvalidSeedReuse, generate_subsampled_matrix
from subseq.domain.services.seed_manager import SeedManager
from subseq.domain.services.subsampler import Subsampler, as_count_frame


def test_same_inputs_give_identical_output(counts):
    first = generate_subsampled_matrix(counts, 0.3, seed=42, replication=2)
    second = generate_subsampled_matrix(counts, 0.3, seed=42, replication=2)
    pd.testing.assert_frame_equal(first, second)


@pytest.mark.parametrize("seed", [0, 1, 12345, 2**31 - 1])
def test_full_proportion_returns_exact_copy(counts, seed):
    out = generate_subsampled_matrix(counts, 1, seed=seed, replication=3)
    pd.testing.assert_frame_equal(out, counts.astype(np.int64))
    assert out is not counts


def test_total_counts_scale_with_proportion():
    rng = np.random.default_rng(7)
    matrix = rng.poisson(50, size=(2000, 10))
    for proportion in (0.1, 0.5, 0.9):
        thinned = generate_subsampled_matrix(matrix, proportion, seed=3)
        assert thinned.sum() / matrix.sum() == pytest.approx(proportion, rel=0.01)


def test_thinned_counts_never_exceed_original(counts):
    out = generate_subsampled_matrix(counts, 0.5, seed=9)
    assert (out.to_numpy() <= counts.to_numpy()).all()
    assert (out.to_numpy() >= 0).all()


def test_replications_and_proportions_draw_distinct_streams(counts):
    base = generate_subsampled_matrix(counts, 0.5, seed=1, replication=0)
    other_rep = generate_subsampled_matrix(counts, 0.5, seed=1, replication=1)
    other_prop = generate_subsampled_matrix(counts, 0.5000001, seed=1, replication=0)
    other_seed = generate_subsampled_matrix(counts, 0.5, seed=2, replication=0)
    for other in (other_rep, other_prop, other_seed):
        assert not base.equals(other)


def test_array_input_returns_array():
    matrix = np.arange(20).reshape(5, 4)
    out = generate_subsampled_matrix(matrix, 0.5, seed=0)
    assert isinstance(out, np.ndarray)
    assert out.shape == (5, 4)


@pytest.mark.parametrize("proportion", [0, -0.2, 1.01, 2, float("nan"), True, "0.5"])
def test_invalid_proportion_rejected(counts, proportion):
    with pytest.raises(InvalidProportion):
        generate_subsampled_matrix(counts, proportion, seed=0)


@pytest.mark.parametrize("seed", [-1, 1.5, "7", True])
def test_invalid_seed_rejected(counts, seed):
    with pytest.raises(InvalidSeedReuse):
        generate_subsampled_matrix(counts, 0.5, seed=seed)


def test_task_stream_depends_only_on_its_key():
    manager = SeedManager()
    first = manager.task_rng(5, 0.25, 1).integers(0, 1_000_000, size=10)
    manager.task_rng(5, 0.75, 0).integers(0, 1_000_000, size=1000)
    again = manager.task_rng(5, 0.25, 1).integers(0, 1_000_000, size=10)
    np.testing.assert_array_equal(first, again)


def test_resolve_seed_generates_when_missing():
    seed = SeedManager().resolve_seed(None)
    assert isinstance(seed, int)
    assert 0 <= seed < 2**31


def test_subsample_frame_reports_realized_depth(counts):
    frame = as_count_frame(counts)
    sub, depth = Subsampler().subsample_frame(frame, 0.2, 11, 0)
    assert depth == int(sub.to_numpy().sum())
    assert depth < counts.to_numpy().sum()


@pytest.mark.parametrize(
    "matrix",
    [
        np.array([[1, -1], [2, 3]]),
        np.array([[1.5, 1], [2, 3]]),
        np.array([[np.nan, 1], [2, 3]]),
        np.array([1, 2, 3]),
    ],
)
def test_invalid_count_matrix_rejected(matrix):
    with pytest.raises(ValueError):
        as_count_frame(matrix)
