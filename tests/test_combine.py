"""Tests for merging independently produced result stores."""

import pandas as pd
import pytest

from subseq import ResultsStore, combine_subsamples, get_seed, subsample


@pytest.fixture
def store_a(counts, treatment, ratio_handler):
    return subsample(counts, [0.2, 1], ratio_handler, treatment, seed=10)


@pytest.fixture
def store_b(counts, treatment):
    return subsample(counts, [0.5], "linear_model", treatment, seed=20)


def test_row_counts_add_up(store_a, store_b):
    combined = combine_subsamples(store_a, store_b)
    assert len(combined) == len(store_a) + len(store_b)


def test_first_seed_kept(store_a, store_b):
    assert get_seed(combine_subsamples(store_a, store_b)) == 10
    assert get_seed(combine_subsamples(store_b, store_a)) == 20


def test_inputs_unchanged(store_a, store_b):
    before = store_a.data.copy()
    combine_subsamples(store_a, store_b)
    pd.testing.assert_frame_equal(store_a.data, before)


def test_schema_union_fills_missing(store_a, store_b):
    combined = combine_subsamples(store_a, store_b)
    assert "average_expression" in combined.columns
    from_a = combined.data[combined.data["method"] == "log_ratio_handler"]
    assert from_a["average_expression"].isna().all()


def test_overlapping_keys_are_not_deduplicated(store_a):
    combined = combine_subsamples(store_a, store_a)
    assert len(combined) == 2 * len(store_a)


def test_accepts_a_list(store_a, store_b):
    assert len(combine_subsamples([store_a, store_b])) == len(store_a) + len(store_b)


def test_rejects_non_stores(store_a):
    with pytest.raises(TypeError):
        combine_subsamples(store_a, store_a.data)
    with pytest.raises(ValueError):
        combine_subsamples()


def test_combined_store_is_a_results_store(store_a, store_b):
    assert isinstance(combine_subsamples(store_a, store_b), ResultsStore)
