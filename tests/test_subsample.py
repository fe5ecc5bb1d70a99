"""Tests for building result stores from subsampling runs."""

import threading

import numpy as np
import pandas as pd
import pytest

from subseq import (
    HandlerContractViolation,
    IncompatibleHandlerArguments,
    InvalidProportion,
    InvalidSeedReuse,
    SubsamplingCancelled,
    UnknownHandler,
    generate_subsampled_matrix,
    get_seed,
    subsample,
)
from subseq.domain.models import RESULT_COLUMNS
from subseq.domain.services.statistical_analyzer import StatisticalAnalyzer

PROPORTIONS = [0.1, 0.5, 1]


@pytest.fixture
def store(counts, treatment, ratio_handler):
    return subsample(
        counts,
        PROPORTIONS,
        ["linear_model", ratio_handler],
        treatment,
        replications=2,
        seed=2024,
    )


def test_store_has_one_row_per_gene_group(store, counts):
    assert len(store) == len(counts) * len(PROPORTIONS) * 2 * 2
    assert store.columns[: len(RESULT_COLUMNS)] == RESULT_COLUMNS
    assert "average_expression" in store.extension_columns
    assert set(store.methods) == {"linear_model", "log_ratio_handler"}
    assert store.proportions == [0.1, 0.5, 1.0]
    assert len(store.keys()) == 12


def test_seed_is_attached_and_fixed(store):
    assert get_seed(store) == 2024
    with pytest.raises(InvalidSeedReuse):
        store.seed = 1


def test_random_seed_generated_when_missing(counts, treatment, ratio_handler):
    run = subsample(counts, [0.5], ratio_handler, treatment)
    assert isinstance(get_seed(run), int)


def test_depth_is_realized_total_of_the_subsample(store, counts):
    for proportion in PROPORTIONS:
        for replication in (0, 1):
            rows = store.data[
                (store.data["proportion"] == proportion)
                & (store.data["replication"] == replication)
            ]
            expected = generate_subsampled_matrix(counts, proportion, 2024, replication)
            assert set(rows["depth"]) == {int(expected.to_numpy().sum())}


def test_full_depth_rows_share_depth_across_replications(store, counts):
    full = store.data[store.data["proportion"] == 1]
    assert set(full["depth"]) == {int(counts.to_numpy().sum())}


def test_methods_see_the_same_matrix(store):
    depths = store.data.groupby(["proportion", "replication"])["depth"].nunique()
    assert (depths == 1).all()


def test_qvalues_computed_within_each_group(store):
    analyzer = StatisticalAnalyzer()
    for (method, proportion, replication), group in store:
        expected = analyzer.qvalues(group["pvalue"].to_numpy())
        np.testing.assert_allclose(group["qvalue"].to_numpy(), expected, equal_nan=True)


def test_missing_count_filled_and_extension_columns_padded(counts, treatment):
    def no_count(counts, treatment):
        return pd.DataFrame(
            {"coefficient": np.zeros(len(counts)), "pvalue": np.full(len(counts), 0.5)}
        )

    run = subsample(counts, [0.5], ["linear_model", no_count], treatment, seed=1)
    rows = run.data[run.data["method"] == "no_count"]
    assert rows["count"].isna().all()
    assert rows["average_expression"].isna().all()


def test_parallel_run_matches_serial(counts, treatment, ratio_handler):
    kwargs = dict(replications=2, seed=77)
    serial = subsample(counts, PROPORTIONS, ["linear_model", ratio_handler], treatment, **kwargs)
    parallel = subsample(
        counts, PROPORTIONS, ["linear_model", ratio_handler], treatment, n_jobs=4, **kwargs
    )
    pd.testing.assert_frame_equal(serial.data, parallel.data)


def test_adding_replications_keeps_earlier_draws(counts, treatment, ratio_handler):
    first = subsample(counts, [0.3], ratio_handler, treatment, replications=1, seed=5)
    more = subsample(counts, [0.3], ratio_handler, treatment, replications=[1, 2], seed=5)
    both = subsample(counts, [0.3], ratio_handler, treatment, replications=3, seed=5)
    combined = pd.concat([first.data, more.data], ignore_index=True)
    pd.testing.assert_frame_equal(combined, both.data)


def test_progress_reported_per_task(counts, treatment, ratio_handler):
    calls = []
    subsample(
        counts,
        PROPORTIONS,
        ratio_handler,
        treatment,
        replications=2,
        seed=3,
        progress=lambda done, total, task: calls.append((done, total, task)),
    )
    assert [c[0] for c in calls] == [1, 2, 3, 4, 5, 6]
    assert {c[1] for c in calls} == {6}
    assert calls[0][2] == (0.1, 0)


def test_contract_violation_stops_before_other_methods(counts, treatment):
    called = []

    def only_coefficient(counts, treatment):
        return pd.DataFrame({"coefficient": np.zeros(len(counts))})

    def tracked(counts, treatment):
        called.append(True)
        return pd.DataFrame({"coefficient": np.zeros(len(counts)), "pvalue": np.ones(len(counts))})

    with pytest.raises(HandlerContractViolation, match="only_coefficient"):
        subsample(counts, PROPORTIONS, [only_coefficient, tracked], treatment, seed=1)
    assert called == []


def test_handler_failure_aborts_run(counts, treatment, ratio_handler):
    def broken(counts, treatment):
        raise RuntimeError("model did not converge")

    with pytest.raises(RuntimeError, match="converge"):
        subsample(counts, PROPORTIONS, [ratio_handler, broken], treatment, seed=1)


def test_validation_happens_before_any_work(counts, treatment):
    called = []

    def tracked(counts, treatment):
        called.append(True)
        return pd.DataFrame({"coefficient": np.zeros(len(counts)), "pvalue": np.ones(len(counts))})

    with pytest.raises(InvalidProportion):
        subsample(counts, [0.5, 1.5], tracked, treatment, seed=1)
    with pytest.raises(UnknownHandler):
        subsample(counts, [0.5], [tracked, "not_a_method"], treatment, seed=1)
    with pytest.raises(IncompatibleHandlerArguments):
        subsample(counts, [0.5], [tracked, "linear_model"], treatment, seed=1, prior_count=1)
    with pytest.raises(ValueError):
        subsample(counts, [0.5], tracked, treatment[:-1], seed=1)
    assert called == []


def test_options_passed_to_handlers(counts, treatment):
    seen = []

    def with_option(counts, treatment, prior_count):
        seen.append(prior_count)
        return pd.DataFrame({"coefficient": np.zeros(len(counts)), "pvalue": np.ones(len(counts))})

    subsample(counts, [0.5], ["linear_model", with_option], treatment, seed=1, prior_count=2.0)
    assert seen == [2.0]


def test_cancellation_between_tasks(counts, treatment, ratio_handler):
    event = threading.Event()

    def stop_after_first(done, total, task):
        event.set()

    with pytest.raises(SubsamplingCancelled) as info:
        subsample(
            counts, PROPORTIONS, ratio_handler, treatment, seed=1,
            progress=stop_after_first, cancel_event=event,
        )
    assert info.value.completed == 1
    assert info.value.total == 3


def test_cancellation_can_return_partial_results(counts, treatment, ratio_handler):
    event = threading.Event()
    partial = subsample(
        counts, PROPORTIONS, ratio_handler, treatment, seed=1,
        progress=lambda *args: event.set(), cancel_event=event, return_partial=True,
    )
    assert partial.proportions == [0.1]
    assert len(partial) == len(counts)
    assert get_seed(partial) == 1


def test_earlier_methods_in_the_failing_task_have_run(counts, treatment):
    called = []

    def tracked(counts, treatment):
        called.append(True)
        return pd.DataFrame({"coefficient": np.zeros(len(counts)), "pvalue": np.ones(len(counts))})

    def only_coefficient(counts, treatment):
        return pd.DataFrame({"coefficient": np.zeros(len(counts))})

    with pytest.raises(HandlerContractViolation, match="only_coefficient"):
        subsample(counts, PROPORTIONS, [tracked, only_coefficient], treatment, seed=1)
    assert called == [True]


def test_duplicate_proportions_rejected(counts, treatment, ratio_handler):
    with pytest.raises(ValueError, match="unique"):
        subsample(counts, [0.5, 0.5, 1], ratio_handler, treatment, seed=1)
    with pytest.raises(ValueError, match="unique"):
        subsample(counts, [1, 1.0], ratio_handler, treatment, seed=1)
