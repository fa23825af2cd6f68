import numpy as np
import pandas as pd
import pytest

from census_income.evaluator import Evaluator
from census_income.models import get_model
from census_income.resampling import ResamplingPlanner


def _labels(n_pos, n_neg):
    return np.array([">50K"] * n_pos + ["<=50K"] * n_neg)


def _planner(n_splits, n_repeats, seed=42):
    return ResamplingPlanner({
        "data": {"random_state": seed},
        "resampling": {"n_splits": n_splits, "n_repeats": n_repeats},
    })


def test_plan_has_repeats_times_folds():
    plan = _planner(5, 3).make_plan(_labels(30, 70))

    assert len(plan) == 15
    assert len({fold.fold_id for fold in plan}) == 15
    assert plan.folds[0].fold_id == "Fold1.Rep1"
    assert plan.folds[-1].fold_id == "Fold5.Rep3"


def test_partitions_are_disjoint_and_cover_every_row():
    y = _labels(30, 70)
    plan = _planner(5, 2).make_plan(y)

    for fold in plan:
        assert not set(fold.train_index) & set(fold.test_index)
        assert len(fold.train_index) + len(fold.test_index) == len(y)

    for repeat in (1, 2):
        held_out = np.concatenate([fold.test_index for fold in plan if fold.repeat == repeat])
        assert sorted(held_out) == list(range(len(y)))


def test_held_out_positive_count_within_one_of_expected():
    y = _labels(37, 113)
    plan = _planner(10, 3).make_plan(y)
    positive_rate = np.mean(y == ">50K")

    for fold in plan:
        expected = positive_rate * len(fold.test_index)
        observed = np.sum(y[fold.test_index] == ">50K")
        assert abs(observed - expected) <= 1


def test_plan_is_deterministic_under_seed():
    y = _labels(30, 70)
    first = _planner(5, 2, seed=7).make_plan(y)
    second = _planner(5, 2, seed=7).make_plan(y)
    other = _planner(5, 2, seed=8).make_plan(y)

    for a, b in zip(first, second):
        np.testing.assert_array_equal(a.test_index, b.test_index)
    assert any(not np.array_equal(a.test_index, b.test_index) for a, b in zip(first, other))


def test_repeats_use_different_shuffles():
    plan = _planner(5, 2).make_plan(_labels(30, 70))

    first_repeat = [fold.test_index for fold in plan if fold.repeat == 1]
    second_repeat = [fold.test_index for fold in plan if fold.repeat == 2]
    assert any(not np.array_equal(a, b) for a, b in zip(first_repeat, second_repeat))


def test_fold_indices_are_read_only():
    plan = _planner(3, 1).make_plan(_labels(10, 20))
    fold = plan.folds[0]

    with pytest.raises(ValueError):
        fold.test_index[0] = 0
    with pytest.raises(AttributeError):
        fold.repeat = 5


def test_plan_works_as_sklearn_cv_argument():
    y = _labels(10, 20)
    plan = _planner(3, 2).make_plan(y)

    splits = list(plan.split())

    assert plan.get_n_splits() == len(splits) == 6


def test_tiny_two_to_one_dataset_with_three_folds():
    y = np.array(["<=50K"] * 4 + [">50K"] * 2)
    X = pd.DataFrame({"x1": [0.0, 1.0, 2.0, 3.0, 10.0, 11.0], "x2": [1.0, 0.0, 1.0, 0.0, 1.0, 0.0]})
    plan = _planner(3, 1).make_plan(y)

    # Majority class fills every held-out partition, minority class only fits in two
    assert all("<=50K" in y[fold.test_index] for fold in plan)
    assert sum(">50K" in y[fold.test_index] for fold in plan) == 2
    assert sum(plan.is_degenerate(fold, y) for fold in plan) == 1

    model = get_model("logistic_regression", {"model_name": "logistic_regression"})
    cv_results = Evaluator({}).cross_validate(model, X, y, plan, n_jobs=1)

    assert len(cv_results["fold_scores"]) == 3
    for score in cv_results["fold_scores"]:
        assert 0.0 <= score <= 1.0
