import numpy as np
import pandas as pd
import pytest

from census_income.models import get_model
from census_income.resampling import ResamplingPlanner
from census_income.tuner import HyperparameterTuner, TuningError, TuningResult


@pytest.fixture
def plan(config, preprocessed):
    _, y_train, _ = preprocessed
    return ResamplingPlanner(config).make_plan(y_train)


def _random_forest(grid, n_estimators=10):
    return get_model("random_forest", {
        "model_name": "random_forest",
        "parameters": {"n_estimators": n_estimators},
        "search": {"method": "grid_search", "param_grid": grid},
    })


def test_selected_candidate_beats_every_other(config, plan, preprocessed):
    X_train, y_train, _ = preprocessed
    model = _random_forest({"max_features": [1, 3], "min_samples_leaf": [1, 10]})

    result = HyperparameterTuner(config, plan).tune(model, X_train, y_train)

    assert isinstance(result, TuningResult)
    assert len(result.summary) == 4
    assert len(result.records) == 4 * len(plan)
    assert all(result.best_score >= score for score in result.summary["mean_accuracy"])
    assert result.best_params == result.candidates[result.best_candidate_id]
    assert len(result.fold_scores) == len(plan)


def test_failed_candidate_scores_nan_and_search_continues(config, plan, preprocessed):
    X_train, y_train, _ = preprocessed
    model = _random_forest({"min_samples_leaf": [-1, 2]})

    result = HyperparameterTuner(config, plan).tune(model, X_train, y_train)

    failed = result.summary.iloc[0]
    assert np.isnan(failed["mean_accuracy"])
    assert failed["n_failed"] == len(plan)
    assert result.best_params == {"min_samples_leaf": 2}
    assert result.n_failed == len(plan)


def test_every_candidate_failing_raises(config, plan, preprocessed):
    X_train, y_train, _ = preprocessed
    model = _random_forest({"min_samples_leaf": [-1, -2]})

    with pytest.raises(TuningError, match="min_samples_leaf"):
        HyperparameterTuner(config, plan).tune(model, X_train, y_train)


def test_ties_go_to_first_candidate(config, plan):
    tuner = HyperparameterTuner(config, plan)
    candidates = [{"a": 1}, {"a": 2}, {"a": 3}]
    summary = pd.DataFrame({
        "candidate_id": [0, 1, 2],
        "mean_accuracy": [0.80, 0.90, 0.90],
        "std_error": [0.01, 0.02, 0.03],
        "n_folds": [6, 6, 6],
    })

    result = tuner.select("random_forest", "grid_search", candidates, [], summary)

    assert result.best_candidate_id == 1
    assert result.best_params == {"a": 2}


def test_cached_result_is_reused_when_inputs_match(config, plan, preprocessed, monkeypatch):
    X_train, y_train, _ = preprocessed
    model = _random_forest({"min_samples_leaf": [1, 5]})
    first = HyperparameterTuner(config, plan).tune(model, X_train, y_train)

    def fail(*args, **kwargs):
        raise AssertionError("search should not run again")

    tuner = HyperparameterTuner(config, plan)
    monkeypatch.setattr(tuner, "score_candidates", fail)
    second = tuner.tune(model, X_train, y_train)

    assert second.fingerprint == first.fingerprint
    assert second.best_params == first.best_params


def test_cache_is_ignored_when_data_changes(config, plan, preprocessed):
    X_train, y_train, _ = preprocessed
    model = _random_forest({"min_samples_leaf": [1, 5]})
    tuner = HyperparameterTuner(config, plan)
    first = tuner.tune(model, X_train, y_train)

    changed = X_train.copy()
    changed.iloc[0, 0] += 1.0
    second = tuner.tune(model, changed, y_train)

    assert second.fingerprint != first.fingerprint


def test_cache_disabled(config, plan, preprocessed, monkeypatch):
    X_train, y_train, _ = preprocessed
    model = _random_forest({"min_samples_leaf": [1]})
    HyperparameterTuner(config, plan).tune(model, X_train, y_train)

    config["training"]["use_cache"] = False
    tuner = HyperparameterTuner(config, plan)
    calls = []
    original = tuner.score_candidates

    def counting(*args, **kwargs):
        calls.append(1)
        return original(*args, **kwargs)

    monkeypatch.setattr(tuner, "score_candidates", counting)
    tuner.tune(model, X_train, y_train)

    assert calls


def test_random_search_on_gradient_boosting(config, plan, preprocessed):
    X_train, y_train, _ = preprocessed
    model_config = dict(config["models"]["gradient_boosting"], model_name="gradient_boosting")
    model = get_model("gradient_boosting", model_config)

    result = HyperparameterTuner(config, plan).tune(model, X_train, y_train)

    assert result.method == "random_search"
    assert len(result.candidates) == 3
    assert {"learning_rate", "max_depth", "min_leaf_size"} <= set(result.best_params)
    assert 0.0 <= result.best_score <= 1.0


def test_optuna_search_scores_trials_on_fold_plan(config, plan, preprocessed):
    X_train, y_train, _ = preprocessed
    model = get_model("gradient_boosting", {
        "model_name": "gradient_boosting",
        "parameters": {"n_estimators": 10},
        "search": {
            "method": "optuna",
            "n_trials": 3,
            "param_space": {
                "learning_rate": {"distribution": "loguniform", "low": 0.01, "high": 0.3},
                "max_depth": {"distribution": "randint", "low": 1, "high": 3},
                "min_leaf_size": [5, 10],
            },
        },
    })

    result = HyperparameterTuner(config, plan).tune(model, X_train, y_train)

    assert result.method == "optuna"
    assert len(result.candidates) == 3
    assert len(result.records) == 3 * len(plan)
    assert result.best_params["min_leaf_size"] in (5, 10)
