import os
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

# Ensure non-interactive backend for matplotlib
os.environ.setdefault("MPLBACKEND", "Agg")

from census_income.data_loader import DataLoader

FEATURE_LEVELS = {
    "workclass": (["Private", "Self-emp", "Gov", "?"], [0.6, 0.15, 0.2, 0.05]),
    "education": (["HS-grad", "Some-college", "Bachelors", "Masters"], [0.35, 0.25, 0.25, 0.15]),
    "marital-status": (["Married", "Never-married", "Divorced"], [0.5, 0.35, 0.15]),
    "occupation": (["Tech", "Sales", "Craft", "Exec", "?"], [0.25, 0.25, 0.2, 0.25, 0.05]),
    "relationship": (["Husband", "Wife", "Own-child", "Not-in-family"], [0.4, 0.15, 0.2, 0.25]),
    "race": (["White", "Black", "Asian", "Other"], [0.6, 0.2, 0.1, 0.1]),
    "sex": (["Male", "Female"], [0.6, 0.4]),
    "native-country": (["United-States", "Mexico", "India"], [0.97, 0.02, 0.01]),
}


def make_census_frame(n_rows: int = 200, seed: int = 0, labeled: bool = True,
                      terminator_share: float = 0.3) -> pd.DataFrame:
    """Raw census-like records, every field as text the way a CSV reader returns it."""
    rng = np.random.default_rng(seed)

    age = rng.integers(18, 80, size=n_rows)
    hours = rng.integers(20, 70, size=n_rows)
    capital_gain = np.where(rng.random(n_rows) < 0.05, rng.choice([5000, 7000, 15000], size=n_rows), 0)
    capital_loss = np.where(rng.random(n_rows) < 0.03, rng.choice([1500, 1900], size=n_rows), 0)

    df = pd.DataFrame({
        "age": age.astype(str),
        "fnlwgt": rng.integers(20000, 500000, size=n_rows).astype(str),
    })
    for col in ["workclass", "education", "marital-status", "occupation", "relationship", "race", "sex", "native-country"]:
        levels, probs = FEATURE_LEVELS[col]
        df[col] = rng.choice(levels, size=n_rows, p=probs)
    df["capital-gain"] = capital_gain.astype(str)
    df["capital-loss"] = capital_loss.astype(str)
    df["hours-per-week"] = hours.astype(str)

    if labeled:
        score = ((age > 40).astype(int)
                 + df["education"].isin(["Bachelors", "Masters"]).astype(int)
                 + (df["marital-status"] == "Married").astype(int)
                 + (hours > 45).astype(int)
                 + (rng.random(n_rows) < 0.1).astype(int))
        income = np.where(score >= 3, ">50K", "<=50K").astype(object)
        with_terminator = rng.random(n_rows) < terminator_share
        income[with_terminator] = income[with_terminator] + "."
        df["income"] = income

    return df


@pytest.fixture
def census_factory():
    return make_census_frame


@pytest.fixture
def raw_train():
    return make_census_frame(240, seed=1, labeled=True)


@pytest.fixture
def raw_test():
    return make_census_frame(60, seed=2, labeled=False)


@pytest.fixture
def config(tmp_path):
    """Small configuration writing every output under tmp_path."""
    return {
        "data": {
            "train_path": str(tmp_path / "data" / "train.csv"),
            "test_path": str(tmp_path / "data" / "test.csv"),
            "random_state": 42,
        },
        "preprocessing": {
            "near_zero_variance": {"freq_cut": 19.0, "unique_cut": 10.0},
            "unknown_level": "unknown",
        },
        "resampling": {"n_splits": 3, "n_repeats": 2},
        "training": {"n_jobs": 1, "use_cache": True},
        "models_to_run": ["logistic_regression", "random_forest", "gradient_boosting"],
        "models": {
            "logistic_regression": {
                "parameters": {"max_iter": 500},
                "search": {"method": "none"},
            },
            "random_forest": {
                "parameters": {"n_estimators": 15},
                "search": {
                    "method": "grid_search",
                    "param_grid": {"max_features": [2, 100], "min_samples_leaf": [1, 5]},
                },
            },
            "gradient_boosting": {
                "engine": "lightgbm",
                "parameters": {"n_estimators": 15},
                "search": {
                    "method": "random_search",
                    "n_iter": 3,
                    "param_distributions": {
                        "learning_rate": {"distribution": "loguniform", "low": 0.01, "high": 0.3},
                        "max_depth": {"distribution": "randint", "low": 1, "high": 4},
                        "min_leaf_size": {"distribution": "randint", "low": 5, "high": 10},
                    },
                },
            },
        },
        "output": {
            "results_dir": str(tmp_path / "results"),
            "model_artifacts_dir": str(tmp_path / "results" / "model_artifacts"),
            "tuning_dir": str(tmp_path / "results" / "tuning"),
            "plots_dir": str(tmp_path / "results" / "plots"),
            "feature_importance_dir": str(tmp_path / "results" / "feature_importance"),
            "comparison_file": str(tmp_path / "results" / "model_comparison.csv"),
            "predictions_file": str(tmp_path / "results" / "predictions.csv"),
        },
        "logging": {"level": "INFO", "log_file": str(tmp_path / "logs" / "pipeline.log")},
    }


@pytest.fixture
def data_files(config, raw_train, raw_test):
    """Write the raw frames where the configuration expects them."""
    train_path = Path(config["data"]["train_path"])
    train_path.parent.mkdir(parents=True, exist_ok=True)
    raw_train.to_csv(train_path, index=False)
    raw_test.to_csv(config["data"]["test_path"], index=False)
    return train_path, Path(config["data"]["test_path"])


@pytest.fixture
def cleaned(config, raw_train, raw_test):
    """(X_train, y_train, X_test) after cleaning."""
    loader = DataLoader(config)
    train_df = loader.clean(raw_train, labeled=True)
    test_df = loader.clean(raw_test, labeled=False)
    X_train, y_train = loader.get_feature_target(train_df)
    return X_train, y_train, test_df[loader.feature_columns]


@pytest.fixture
def preprocessed(config, cleaned):
    """(X_train, y_train, X_test) after preprocessing."""
    from census_income.preprocessor import Preprocessor

    X_train, y_train, X_test = cleaned
    preprocessor = Preprocessor(config)
    return preprocessor.fit_transform(X_train), y_train, preprocessor.transform(X_test)
