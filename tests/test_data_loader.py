import numpy as np
import pandas as pd
import pytest

from census_income.data_loader import DataLoader, SchemaError


def test_missing_token_becomes_missing_in_every_field(config, raw_train):
    raw = raw_train.copy()
    raw.loc[0, "workclass"] = "?"
    raw.loc[1, "age"] = "?"
    raw.loc[2, "native-country"] = " ? "
    raw.loc[3, "occupation"] = ""

    cleaned = DataLoader(config).clean(raw, labeled=True)

    assert pd.isna(cleaned.loc[0, "workclass"])
    assert pd.isna(cleaned.loc[1, "age"])
    assert pd.isna(cleaned.loc[2, "native-country"])
    assert pd.isna(cleaned.loc[3, "occupation"])
    for col in cleaned.columns:
        if isinstance(cleaned[col].dtype, pd.CategoricalDtype):
            assert "?" not in cleaned[col].cat.categories


def test_common_missing_markers_become_missing(config, raw_train):
    raw = raw_train.copy()
    raw.loc[0, "workclass"] = "NA"
    raw.loc[1, "occupation"] = "N/A"
    raw.loc[2, "race"] = "null"
    raw.loc[3, "hours-per-week"] = "NaN"

    cleaned = DataLoader(config).clean(raw, labeled=True)

    assert pd.isna(cleaned.loc[0, "workclass"])
    assert pd.isna(cleaned.loc[1, "occupation"])
    assert pd.isna(cleaned.loc[2, "race"])
    assert pd.isna(cleaned.loc[3, "hours-per-week"])
    assert "NA" not in cleaned["workclass"].cat.categories


def test_label_terminator_variants_collapse(config, census_factory):
    raw = census_factory(50, seed=3, terminator_share=0.5)
    assert raw["income"].str.endswith(".").any()

    cleaned = DataLoader(config).clean(raw, labeled=True)

    assert set(cleaned["income"].dropna().unique()) <= {"<=50K", ">50K"}
    assert isinstance(cleaned["income"].dtype, pd.CategoricalDtype)


def test_only_one_trailing_terminator_is_stripped(config, census_factory):
    raw = census_factory(5, seed=3, terminator_share=0.0)
    raw.loc[0, "income"] = ">50K.."

    cleaned = DataLoader(config).clean(raw, labeled=True)

    assert cleaned.loc[0, "income"] == ">50K."


def test_clean_types_columns_and_keeps_input(config, raw_train):
    original = raw_train.copy()

    cleaned = DataLoader(config).clean(raw_train, labeled=True)

    pd.testing.assert_frame_equal(raw_train, original)
    assert pd.api.types.is_numeric_dtype(cleaned["age"])
    assert pd.api.types.is_numeric_dtype(cleaned["capital-gain"])
    assert isinstance(cleaned["sex"].dtype, pd.CategoricalDtype)
    assert cleaned.loc[0, "age"] == float(raw_train.loc[0, "age"])


@pytest.mark.parametrize("index_name", ["", "Unnamed: 0", "X"])
def test_positional_index_column_is_dropped(config, raw_test, index_name):
    raw = raw_test.copy()
    raw.insert(0, index_name, np.arange(1, len(raw) + 1).astype(str))

    cleaned = DataLoader(config).clean(raw, labeled=False)

    assert index_name not in cleaned.columns
    assert list(cleaned.columns) == DataLoader(config).feature_columns


def test_missing_expected_columns_raise_schema_error(config, raw_train):
    raw = raw_train.drop(columns=["age", "sex"])

    with pytest.raises(SchemaError, match="age"):
        DataLoader(config).clean(raw, labeled=True)

    assert issubclass(SchemaError, ValueError)


def test_unparseable_numeric_column_raises_schema_error(config, raw_train):
    raw = raw_train.copy()
    raw["age"] = "forty"

    with pytest.raises(SchemaError, match="age"):
        DataLoader(config).clean(raw, labeled=True)


def test_stray_non_numeric_value_is_marked_missing(config, raw_train):
    raw = raw_train.copy()
    raw.loc[5, "age"] = "forty"

    cleaned = DataLoader(config).clean(raw, labeled=True)

    assert pd.isna(cleaned.loc[5, "age"])
    assert cleaned["age"].notna().sum() == len(raw) - 1


def test_unlabeled_file_needs_no_label(config, raw_test):
    cleaned = DataLoader(config).clean(raw_test, labeled=False)

    assert "income" not in cleaned.columns
    assert len(cleaned) == len(raw_test)


def test_extra_columns_are_ignored(config, raw_test):
    raw = raw_test.copy()
    raw["notes"] = "free text"

    cleaned = DataLoader(config).clean(raw, labeled=False)

    assert "notes" not in cleaned.columns


def test_load_data_reads_both_files(config, data_files, raw_train, raw_test):
    loader = DataLoader(config)

    train_df, test_df = loader.load_data()

    assert len(train_df) == len(raw_train)
    assert len(test_df) == len(raw_test)
    assert set(train_df["income"].dropna().unique()) <= {"<=50K", ">50K"}

    summary = loader.get_data_summary()
    assert summary["n_train"] == len(raw_train)
    assert summary["n_test"] == len(raw_test)
    assert sum(summary["label_counts"].values()) == len(raw_train)
    assert 0.0 < summary["positive_rate"] < 1.0


def test_load_raw_missing_file(config, tmp_path):
    with pytest.raises(FileNotFoundError):
        DataLoader(config).load_raw(tmp_path / "absent.csv")


def test_get_feature_target_drops_unlabeled_rows(config, raw_train):
    raw = raw_train.copy()
    raw.loc[[0, 5], "income"] = "?"
    loader = DataLoader(config)

    X, y = loader.get_feature_target(loader.clean(raw, labeled=True))

    assert len(X) == len(y) == len(raw) - 2
    assert not y.isna().any()
    assert list(X.columns) == loader.feature_columns
