"""
Data preprocessing utilities
"""

import numpy as np
import pandas as pd
import logging
from typing import Dict, Any, List, Optional
from sklearn.base import BaseEstimator, TransformerMixin
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import StandardScaler, OneHotEncoder
from sklearn.utils.validation import check_is_fitted

logger = logging.getLogger(__name__)


def numeric_columns(X: pd.DataFrame) -> List[str]:
    """Numeric, non-indicator columns of a frame"""
    return [col for col in X.columns
            if pd.api.types.is_numeric_dtype(X[col]) and not pd.api.types.is_bool_dtype(X[col])]


def categorical_columns(X: pd.DataFrame) -> List[str]:
    """Categorical or text columns of a frame"""
    return [col for col in X.columns
            if isinstance(X[col].dtype, pd.CategoricalDtype)
            or pd.api.types.is_object_dtype(X[col])
            or pd.api.types.is_string_dtype(X[col])]


def is_near_zero_variance(values: pd.Series, freq_cut: float, unique_cut: float) -> bool:
    """
    Check whether a column is concentrated in one value

    A column is near-zero variance when the ratio of the most common to the
    second most common value exceeds ``freq_cut`` and the percentage of
    distinct values is at most ``unique_cut``. A single distinct value always
    qualifies.
    """
    counts = values.value_counts(dropna=True)
    counts = counts[counts > 0]
    if len(counts) <= 1:
        return True

    freq_ratio = counts.iloc[0] / counts.iloc[1]
    percent_unique = 100.0 * len(counts) / len(values)
    return bool(freq_ratio > freq_cut and percent_unique <= unique_cut)


class ZeroVarianceFilter(BaseEstimator, TransformerMixin):
    """Drop numeric columns that take a single value in the training data"""

    def fit(self, X: pd.DataFrame, y=None):
        self.removed_columns_ = [col for col in numeric_columns(X)
                                 if X[col].nunique(dropna=True) <= 1]
        return self

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        check_is_fitted(self, 'removed_columns_')
        return X.drop(columns=self.removed_columns_, errors='ignore')


class NearZeroVarianceFilter(BaseEstimator, TransformerMixin):
    """Drop columns whose values are overwhelmingly concentrated in one value"""

    def __init__(self, freq_cut: float = 95 / 5, unique_cut: float = 10.0):
        self.freq_cut = freq_cut
        self.unique_cut = unique_cut

    def fit(self, X: pd.DataFrame, y=None):
        self.removed_columns_ = [col for col in X.columns
                                 if is_near_zero_variance(X[col], self.freq_cut, self.unique_cut)]
        return self

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        check_is_fitted(self, 'removed_columns_')
        return X.drop(columns=self.removed_columns_, errors='ignore')


class CategoricalModeImputer(BaseEstimator, TransformerMixin):
    """Fill missing categorical values with the training mode"""

    def __init__(self, fallback: str = 'unknown'):
        self.fallback = fallback

    def fit(self, X: pd.DataFrame, y=None):
        self.modes_ = {}
        for col in categorical_columns(X):
            mode = X[col].dropna().astype(str).mode()
            self.modes_[col] = mode.iloc[0] if len(mode) else self.fallback
        return self

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        check_is_fitted(self, 'modes_')
        X = X.copy()
        for col, mode in self.modes_.items():
            values = X[col].astype(object)
            X[col] = values.where(values.notna(), mode).astype(str)
        return X


class NumericMedianImputer(BaseEstimator, TransformerMixin):
    """Fill missing numeric values with the training median"""

    def fit(self, X: pd.DataFrame, y=None):
        self.medians_ = {}
        for col in numeric_columns(X):
            median = X[col].median()
            self.medians_[col] = 0.0 if pd.isna(median) else float(median)
        return self

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        check_is_fitted(self, 'medians_')
        X = X.copy()
        for col, median in self.medians_.items():
            X[col] = X[col].astype(float).fillna(median)
        return X


class UnknownLevelMapper(BaseEstimator, TransformerMixin):
    """Map categorical values outside the training levels to an explicit unknown level"""

    def __init__(self, unknown_level: str = 'unknown'):
        self.unknown_level = unknown_level

    def fit(self, X: pd.DataFrame, y=None):
        self.levels_ = {col: sorted(X[col].dropna().astype(str).unique())
                        for col in categorical_columns(X)}
        return self

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        check_is_fitted(self, 'levels_')
        X = X.copy()
        for col, levels in self.levels_.items():
            values = X[col].astype(object)
            known = values.notna() & values.astype(str).isin(levels)
            unseen = int((~known).sum())
            if unseen:
                logger.debug(f"Mapped {unseen} values of '{col}' to '{self.unknown_level}'")
            X[col] = values.astype(str).where(known, self.unknown_level)
        return X


class OneHotStep(BaseEstimator, TransformerMixin):
    """One indicator column per training level, without dropping a reference level"""

    def fit(self, X: pd.DataFrame, y=None):
        self.columns_ = categorical_columns(X)
        self.encoder_ = None
        if self.columns_:
            self.encoder_ = OneHotEncoder(handle_unknown='ignore', sparse_output=False)
            self.encoder_.fit(X[self.columns_].astype(str))
            self.indicator_columns_ = list(self.encoder_.get_feature_names_out(self.columns_))
        else:
            self.indicator_columns_ = []
        return self

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        check_is_fitted(self, 'columns_')
        if self.encoder_ is None:
            return X.copy()

        indicators = pd.DataFrame(
            self.encoder_.transform(X[self.columns_].astype(str)).astype(bool),
            columns=self.indicator_columns_,
            index=X.index
        )
        return pd.concat([X.drop(columns=self.columns_), indicators], axis=1)


class LinearCombinationFilter(BaseEstimator, TransformerMixin):
    """Drop numeric columns that are exact linear combinations of earlier numeric columns"""

    def __init__(self, tol: Optional[float] = None):
        self.tol = tol

    def fit(self, X: pd.DataFrame, y=None):
        kept = []
        self.removed_columns_ = []
        for col in numeric_columns(X):
            candidate = X[kept + [col]].to_numpy(dtype=float)
            if np.linalg.matrix_rank(candidate, tol=self.tol) > len(kept):
                kept.append(col)
            else:
                self.removed_columns_.append(col)
        return self

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        check_is_fitted(self, 'removed_columns_')
        return X.drop(columns=self.removed_columns_, errors='ignore')


class NumericStandardizer(BaseEstimator, TransformerMixin):
    """Scale numeric columns to zero mean and unit variance using training statistics"""

    def fit(self, X: pd.DataFrame, y=None):
        self.columns_ = numeric_columns(X)
        self.scaler_ = StandardScaler()
        if self.columns_:
            self.scaler_.fit(X[self.columns_].to_numpy(dtype=float))
        return self

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        check_is_fitted(self, 'columns_')
        X = X.copy()
        if self.columns_:
            X[self.columns_] = self.scaler_.transform(X[self.columns_].to_numpy(dtype=float))
        return X


class Preprocessor:
    """Fit-once, apply-many feature recipe for the census data"""

    STEP_NAMES = ['zero_variance', 'near_zero_variance', 'impute_categorical', 'impute_numeric',
                  'unknown_levels', 'one_hot', 'linear_combinations', 'standardize']

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize Preprocessor

        Args:
            config: Configuration dictionary
        """
        self.config = config
        self.preprocessing_config = config.get('preprocessing', {})

        self.pipeline = None
        self.feature_names_in = None
        self.feature_names_out = None
        self.removed_columns = {}
        self.is_fitted = False

    def create_preprocessor(self) -> Pipeline:
        """
        Create the ordered preprocessing pipeline

        Returns:
            Pipeline of DataFrame transformers
        """
        nzv_config = self.preprocessing_config.get('near_zero_variance', {})
        unknown_level = self.preprocessing_config.get('unknown_level', 'unknown')

        steps = [
            ('zero_variance', ZeroVarianceFilter()),
            ('near_zero_variance', NearZeroVarianceFilter(
                freq_cut=nzv_config.get('freq_cut', 95 / 5),
                unique_cut=nzv_config.get('unique_cut', 10.0)
            )),
            ('impute_categorical', CategoricalModeImputer(fallback=unknown_level)),
            ('impute_numeric', NumericMedianImputer()),
            ('unknown_levels', UnknownLevelMapper(unknown_level=unknown_level)),
            ('one_hot', OneHotStep()),
            ('linear_combinations', LinearCombinationFilter(
                tol=self.preprocessing_config.get('linear_combination_tol')
            )),
            ('standardize', NumericStandardizer()),
        ]

        return Pipeline(steps)

    def fit(self, X: pd.DataFrame) -> 'Preprocessor':
        """
        Fit preprocessor on training data

        Args:
            X: Training features

        Returns:
            Self
        """
        logger.info("Fitting preprocessor...")

        self.feature_names_in = list(X.columns)
        self.pipeline = self.create_preprocessor()
        X_out = self.pipeline.fit_transform(X)

        self.feature_names_out = list(X_out.columns)
        self.removed_columns = {
            name: list(step.removed_columns_)
            for name, step in self.pipeline.steps
            if getattr(step, 'removed_columns_', None)
        }
        for name, columns in self.removed_columns.items():
            logger.info(f"Step '{name}' removed columns: {columns}")

        self.is_fitted = True
        logger.info(f"Preprocessor fitted. Output features: {len(self.feature_names_out)}")

        return self

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        """
        Transform features with the frozen fitted parameters

        Args:
            X: Features to transform

        Returns:
            Float feature matrix with the fitted column set
        """
        if not self.is_fitted:
            raise ValueError("Preprocessor not fitted. Call fit() first.")

        missing = [col for col in self.feature_names_in if col not in X.columns]
        if missing:
            raise ValueError(f"Missing columns for preprocessing: {missing}")

        X_transformed = self.pipeline.transform(X[self.feature_names_in])
        return X_transformed[self.feature_names_out].astype(float)

    def fit_transform(self, X: pd.DataFrame) -> pd.DataFrame:
        """
        Fit and transform features

        Args:
            X: Features to fit and transform

        Returns:
            Transformed features
        """
        self.fit(X)
        return self.transform(X)
