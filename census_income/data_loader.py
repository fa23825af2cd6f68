"""
Data loading and cleaning utilities
"""

import re
import pandas as pd
import numpy as np
import logging
from pathlib import Path
from typing import Tuple, Dict, Any, List

logger = logging.getLogger(__name__)

DEFAULT_NUMERIC_COLUMNS = ['age', 'fnlwgt', 'capital-gain', 'capital-loss', 'hours-per-week']
DEFAULT_CATEGORICAL_COLUMNS = ['workclass', 'education', 'marital-status', 'occupation',
                               'relationship', 'race', 'sex', 'native-country']

# Strings pandas reads as missing by default
COMMON_NA_TOKENS = ['', '#N/A', '#N/A N/A', '#NA', '-1.#IND', '-1.#QNAN', '-NaN', '-nan', '1.#IND', '1.#QNAN',
                    '<NA>', 'N/A', 'NA', 'NULL', 'NaN', 'None', 'n/a', 'nan', 'null']


class SchemaError(ValueError):
    """Raised when an input file does not carry the expected columns"""


class DataLoader:
    """Handle loading, cleaning and typing of the census income files"""

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize DataLoader

        Args:
            config: Configuration dictionary
        """
        self.config = config
        self.data_config = config['data']
        self.random_state = self.data_config.get('random_state', 42)

        self.numeric_columns: List[str] = list(self.data_config.get('numeric_columns', DEFAULT_NUMERIC_COLUMNS))
        self.categorical_columns: List[str] = list(self.data_config.get('categorical_columns',
                                                                        DEFAULT_CATEGORICAL_COLUMNS))
        self.label_column = self.data_config.get('label_column', 'income')
        self.positive_label = self.data_config.get('positive_label', '>50K')
        self.label_terminator = self.data_config.get('label_terminator', '.')
        self.na_values = list(self.data_config.get('na_values', ['?']))
        self.index_columns = list(self.data_config.get('index_columns', ['', 'X', 'index']))

        self.train_df = None
        self.test_df = None

    @property
    def feature_columns(self) -> List[str]:
        return self.numeric_columns + self.categorical_columns

    def load_raw(self, path: str) -> pd.DataFrame:
        """
        Read a raw CSV file with every field kept as text

        Args:
            path: Path to the CSV file

        Returns:
            Raw DataFrame
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Data file not found: {path}")

        df = pd.read_csv(path, dtype=str, skipinitialspace=True, keep_default_na=False)
        logger.info(f"Loaded {path}: shape {df.shape}")
        return df

    def clean(self, df: pd.DataFrame, labeled: bool = True) -> pd.DataFrame:
        """
        Clean a raw frame into a typed Dataset

        The input frame is left untouched; a new frame is returned.

        Args:
            df: Raw DataFrame
            labeled: Whether the frame carries the income label

        Returns:
            Cleaned DataFrame
        """
        df = df.copy()

        if len(df.columns) and self._is_index_column(df.columns[0]):
            logger.info(f"Dropping positional index column '{df.columns[0]}'")
            df = df.drop(columns=df.columns[0])

        self._validate_schema(df, labeled)

        expected = self.feature_columns + ([self.label_column] if labeled else [])
        extra = [col for col in df.columns if col not in expected]
        if extra:
            logger.warning(f"Ignoring unexpected columns: {extra}")
        df = df[expected]

        tokens = list(set(self.na_values) | set(COMMON_NA_TOKENS))
        for col in df.columns:
            if pd.api.types.is_object_dtype(df[col]) or pd.api.types.is_string_dtype(df[col]):
                values = df[col].astype(object).map(lambda v: v.strip() if isinstance(v, str) else v)
                missing = values.isna() | values.isin(tokens)
                df[col] = values.where(~missing, np.nan)

        if labeled:
            if self.label_terminator:
                pattern = re.escape(self.label_terminator) + '$'
                df[self.label_column] = df[self.label_column].str.replace(pattern, '', n=1, regex=True)
            df[self.label_column] = df[self.label_column].astype('category')

        malformed = []
        for col in self.numeric_columns:
            present = df[col].notna()
            df[col] = pd.to_numeric(df[col], errors='coerce')
            unparsed = int((present & df[col].isna()).sum())
            if unparsed and unparsed == int(present.sum()):
                malformed.append(col)
            elif unparsed:
                logger.warning(f"Column '{col}': {unparsed} non-numeric values marked missing")
        if malformed:
            raise SchemaError(f"Numeric columns with no parseable values: {malformed}")

        for col in self.categorical_columns:
            df[col] = df[col].astype('category')

        n_missing = int(df.isnull().sum().sum())
        if n_missing:
            logger.info(f"Marked {n_missing} missing values across {int(df.isnull().any().sum())} columns")

        return df

    def load_data(self) -> Tuple[pd.DataFrame, pd.DataFrame]:
        """
        Load and clean the training and evaluation files

        Returns:
            Tuple of (cleaned training frame, cleaned evaluation frame)
        """
        logger.info("Loading data...")

        train_raw = self.load_raw(self.data_config['train_path'])
        test_raw = self.load_raw(self.data_config['test_path'])

        self.train_df = self.clean(train_raw, labeled=True)
        self.test_df = self.clean(test_raw, labeled=False)

        logger.info(f"Cleaned training data: shape {self.train_df.shape}")
        logger.info(f"Cleaned evaluation data: shape {self.test_df.shape}")

        return self.train_df, self.test_df

    def get_feature_target(self, df: pd.DataFrame) -> Tuple[pd.DataFrame, pd.Series]:
        """
        Split a cleaned labeled frame into features and label

        Rows without a label cannot be used for fitting and are dropped.
        """
        unlabeled = df[self.label_column].isna()
        if unlabeled.any():
            logger.warning(f"Dropping {int(unlabeled.sum())} training rows with a missing label")
            df = df.loc[~unlabeled]

        X = df[self.feature_columns].reset_index(drop=True)
        y = df[self.label_column].reset_index(drop=True)
        y = y.cat.remove_unused_categories()
        return X, y

    def get_data_summary(self) -> Dict[str, Any]:
        """
        Get summary statistics of the data

        Returns:
            Dictionary with data summary
        """
        if self.train_df is None:
            raise ValueError("Data not loaded. Call load_data() first.")

        label_counts = self.train_df[self.label_column].value_counts(dropna=False)
        summary = {
            'n_train': len(self.train_df),
            'n_test': len(self.test_df) if self.test_df is not None else 0,
            'n_numeric_features': len(self.numeric_columns),
            'n_categorical_features': len(self.categorical_columns),
            'missing_train': {k: int(v) for k, v in self.train_df.isnull().sum().items() if v},
            'label_counts': {str(k): int(v) for k, v in label_counts.items()},
            'positive_rate': float((self.train_df[self.label_column] == self.positive_label).mean()),
        }
        if self.test_df is not None:
            summary['missing_test'] = {k: int(v) for k, v in self.test_df.isnull().sum().items() if v}

        return summary

    def _is_index_column(self, name: Any) -> bool:
        name = str(name).strip()
        return name in self.index_columns or name.startswith('Unnamed')

    def _validate_schema(self, df: pd.DataFrame, labeled: bool) -> None:
        expected = self.feature_columns + ([self.label_column] if labeled else [])
        missing = [col for col in expected if col not in df.columns]
        if missing:
            kind = 'training' if labeled else 'evaluation'
            raise SchemaError(f"Missing expected columns in {kind} data: {missing}")
