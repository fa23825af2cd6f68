"""
Base model class for the income classifiers
"""

from abc import ABC, abstractmethod
import numpy as np
import pandas as pd
import logging
import joblib
from pathlib import Path
from typing import Dict, Any, Optional, List
from scipy import stats
from sklearn.model_selection import ParameterGrid, ParameterSampler

logger = logging.getLogger(__name__)

SEARCH_METHODS = ('none', 'grid_search', 'random_search', 'optuna')


def build_distribution(spec: Any):
    """
    Turn a YAML search-space entry into something ParameterSampler can draw from

    Lists are sampled uniformly; dicts name a scipy distribution:
    ``{distribution: loguniform|uniform|randint, low: .., high: ..}``.
    ``randint`` bounds are inclusive.
    """
    if not isinstance(spec, dict):
        return list(spec) if isinstance(spec, (list, tuple)) else [spec]

    distribution = spec.get('distribution', 'uniform')
    low, high = spec['low'], spec['high']

    if distribution == 'loguniform':
        return stats.loguniform(low, high)
    elif distribution == 'uniform':
        return stats.uniform(low, high - low)
    elif distribution == 'randint':
        return stats.randint(int(low), int(high) + 1)
    else:
        raise ValueError(f"Unknown distribution: {distribution}")


class BaseModel(ABC):
    """Abstract base class for the model families"""

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize base model

        Args:
            config: Model configuration dictionary
        """
        self.config = config
        self.model_name = config.get('model_name', 'base_model')
        self.model_type = config.get('model_type', 'unknown')
        self.parameters = dict(config.get('parameters', {}) or {})
        self.search = dict(config.get('search', {}) or {})
        self.random_state = config.get('random_state', 42)

        self.model = None
        self.best_params = None
        self.feature_importance = None
        self.fingerprint = None
        self.is_fitted = False

    @property
    def search_method(self) -> str:
        method = self.search.get('method', 'none')
        if method not in SEARCH_METHODS:
            raise ValueError(f"Unknown search method for {self.model_name}: {method}. "
                             f"Available methods: {list(SEARCH_METHODS)}")
        return method

    @abstractmethod
    def build_model(self, params: Optional[Dict[str, Any]] = None) -> Any:
        """Build the estimator with fixed parameters updated by ``params``"""
        pass

    def fit(self, X, y, params: Optional[Dict[str, Any]] = None) -> 'BaseModel':
        """
        Fit the model

        Args:
            X: Training features
            y: Training labels
            params: Hyperparameter candidate overriding the fixed parameters

        Returns:
            Self
        """
        logger.debug(f"Training {self.model_name} with {params or {}}")

        self.model = self.build_model(params)
        self.model.fit(self._prepare_features(X), np.asarray(y).astype(str))
        self.best_params = dict(params or {})
        self.is_fitted = True

        return self

    def predict(self, X) -> np.ndarray:
        """
        Predict income labels

        Args:
            X: Features

        Returns:
            Predicted labels
        """
        if not self.is_fitted:
            raise ValueError("Model not fitted. Call fit() first.")

        return self.model.predict(self._prepare_features(X))

    def _prepare_features(self, X):
        return X

    def candidates(self, n_features: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Enumerate the hyperparameter candidates of this family

        Args:
            n_features: Number of preprocessed features, bounds feature-subsample widths

        Returns:
            Candidates in enumeration order, duplicates removed
        """
        method = self.search_method

        if method == 'none':
            candidates = [{}]
        elif method == 'grid_search':
            param_grid = self.search.get('param_grid', {})
            candidates = list(ParameterGrid(param_grid))
        elif method == 'random_search':
            param_distributions = {name: build_distribution(spec)
                                   for name, spec in self.search.get('param_distributions', {}).items()}
            candidates = list(ParameterSampler(
                param_distributions,
                n_iter=self.search.get('n_iter', 10),
                random_state=self.random_state
            ))
        else:
            raise ValueError(f"Candidates of an {method} search are proposed during the search")

        candidates = [self.constrain_params(self._to_python(params), n_features) for params in candidates]

        unique = []
        for params in candidates:
            if params not in unique:
                unique.append(params)

        return unique

    def suggest_params(self, trial, n_features: Optional[int] = None) -> Dict[str, Any]:
        """
        Draw one candidate from an Optuna trial

        Args:
            trial: optuna.trial.Trial
            n_features: Number of preprocessed features

        Returns:
            Candidate parameters
        """
        params = {}
        for name, spec in self.search.get('param_space', {}).items():
            if isinstance(spec, dict):
                distribution = spec.get('distribution', 'uniform')
                if distribution == 'randint':
                    params[name] = trial.suggest_int(name, int(spec['low']), int(spec['high']))
                else:
                    params[name] = trial.suggest_float(name, spec['low'], spec['high'],
                                                       log=distribution == 'loguniform')
            else:
                params[name] = trial.suggest_categorical(name, list(spec))

        return self.constrain_params(params, n_features)

    def constrain_params(self, params: Dict[str, Any], n_features: Optional[int] = None) -> Dict[str, Any]:
        """Clip a candidate to the legal range of this family"""
        return params

    def _extra_state(self) -> Dict[str, Any]:
        return {}

    def _restore_extra_state(self, model_data: Dict[str, Any]) -> None:
        pass

    @staticmethod
    def _to_python(params: Dict[str, Any]) -> Dict[str, Any]:
        return {k: v.item() if isinstance(v, np.generic) else v for k, v in params.items()}

    def get_feature_importance(self, feature_names: Optional[list] = None) -> Optional[pd.DataFrame]:
        """
        Get feature importance if available

        Args:
            feature_names: Optional list of feature names

        Returns:
            DataFrame with feature importance
        """
        if not self.is_fitted:
            logger.warning("Model not fitted. No feature importance available.")
            return None

        if hasattr(self.model, 'feature_importances_'):
            importances = self.model.feature_importances_
        elif hasattr(self.model, 'coef_'):
            importances = np.abs(self.model.coef_)
            if len(importances.shape) > 1:
                importances = importances.flatten()
        else:
            return None

        if feature_names is None:
            feature_names = [f'feature_{i}' for i in range(len(importances))]

        if len(feature_names) != len(importances):
            logger.warning(f"Feature names length ({len(feature_names)}) doesn't match "
                           f"importances length ({len(importances)})")
            feature_names = [f'feature_{i}' for i in range(len(importances))]

        self.feature_importance = pd.DataFrame({
            'feature': feature_names,
            'importance': importances
        }).sort_values('importance', ascending=False)

        return self.feature_importance

    def save_model(self, path: Path, fingerprint: Optional[str] = None) -> None:
        """
        Save model to disk

        Args:
            path: Path to save model
            fingerprint: Hash of the inputs the model was fitted from
        """
        if not self.is_fitted:
            logger.warning("Model not fitted. Nothing to save.")
            return

        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        model_data = {
            'model': self.model,
            'model_name': self.model_name,
            'parameters': self.parameters,
            'best_params': self.best_params,
            'feature_importance': self.feature_importance,
            'fingerprint': fingerprint,
            **self._extra_state()
        }

        joblib.dump(model_data, path)
        logger.info(f"Model saved to {path}")

    def load_model(self, path: Path) -> 'BaseModel':
        """
        Load model from disk

        Args:
            path: Path to load model from

        Returns:
            Self
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Model file not found: {path}")

        model_data = joblib.load(path)

        self.model = model_data['model']
        self.model_name = model_data['model_name']
        self.parameters = model_data['parameters']
        self.best_params = model_data['best_params']
        self.feature_importance = model_data['feature_importance']
        self.fingerprint = model_data.get('fingerprint')
        self._restore_extra_state(model_data)
        self.is_fitted = True

        logger.info(f"Model loaded from {path}")

        return self
