"""
Tree-based classification models
"""

import numpy as np
import logging
from typing import Dict, Any, Optional
from sklearn.ensemble import RandomForestClassifier
from sklearn.preprocessing import LabelEncoder
import xgboost as xgb
import lightgbm as lgb
from .base_model import BaseModel

logger = logging.getLogger(__name__)


class RandomForestModel(BaseModel):
    """Random Forest classifier searched over feature-subsample width and leaf size"""

    def __init__(self, config: Dict[str, Any]):
        """Initialize Random Forest model"""
        super().__init__(config)
        self.model_name = 'random_forest'

    def build_model(self, params: Optional[Dict[str, Any]] = None) -> RandomForestClassifier:
        """Build Random Forest model with current parameters"""
        model_params = {'random_state': self.random_state, **self.parameters, **(params or {})}
        return RandomForestClassifier(**model_params)

    def constrain_params(self, params: Dict[str, Any], n_features: Optional[int] = None) -> Dict[str, Any]:
        """Feature-subsample width cannot exceed the number of features"""
        max_features = params.get('max_features')
        if n_features and isinstance(max_features, int) and max_features > n_features:
            params = {**params, 'max_features': n_features}
        return params


class GradientBoostingModel(BaseModel):
    """
    Gradient boosted trees on LightGBM (default) or XGBoost

    The search space uses engine-neutral names which are translated here:
    ``min_leaf_size`` becomes ``min_child_samples`` for LightGBM and
    ``min_child_weight`` for XGBoost. A LightGBM ``max_depth`` also caps
    ``num_leaves`` at ``2 ** max_depth`` unless ``num_leaves`` is given.
    """

    ENGINES = ('lightgbm', 'xgboost')

    def __init__(self, config: Dict[str, Any]):
        """Initialize Gradient Boosting model"""
        super().__init__(config)
        self.model_name = 'gradient_boosting'
        self.engine = config.get('engine', 'lightgbm')
        if self.engine not in self.ENGINES:
            raise ValueError(f"Unknown boosting engine: {self.engine}. Available engines: {list(self.ENGINES)}")
        self.label_encoder = None

    def build_model(self, params: Optional[Dict[str, Any]] = None):
        """Build LightGBM or XGBoost model with current parameters"""
        model_params = {**self.parameters, **(params or {})}
        min_leaf_size = model_params.pop('min_leaf_size', None)

        if self.engine == 'lightgbm':
            if min_leaf_size is not None:
                model_params['min_child_samples'] = int(min_leaf_size)
            max_depth = model_params.get('max_depth')
            if max_depth is not None and max_depth > 0 and 'num_leaves' not in model_params:
                model_params['num_leaves'] = max(2, 2 ** int(max_depth))
            model_params.setdefault('verbose', -1)
            model_params.setdefault('random_state', self.random_state)
            return lgb.LGBMClassifier(**model_params)

        if min_leaf_size is not None:
            model_params['min_child_weight'] = float(min_leaf_size)
        model_params.setdefault('tree_method', 'hist')
        model_params.setdefault('random_state', self.random_state)
        return xgb.XGBClassifier(**model_params)

    def fit(self, X, y, params: Optional[Dict[str, Any]] = None) -> 'GradientBoostingModel':
        """Fit on integer-encoded labels"""
        logger.debug(f"Training {self.model_name} ({self.engine}) with {params or {}}")

        self.label_encoder = LabelEncoder()
        y_encoded = self.label_encoder.fit_transform(np.asarray(y).astype(str))

        self.model = self.build_model(params)
        self.model.fit(self._prepare_features(X), y_encoded)
        self.best_params = dict(params or {})
        self.is_fitted = True

        return self

    def predict(self, X) -> np.ndarray:
        """Predict income labels"""
        if not self.is_fitted:
            raise ValueError("Model not fitted. Call fit() first.")

        y_encoded = np.asarray(self.model.predict(self._prepare_features(X))).astype(int)
        return self.label_encoder.inverse_transform(y_encoded)

    def _prepare_features(self, X):
        # Indicator names may hold characters the boosting libraries reject
        return np.asarray(X, dtype=float)

    def _extra_state(self) -> Dict[str, Any]:
        return {'label_encoder': self.label_encoder, 'engine': self.engine}

    def _restore_extra_state(self, model_data: Dict[str, Any]) -> None:
        self.label_encoder = model_data.get('label_encoder')
        self.engine = model_data.get('engine', self.engine)
