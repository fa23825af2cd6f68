"""
Linear classification models
"""

import logging
from typing import Dict, Any, Optional
from sklearn.linear_model import LogisticRegression
from .base_model import BaseModel

logger = logging.getLogger(__name__)


class LogisticRegressionModel(BaseModel):
    """Logistic regression; fitted once, never searched"""

    def __init__(self, config: Dict[str, Any]):
        """Initialize Logistic Regression model"""
        super().__init__(config)
        self.model_name = 'logistic_regression'

        if self.search_method != 'none':
            logger.warning(f"{self.model_name} has no tunable hyperparameters; "
                           f"ignoring search method '{self.search_method}'")
            self.search = {'method': 'none'}

    def build_model(self, params: Optional[Dict[str, Any]] = None) -> LogisticRegression:
        """Build Logistic Regression model with current parameters"""
        model_params = {'max_iter': 1000, **self.parameters, **(params or {})}
        return LogisticRegression(**model_params)
