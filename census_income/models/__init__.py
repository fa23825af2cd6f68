"""
Models package
"""

from .base_model import BaseModel
from .linear_models import LogisticRegressionModel
from .tree_models import RandomForestModel, GradientBoostingModel

__all__ = [
    'BaseModel',
    'LogisticRegressionModel',
    'RandomForestModel',
    'GradientBoostingModel'
]

# Model registry for easy access
MODEL_REGISTRY = {
    'logistic_regression': LogisticRegressionModel,
    'random_forest': RandomForestModel,
    'gradient_boosting': GradientBoostingModel
}


def get_model(model_name: str, config: dict):
    """
    Get model instance by name

    Args:
        model_name: Name of the model
        config: Model configuration

    Returns:
        Model instance
    """
    if model_name not in MODEL_REGISTRY:
        raise ValueError(f"Unknown model: {model_name}. Available models: {list(MODEL_REGISTRY.keys())}")

    model_class = MODEL_REGISTRY[model_name]
    return model_class(config)
