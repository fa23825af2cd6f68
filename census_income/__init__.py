"""
Census income classification pipeline
"""

from .data_loader import DataLoader, SchemaError
from .preprocessor import Preprocessor
from .resampling import ResamplingPlanner, FoldPlan, Fold
from .trainer import Trainer
from .tuner import HyperparameterTuner, TuningResult, TuningError
from .evaluator import Evaluator, MetricRecord
from .utils import setup_logging, load_config, save_results
from .visualization import Visualizer

__version__ = "1.0.0"
__all__ = [
    "DataLoader",
    "SchemaError",
    "Preprocessor",
    "ResamplingPlanner",
    "FoldPlan",
    "Fold",
    "Trainer",
    "HyperparameterTuner",
    "TuningResult",
    "TuningError",
    "Evaluator",
    "MetricRecord",
    "setup_logging",
    "load_config",
    "save_results",
    "Visualizer"
]
