"""
Utility functions
"""

import yaml
import json
import logging
import pandas as pd
import numpy as np
from pathlib import Path
from typing import Dict, Any, Optional
import datetime

logger = logging.getLogger(__name__)


def setup_logging(config: Dict[str, Any]) -> None:
    """
    Setup logging configuration

    Args:
        config: Configuration dictionary
    """
    log_config = config.get('logging', {})
    log_level = log_config.get('level', 'INFO')
    log_file = log_config.get('log_file', 'logs/pipeline.log')

    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=getattr(logging, log_level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()
        ]
    )

    logger.info(f"Logging configured. Level: {log_level}, File: {log_file}")


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration from YAML file

    Args:
        config_path: Path to configuration file

    Returns:
        Configuration dictionary
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, 'r') as f:
        config = yaml.safe_load(f) or {}

    logger.info(f"Configuration loaded from {config_path}")

    return config


def load_model_config(config: Dict[str, Any], model_name: str) -> Dict[str, Any]:
    """
    Resolve the configuration of one model family

    Inline entries under ``models`` in the main configuration take precedence
    over ``<models_config_dir>/<model_name>.yaml``.
    """
    inline = config.get('models', {}) or {}
    if model_name in inline:
        model_config = dict(inline[model_name])
    else:
        models_dir = Path(config.get('models_config_dir', 'config/models'))
        model_config = load_config(str(models_dir / f"{model_name}.yaml"))

    model_config.setdefault('model_name', model_name)
    return model_config


def save_results(results: Dict[str, Any], output_dir: str = "results") -> Path:
    """
    Save training results

    Args:
        results: Results dictionary
        output_dir: Output directory

    Returns:
        Path of the timestamped JSON results file
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
    results_path = output_dir / f"results_{timestamp}.json"

    serializable_results = make_serializable(results)

    with open(results_path, 'w') as f:
        json.dump(serializable_results, f, indent=2)

    logger.info(f"Detailed results saved to {results_path}")

    models_dir = output_dir / "models"
    models_dir.mkdir(parents=True, exist_ok=True)

    for model_name, model_results in results.get('model_results', {}).items():
        model_path = models_dir / f"{model_name}_results.json"
        serializable_model_results = make_serializable(model_results)

        with open(model_path, 'w') as f:
            json.dump(serializable_model_results, f, indent=2)

        logger.info(f"{model_name} results saved to {model_path}")

    return results_path


def make_serializable(obj: Any) -> Any:
    """
    Convert non-serializable objects to serializable format

    Args:
        obj: Object to convert

    Returns:
        Serializable object
    """
    if isinstance(obj, np.ndarray):
        return [make_serializable(item) for item in obj.tolist()]
    elif isinstance(obj, pd.DataFrame):
        return make_serializable(obj.to_dict('records'))
    elif isinstance(obj, pd.Series):
        return make_serializable(obj.to_dict())
    elif isinstance(obj, np.integer):
        return int(obj)
    elif isinstance(obj, np.floating):
        obj = float(obj)
        return None if np.isnan(obj) else obj
    elif isinstance(obj, np.bool_):
        return bool(obj)
    elif isinstance(obj, float):
        return None if np.isnan(obj) else obj
    elif isinstance(obj, dict):
        return {str(k): make_serializable(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [make_serializable(item) for item in obj]
    elif obj is None or isinstance(obj, (str, int, bool)):
        return obj
    else:
        return str(obj)


def create_output_directories(config: Dict[str, Any]) -> None:
    """
    Create output directories based on configuration

    Args:
        config: Configuration dictionary
    """
    output_config = config.get('output', {})

    directories = [
        output_config.get('results_dir', 'results'),
        output_config.get('model_artifacts_dir', 'results/model_artifacts'),
        output_config.get('tuning_dir', 'results/tuning'),
        output_config.get('plots_dir', 'results/plots'),
        Path(output_config.get('predictions_file', 'results/predictions.csv')).parent,
        Path(output_config.get('comparison_file', 'results/model_comparison.csv')).parent,
    ]

    for directory in directories:
        Path(directory).mkdir(parents=True, exist_ok=True)

    logger.info("Output directories created")


def save_predictions(predictions: np.ndarray,
                     output_path: str,
                     column_name: str = 'prediction') -> Path:
    """
    Save binary predictions as a single-column CSV

    Args:
        predictions: 0/1 predictions, one per evaluation record
        output_path: Destination CSV path
        column_name: Header of the single output column

    Returns:
        Path of the written file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    predictions = np.asarray(predictions).astype(int)
    invalid = set(np.unique(predictions)) - {0, 1}
    if invalid:
        raise ValueError(f"Predictions must be binary 0/1, got values {sorted(invalid)}")

    pd.DataFrame({column_name: predictions}).to_csv(output_path, index=False)

    logger.info(f"{len(predictions)} predictions saved to {output_path}")
    return output_path


def save_tuning_summary(summary: pd.DataFrame,
                        model_name: str,
                        output_dir: str = "results/tuning") -> Optional[Path]:
    """
    Save the per-candidate tuning summary of one model family

    Args:
        summary: Candidate summary DataFrame
        model_name: Name of the model family
        output_dir: Output directory
    """
    if summary is None or summary.empty:
        return None

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    filepath = output_dir / f"{model_name}_tuning_summary.csv"
    summary.to_csv(filepath, index=False)

    logger.info(f"Tuning summary saved to {filepath}")
    return filepath


def save_feature_importance(feature_importance: pd.DataFrame,
                            model_name: str,
                            output_dir: str = "results/feature_importance") -> None:
    """
    Save feature importance

    Args:
        feature_importance: Feature importance DataFrame
        model_name: Name of the model
        output_dir: Output directory
    """
    if feature_importance is None:
        return

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    filepath = output_dir / f"{model_name}_feature_importance.csv"
    feature_importance.to_csv(filepath, index=False)

    logger.info(f"Feature importance saved to {filepath}")

