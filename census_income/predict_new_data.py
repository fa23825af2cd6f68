"""
Predict income classes for new census records with persisted artifacts
"""

import sys
import logging
import argparse
import traceback
from pathlib import Path
from typing import Dict, Any, Optional

import joblib
import numpy as np
import pandas as pd

from .data_loader import DataLoader
from .evaluator import Evaluator
from .models import get_model
from .utils import load_config, save_predictions

logger = logging.getLogger(__name__)


class ModelPredictor:
    """Handle predictions on new data using the fitted preprocessor and a trained model"""

    def __init__(self, config_path: str = "config/config.yaml"):
        """
        Initialize predictor

        Args:
            config_path: Path to configuration file
        """
        self.config = load_config(config_path)
        self.model_artifacts_dir = Path(self.config.get('output', {}).get('model_artifacts_dir',
                                                                          'results/model_artifacts'))
        self.preprocessor = None
        self.best_model_name = None
        self.model = None
        self.data_loader = DataLoader(self.config)
        self.evaluator = Evaluator(self.config)

    def load_artifacts(self, model_name: Optional[str] = None) -> None:
        """
        Load the fitted preprocessor and a trained model

        Args:
            model_name: Model family to use, the selected best model by default
        """
        pipeline_path = self.model_artifacts_dir / "pipeline.pkl"
        if not pipeline_path.exists():
            raise FileNotFoundError(f"Pipeline artifact not found: {pipeline_path}. Run main.py first.")

        pipeline = joblib.load(pipeline_path)
        self.preprocessor = pipeline['preprocessor']
        self.best_model_name = pipeline.get('best_model')

        model_name = model_name or self.best_model_name
        if model_name is None:
            raise ValueError("No model name given and no best model recorded in the pipeline artifact")

        model_path = self.model_artifacts_dir / f"{model_name}_model.pkl"
        self.model = get_model(model_name, {'model_name': model_name}).load_model(model_path)
        logger.info(f"Using {model_name} for prediction")

    def load_new_data(self, data_path: str) -> pd.DataFrame:
        """
        Load and clean new unlabeled records

        Args:
            data_path: Path to new data CSV file

        Returns:
            Cleaned feature frame
        """
        logger.info(f"Loading new data from {data_path}")

        raw = self.data_loader.load_raw(data_path)
        labeled = self.data_loader.label_column in raw.columns
        cleaned = self.data_loader.clean(raw, labeled=labeled)

        return cleaned[self.data_loader.feature_columns]

    def predict(self, X_new: pd.DataFrame) -> np.ndarray:
        """
        Predict binary income classes

        Args:
            X_new: Cleaned feature frame

        Returns:
            Array of 0/1 predictions, 1 for the positive label
        """
        if self.model is None or self.preprocessor is None:
            raise ValueError("Artifacts not loaded. Call load_artifacts() first.")

        X_processed = self.preprocessor.transform(X_new)
        labels = self.model.predict(X_processed)
        return self.evaluator.to_binary(labels)

    def run(self, data_path: str, output_path: str, model_name: Optional[str] = None) -> Dict[str, Any]:
        """Load artifacts, predict a file and write the predictions"""
        self.load_artifacts(model_name)
        X_new = self.load_new_data(data_path)
        predictions = self.predict(X_new)
        save_predictions(predictions, output_path)

        summary = {
            'n_records': int(len(predictions)),
            'n_positive': int(predictions.sum()),
            'model': self.model.model_name,
            'output': str(output_path)
        }
        logger.info(f"Prediction summary: {summary}")
        return summary


def main():
    parser = argparse.ArgumentParser(description="Predict income classes for new census records")
    parser.add_argument("--data", required=True, help="Path to the new data CSV file")
    parser.add_argument("--output", default="results/new_predictions.csv", help="Output CSV path")
    parser.add_argument("--config", default="config/config.yaml", help="Path to configuration file")
    parser.add_argument("--model", default=None, help="Model family to use instead of the best model")

    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    try:
        predictor = ModelPredictor(args.config)
        predictor.run(args.data, args.output, args.model)
    except Exception as e:
        logger.error(f"Prediction failed with error: {str(e)}")
        logger.error(traceback.format_exc())
        sys.exit(1)


if __name__ == "__main__":
    main()
