"""
Model training orchestrator
"""

import numpy as np
import pandas as pd
import logging
import time
import traceback
from pathlib import Path
import joblib
from typing import Dict, Any, Optional, List
from .models import get_model, MODEL_REGISTRY
from .evaluator import Evaluator
from .resampling import FoldPlan
from .tuner import HyperparameterTuner, TuningError
from .utils import load_model_config

logger = logging.getLogger(__name__)


class Trainer:
    """Orchestrate tuning, refitting and persistence of every model family"""

    def __init__(self, config: Dict[str, Any], fold_plan: FoldPlan):
        """
        Initialize Trainer

        Args:
            config: Configuration dictionary
            fold_plan: Fold plan shared by all model families
        """
        self.config = config
        self.fold_plan = fold_plan
        self.evaluator = Evaluator(config)
        self.tuner = HyperparameterTuner(config, fold_plan)

        training_config = config.get('training', {})
        self.n_jobs = training_config.get('n_jobs', 1)
        self.use_cache = training_config.get('use_cache', True)
        self.random_state = config.get('data', {}).get('random_state', 42)
        self.artifacts_dir = Path(config.get('output', {}).get('model_artifacts_dir', 'results/model_artifacts'))

        self.results = {}
        self.trained_models = {}
        self.tuning_results = {}

    def get_model_config(self, model_name: str) -> Dict[str, Any]:
        """Family configuration with the run seed filled in"""
        model_config = load_model_config(self.config, model_name)
        model_config.setdefault('random_state', self.random_state)
        return model_config

    def train_model(self,
                    model_name: str,
                    X_train: pd.DataFrame,
                    y_train,
                    feature_names: Optional[List[str]] = None) -> Dict[str, Any]:
        """
        Tune (or cross-validate) one family and refit it on the full training set

        Args:
            model_name: Name of the model to train
            X_train: Preprocessed training features
            y_train: Training labels
            feature_names: List of feature names

        Returns:
            Training results dictionary
        """
        logger.info(f"\n{'=' * 50}")
        logger.info(f"Training {model_name} model")
        logger.info(f"{'=' * 50}")

        model_config = self.get_model_config(model_name)
        model = get_model(model_name, model_config)
        y_train = np.asarray(y_train).astype(str)
        feature_names = feature_names or list(X_train.columns)

        start_time = time.time()

        # Families without a search space are only cross-validated
        if model.search_method == 'none':
            cv_results = self.evaluator.cross_validate(model, X_train, y_train, self.fold_plan, self.n_jobs)
            if np.isnan(cv_results['cv_accuracy']):
                first_error = next((r.error for r in cv_results['records'] if r.error), 'unknown error')
                raise TuningError(f"Every cross-validation fold of {model_name} failed: {first_error}")

            best_params = {}
            tuning_summary = None
            search_results = {
                'cv_accuracy': cv_results['cv_accuracy'],
                'cv_std_error': cv_results['cv_std_error'],
                'n_folds': cv_results['n_folds'],
                'n_failed': cv_results['n_failed'],
                'n_candidates': 1,
                'best_candidate_id': 0,
                'fold_scores': cv_results['fold_scores']
            }
        else:
            tuning_result = self.tuner.tune(model, X_train, y_train)
            self.tuning_results[model_name] = tuning_result

            best_params = tuning_result.best_params
            tuning_summary = tuning_result.summary
            best_row = tuning_summary.iloc[tuning_result.best_candidate_id]
            search_results = {
                'cv_accuracy': tuning_result.best_score,
                'cv_std_error': tuning_result.std_error,
                'n_folds': int(best_row['n_folds']),
                'n_failed': int(best_row['n_failed']),
                'n_candidates': len(tuning_result.candidates),
                'best_candidate_id': tuning_result.best_candidate_id,
                'fold_scores': tuning_result.fold_scores
            }

        model = self.refit(model, model_config, best_params, X_train, y_train)
        self.trained_models[model_name] = model

        training_time = time.time() - start_time

        train_predictions = model.predict(X_train)
        train_metrics = self.evaluator.evaluate(y_train, train_predictions)

        feature_importance = model.get_feature_importance(feature_names)

        results = {
            'model_name': model_name,
            'search_method': model.search_method,
            'best_params': best_params,
            'training_time': training_time,
            'n_features': X_train.shape[1],
            'train_metrics': train_metrics,
            'feature_importance': feature_importance,
            'tuning_summary': tuning_summary,
            **search_results
        }

        logger.info(f"Training completed in {training_time:.2f} seconds")
        logger.info(f"CV accuracy: {results['cv_accuracy']:.4f} (SE {results['cv_std_error']:.4f})")
        logger.info(f"Train accuracy: {train_metrics['accuracy']:.4f}")

        return results

    def refit(self, model, model_config: Dict[str, Any], best_params: Dict[str, Any],
              X_train: pd.DataFrame, y_train: np.ndarray):
        """
        Fit the selected candidate on all training rows, reusing a persisted fit when inputs match

        Returns:
            Fitted model wrapper
        """
        fingerprint = joblib.hash({
            'model_config': model_config,
            'best_params': best_params,
            'X': X_train,
            'y': y_train
        })
        model_path = self.artifacts_dir / f"{model.model_name}_model.pkl"

        if self.use_cache and model_path.exists():
            cached = get_model(model.model_name, model_config)
            try:
                cached.load_model(model_path)
            except Exception as e:
                logger.warning(f"Could not read cached model {model_path}: {e}")
            else:
                if cached.fingerprint == fingerprint:
                    logger.info(f"Reusing cached {model.model_name} fit from {model_path}")
                    return cached

        logger.info(f"Refitting {model.model_name} on {len(y_train)} rows with {best_params}")
        model.fit(X_train, y_train, best_params)
        model.save_model(model_path, fingerprint)

        return model

    def train_all_models(self, X_train: pd.DataFrame, y_train,
                         feature_names: Optional[List[str]] = None) -> Dict[str, Dict[str, Any]]:
        """
        Train all models specified in configuration

        Args:
            X_train: Preprocessed training features
            y_train: Training labels
            feature_names: List of feature names

        Returns:
            Dictionary of results for all models
        """
        models_to_run = self.config.get('models_to_run', list(MODEL_REGISTRY.keys()))

        logger.info(f"Training {len(models_to_run)} models: {models_to_run}")

        all_results = {}

        for model_name in models_to_run:
            try:
                results = self.train_model(model_name, X_train, y_train, feature_names)
                all_results[model_name] = results
                self.results[model_name] = results

            except Exception as e:
                logger.error(f"Error training {model_name}: {str(e)}")
                logger.error(traceback.format_exc())
                all_results[model_name] = {'error': str(e)}

        return all_results

    def get_best_model(self) -> str:
        """
        Get the name of the best performing model

        Returns:
            Name of the best model
        """
        if not self.results:
            raise ValueError("No models trained yet")

        return self.evaluator.get_best_model(self.results)

    def save_trained_models(self, preprocessor, best_model_name: Optional[str] = None,
                            output_dir: Optional[str] = None) -> Path:
        """
        Save the fitted preprocessor together with the name of the selected family

        The family models themselves are persisted when refitted.

        Args:
            preprocessor: Fitted Preprocessor
            best_model_name: Name of the selected model family
            output_dir: Directory to save model artifacts

        Returns:
            Path of the pipeline artifact
        """
        output_path = Path(output_dir) if output_dir else self.artifacts_dir
        output_path.mkdir(parents=True, exist_ok=True)

        pipeline_path = output_path / "pipeline.pkl"
        joblib.dump({
            'preprocessor': preprocessor,
            'best_model': best_model_name,
            'trained_models': list(self.trained_models.keys()),
            'data_config': self.config.get('data', {})
        }, pipeline_path)
        logger.info(f"Saved preprocessor and model index to {pipeline_path}")

        return pipeline_path
