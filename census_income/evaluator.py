"""
Model evaluation utilities
"""

import numpy as np
import pandas as pd
import logging
from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional
from joblib import Parallel, delayed
from scipy import stats
from sklearn.metrics import accuracy_score, precision_score, recall_score, f1_score

from .models import get_model
from .resampling import Fold, FoldPlan

logger = logging.getLogger(__name__)


@dataclass
class MetricRecord:
    """Held-out accuracy of one hyperparameter candidate on one fold"""

    model_name: str
    candidate_id: int
    fold_id: str
    accuracy: float
    params: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None or np.isnan(self.accuracy)


def fit_and_score(model_name: str,
                  model_config: Dict[str, Any],
                  candidate_id: int,
                  params: Dict[str, Any],
                  X: pd.DataFrame,
                  y: np.ndarray,
                  fold: Fold) -> MetricRecord:
    """
    Fit one candidate on the held-in rows of a fold and score the held-out rows

    Failures are recorded as a NaN accuracy with the error message so that
    the remaining units of a search still run.
    """
    try:
        model = get_model(model_name, model_config)
        model.fit(X.iloc[fold.train_index], y[fold.train_index], params)
        y_pred = np.asarray(model.predict(X.iloc[fold.test_index])).astype(str)
        accuracy = float(accuracy_score(y[fold.test_index], y_pred))
        error = None
    except Exception as e:
        accuracy = float('nan')
        error = f"{type(e).__name__}: {e}"

    return MetricRecord(
        model_name=model_name,
        candidate_id=candidate_id,
        fold_id=fold.fold_id,
        accuracy=accuracy,
        params=dict(params),
        error=error
    )


class Evaluator:
    """Handle model evaluation and metrics calculation"""

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize Evaluator

        Args:
            config: Configuration dictionary
        """
        self.config = config
        self.eval_config = config.get('evaluation', {})
        self.primary_metric = self.eval_config.get('primary_metric', 'accuracy')
        self.positive_label = config.get('data', {}).get('positive_label', '>50K')
        self.n_jobs = config.get('training', {}).get('n_jobs', 1)

    def accuracy(self, y_true, y_pred) -> float:
        """Fraction of predictions equal to the true label"""
        y_true = np.asarray(y_true).astype(str)
        y_pred = np.asarray(y_pred).astype(str)
        return float(accuracy_score(y_true, y_pred))

    def evaluate(self, y_true, y_pred) -> Dict[str, float]:
        """
        Calculate classification metrics

        Args:
            y_true: True labels
            y_pred: Predicted labels

        Returns:
            Dictionary of metrics, positive class is the configured positive label
        """
        y_true_binary = self.to_binary(y_true)
        y_pred_binary = self.to_binary(y_pred)

        metrics = {
            'accuracy': self.accuracy(y_true, y_pred),
            'precision': float(precision_score(y_true_binary, y_pred_binary, zero_division=0)),
            'recall': float(recall_score(y_true_binary, y_pred_binary, zero_division=0)),
            'f1': float(f1_score(y_true_binary, y_pred_binary, zero_division=0)),
            'positive_rate': float(np.mean(y_pred_binary)) if len(y_pred_binary) else float('nan')
        }

        return metrics

    def summarize_scores(self, scores) -> Dict[str, Any]:
        """
        Aggregate per-fold accuracies, ignoring failed folds

        Args:
            scores: Per-fold accuracies, NaN for failures

        Returns:
            Dictionary with mean, standard error, scored and failed fold counts
        """
        scores = np.asarray(scores, dtype=float)
        valid = scores[~np.isnan(scores)]

        if len(valid) == 0:
            mean = float('nan')
        else:
            mean = float(np.mean(valid))

        if len(valid) > 1:
            std_error = float(stats.sem(valid))
        else:
            std_error = float('nan')

        return {
            'mean_accuracy': mean,
            'std_error': std_error,
            'n_folds': int(len(valid)),
            'n_failed': int(len(scores) - len(valid))
        }

    def cross_validate(self, model, X: pd.DataFrame, y, fold_plan: FoldPlan,
                       n_jobs: Optional[int] = None,
                       params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Plain cross-validation of fixed parameters over a fold plan

        Args:
            model: Model wrapper whose configuration is cross-validated
            X: Preprocessed training features
            y: Training labels
            fold_plan: Shared fold plan
            n_jobs: Number of parallel workers
            params: Fixed parameters, none by default

        Returns:
            Cross-validation results
        """
        n_jobs = self.n_jobs if n_jobs is None else n_jobs
        y = np.asarray(y).astype(str)
        params = params or {}

        records = Parallel(n_jobs=n_jobs)(
            delayed(fit_and_score)(model.model_name, model.config, 0, params, X, y, fold)
            for fold in fold_plan
        )

        scores = [record.accuracy for record in records]
        summary = self.summarize_scores(scores)

        failed = [record for record in records if record.failed]
        if failed:
            logger.warning(f"{model.model_name}: {len(failed)} of {len(records)} folds failed, "
                           f"first error: {failed[0].error}")

        logger.info(f"{model.model_name} CV accuracy: {summary['mean_accuracy']:.4f} "
                    f"(SE {summary['std_error']:.4f}, {summary['n_folds']} folds)")

        return {
            'cv_folds': len(fold_plan),
            'records': list(records),
            'fold_scores': scores,
            'cv_accuracy': summary['mean_accuracy'],
            'cv_std_error': summary['std_error'],
            'n_folds': summary['n_folds'],
            'n_failed': summary['n_failed']
        }

    def evaluate_models(self, results: Dict[str, Dict[str, Any]]) -> pd.DataFrame:
        """
        Create comparison DataFrame from model results

        Args:
            results: Dictionary of model results

        Returns:
            DataFrame ranked by mean cross-validated accuracy, best first
        """
        comparison_data = []

        for model_name, model_results in results.items():
            if 'error' in model_results:
                continue

            row = {
                'model': model_name,
                'search_method': model_results.get('search_method', 'none'),
                'cv_accuracy': model_results.get('cv_accuracy', np.nan),
                'cv_std_error': model_results.get('cv_std_error', np.nan),
                'n_folds': model_results.get('n_folds', 0),
                'n_failed': model_results.get('n_failed', 0),
                'n_candidates': model_results.get('n_candidates', 1),
                'best_params': str(model_results.get('best_params') or {}),
                'training_time': model_results.get('training_time', 0),
                'n_features': model_results.get('n_features', 0)
            }

            train_metrics = model_results.get('train_metrics', {})
            for metric_name, value in train_metrics.items():
                row[f'train_{metric_name}'] = value

            comparison_data.append(row)

        comparison_df = pd.DataFrame(comparison_data)

        if not comparison_df.empty:
            comparison_df = comparison_df.sort_values('cv_accuracy', ascending=False,
                                                      kind='mergesort', na_position='last')
            comparison_df = comparison_df.reset_index(drop=True)
            comparison_df.insert(0, 'rank', np.arange(1, len(comparison_df) + 1))

        return comparison_df

    def get_best_model(self, results: Dict[str, Dict[str, Any]]) -> str:
        """
        Get the name of the model family with the highest mean CV accuracy

        Args:
            results: Dictionary of model results

        Returns:
            Name of the best model
        """
        comparison_df = self.evaluate_models(results)
        comparison_df = comparison_df.dropna(subset=['cv_accuracy']) if not comparison_df.empty else comparison_df

        if comparison_df.empty:
            raise ValueError("No successfully trained models to choose from")

        best = comparison_df.iloc[0]
        logger.info(f"Best model: {best['model']} with accuracy={best['cv_accuracy']:.4f} "
                    f"(SE {best['cv_std_error']:.4f})")

        return str(best['model'])

    def to_binary(self, labels) -> np.ndarray:
        """Map income labels to 1 for the positive label and 0 otherwise"""
        labels = np.asarray(labels).astype(str)
        return (labels == self.positive_label).astype(int)
