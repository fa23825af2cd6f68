"""
Hyperparameter search over a shared fold plan
"""

import itertools
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Any, List, Optional, Tuple

import joblib
import numpy as np
import optuna
import pandas as pd
from joblib import Parallel, delayed

from .evaluator import Evaluator, MetricRecord, fit_and_score
from .resampling import FoldPlan

logger = logging.getLogger(__name__)


class TuningError(RuntimeError):
    """Raised when no hyperparameter candidate could be scored on any fold"""


@dataclass
class TuningResult:
    """Outcome of the search of one model family"""

    model_name: str
    method: str
    candidates: List[Dict[str, Any]]
    records: List[MetricRecord]
    summary: pd.DataFrame
    best_candidate_id: int
    best_params: Dict[str, Any]
    best_score: float
    std_error: float
    fingerprint: Optional[str] = None
    fold_scores: List[float] = field(default_factory=list)

    @property
    def n_failed(self) -> int:
        return sum(1 for record in self.records if record.failed)


class HyperparameterTuner:
    """Score every (candidate, fold) unit in parallel and select the best candidate"""

    def __init__(self, config: Dict[str, Any], fold_plan: FoldPlan):
        """
        Initialize HyperparameterTuner

        Args:
            config: Configuration dictionary
            fold_plan: Fold plan shared by all model families
        """
        self.config = config
        self.fold_plan = fold_plan
        self.evaluator = Evaluator(config)

        training_config = config.get('training', {})
        self.n_jobs = training_config.get('n_jobs', 1)
        self.use_cache = training_config.get('use_cache', True)
        self.cache_dir = Path(config.get('output', {}).get('model_artifacts_dir', 'results/model_artifacts'))

    def fingerprint(self, model, X: pd.DataFrame, y) -> str:
        """Hash of everything a search result depends on"""
        return joblib.hash({
            'model_name': model.model_name,
            'model_config': model.config,
            'folds': [(fold.fold_id, fold.train_index, fold.test_index) for fold in self.fold_plan],
            'X': X,
            'y': np.asarray(y).astype(str)
        })

    def tune(self, model, X: pd.DataFrame, y) -> TuningResult:
        """
        Search the hyperparameters of one model family

        Args:
            model: Model wrapper carrying the search configuration
            X: Preprocessed training features
            y: Training labels

        Returns:
            TuningResult with the per-candidate summary and the selected candidate
        """
        method = model.search_method
        y = np.asarray(y).astype(str)
        fingerprint = self.fingerprint(model, X, y)

        cached = self.load_cached(model.model_name, fingerprint)
        if cached is not None:
            return cached

        logger.info(f"Tuning {model.model_name} with {method}")

        if method == 'optuna':
            candidates, records = self._optuna_search(model, X, y)
        else:
            candidates = model.candidates(X.shape[1])
            logger.info(f"{len(candidates)} candidates x {len(self.fold_plan)} folds")
            records = self.score_candidates(model, candidates, X, y)

        summary = self.summarize(candidates, records)
        result = self.select(model.model_name, method, candidates, records, summary)
        result.fingerprint = fingerprint

        self.save_cache(result)

        return result

    def score_candidates(self, model, candidates: List[Dict[str, Any]], X: pd.DataFrame, y,
                         first_id: int = 0) -> List[MetricRecord]:
        """
        Fit and score every (candidate, fold) unit

        Args:
            model: Model wrapper
            candidates: Hyperparameter candidates in enumeration order
            X: Preprocessed training features
            y: Training labels
            first_id: Candidate id of the first candidate

        Returns:
            Metric records in (candidate, fold) order
        """
        y = np.asarray(y).astype(str)
        units = itertools.product(enumerate(candidates, start=first_id), self.fold_plan)

        records = Parallel(n_jobs=self.n_jobs)(
            delayed(fit_and_score)(model.model_name, model.config, candidate_id, params, X, y, fold)
            for (candidate_id, params), fold in units
        )

        failed = [record for record in records if record.failed]
        if failed:
            logger.warning(f"{model.model_name}: {len(failed)} of {len(records)} fits failed, "
                           f"first error: {failed[0].error}")

        return list(records)

    def summarize(self, candidates: List[Dict[str, Any]], records: List[MetricRecord]) -> pd.DataFrame:
        """One row per candidate: parameters, mean accuracy, standard error, fold counts"""
        rows = []
        for candidate_id, params in enumerate(candidates):
            scores = [record.accuracy for record in records if record.candidate_id == candidate_id]
            row = {'candidate_id': candidate_id, 'params': params}
            row.update({f'param_{name}': value for name, value in params.items()})
            row.update(self.evaluator.summarize_scores(scores))
            rows.append(row)

        return pd.DataFrame(rows)

    def select(self, model_name: str, method: str, candidates: List[Dict[str, Any]],
               records: List[MetricRecord], summary: pd.DataFrame) -> TuningResult:
        """
        Pick the candidate with the highest mean accuracy

        Ties go to the candidate enumerated first.
        """
        scores = summary['mean_accuracy'].to_numpy(dtype=float) if not summary.empty else np.array([])

        if len(scores) == 0 or np.all(np.isnan(scores)):
            errors = [record.error for record in records if record.error]
            first_error = errors[0] if errors else 'no candidates'
            raise TuningError(f"Every candidate of {model_name} failed: {first_error}")

        best_id = int(np.nanargmax(scores))
        best = summary.iloc[best_id]
        fold_scores = [record.accuracy for record in records if record.candidate_id == best_id]

        logger.info(f"{model_name} best candidate {best_id}: {candidates[best_id]} "
                    f"accuracy={best['mean_accuracy']:.4f} (SE {best['std_error']:.4f})")

        return TuningResult(
            model_name=model_name,
            method=method,
            candidates=candidates,
            records=records,
            summary=summary,
            best_candidate_id=best_id,
            best_params=dict(candidates[best_id]),
            best_score=float(best['mean_accuracy']),
            std_error=float(best['std_error']),
            fold_scores=fold_scores
        )

    def _optuna_search(self, model, X: pd.DataFrame, y) -> Tuple[List[Dict[str, Any]], List[MetricRecord]]:
        """Optuna TPE search, every trial scored on the shared fold plan"""
        n_trials = model.search.get('n_trials', 20)
        n_features = X.shape[1]

        candidates = []
        records = []

        def objective(trial):
            params = model.suggest_params(trial, n_features)
            candidate_records = self.score_candidates(model, [params], X, y, first_id=len(candidates))
            candidates.append(params)
            records.extend(candidate_records)

            summary = self.evaluator.summarize_scores([record.accuracy for record in candidate_records])
            return summary['mean_accuracy']

        optuna.logging.set_verbosity(optuna.logging.WARNING)
        study = optuna.create_study(direction='maximize',
                                    sampler=optuna.samplers.TPESampler(seed=model.random_state))
        study.optimize(objective, n_trials=n_trials)

        logger.info(f"Optuna finished {len(study.trials)} trials for {model.model_name}")

        return candidates, records

    def cache_path(self, model_name: str) -> Path:
        return self.cache_dir / f"{model_name}_tuning.pkl"

    def load_cached(self, model_name: str, fingerprint: str) -> Optional[TuningResult]:
        """Return a persisted result if it was computed from identical inputs"""
        path = self.cache_path(model_name)
        if not self.use_cache or not path.exists():
            return None

        try:
            result = joblib.load(path)
        except Exception as e:
            logger.warning(f"Could not read tuning cache {path}: {e}")
            return None

        if getattr(result, 'fingerprint', None) != fingerprint:
            logger.info(f"Tuning cache {path} is stale, re-running search")
            return None

        logger.info(f"Reusing cached tuning result for {model_name} from {path}")
        return result

    def save_cache(self, result: TuningResult) -> None:
        path = self.cache_path(result.model_name)
        path.parent.mkdir(parents=True, exist_ok=True)
        joblib.dump(result, path)
        logger.info(f"Tuning result saved to {path}")
