"""
Repeated stratified k-fold resampling plans
"""

import logging
import warnings
from dataclasses import dataclass
from typing import Dict, Any, Iterator, Tuple

import numpy as np
import pandas as pd
from sklearn.model_selection import RepeatedStratifiedKFold

logger = logging.getLogger(__name__)


def _read_only(index: np.ndarray) -> np.ndarray:
    index = np.asarray(index, dtype=np.int64).copy()
    index.setflags(write=False)
    return index


@dataclass(frozen=True, eq=False)
class Fold:
    """One held-in/held-out split of the training rows"""

    repeat: int
    fold: int
    train_index: np.ndarray
    test_index: np.ndarray

    @property
    def fold_id(self) -> str:
        return f"Fold{self.fold}.Rep{self.repeat}"


@dataclass(frozen=True, eq=False)
class FoldPlan:
    """R repeats of a V-fold stratified partition, shared by every model family"""

    n_splits: int
    n_repeats: int
    random_state: int
    n_samples: int
    folds: Tuple[Fold, ...]

    def __len__(self) -> int:
        return len(self.folds)

    def __iter__(self) -> Iterator[Fold]:
        return iter(self.folds)

    def split(self, X=None, y=None, groups=None):
        """Yield (train_index, test_index) pairs, usable as an sklearn ``cv`` argument"""
        for fold in self.folds:
            yield fold.train_index, fold.test_index

    def get_n_splits(self, X=None, y=None, groups=None) -> int:
        return len(self.folds)

    def is_degenerate(self, fold: Fold, y) -> bool:
        """Whether the held-out partition of ``fold`` misses a class present in ``y``"""
        y = np.asarray(y)
        return len(np.unique(y[fold.test_index])) < len(np.unique(y))


class ResamplingPlanner:
    """Build the stratified fold plan used to compare all model families"""

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize ResamplingPlanner

        Args:
            config: Configuration dictionary
        """
        self.config = config
        resampling_config = config.get('resampling', {})
        self.n_splits = int(resampling_config.get('n_splits', 10))
        self.n_repeats = int(resampling_config.get('n_repeats', 3))
        self.random_state = int(config.get('data', {}).get('random_state', 42))

    def make_plan(self, y) -> FoldPlan:
        """
        Partition the training rows into repeated stratified folds

        Args:
            y: Training labels used for stratification

        Returns:
            FoldPlan with n_repeats * n_splits folds
        """
        y = pd.Series(y).astype(str).to_numpy()
        splitter = RepeatedStratifiedKFold(
            n_splits=self.n_splits,
            n_repeats=self.n_repeats,
            random_state=self.random_state
        )

        folds = []
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter('always')
            for i, (train_index, test_index) in enumerate(splitter.split(np.zeros(len(y)), y)):
                folds.append(Fold(
                    repeat=i // self.n_splits + 1,
                    fold=i % self.n_splits + 1,
                    train_index=_read_only(train_index),
                    test_index=_read_only(test_index)
                ))
        for warning in caught:
            logger.warning(f"Resampling: {warning.message}")

        plan = FoldPlan(
            n_splits=self.n_splits,
            n_repeats=self.n_repeats,
            random_state=self.random_state,
            n_samples=len(y),
            folds=tuple(folds)
        )

        degenerate = [fold.fold_id for fold in plan if plan.is_degenerate(fold, y)]
        if degenerate:
            logger.warning(f"{len(degenerate)} held-out partitions miss a class: {degenerate}")

        logger.info(f"Created fold plan: {self.n_repeats} repeats x {self.n_splits} folds "
                    f"over {len(y)} rows (seed={self.random_state})")

        return plan
