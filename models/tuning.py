"""
Hyperparameter Tuning

Grid search with repeated stratified k-fold cross-validation on the
training data only. Every grid point is scored on the same resamples; the
point with the highest mean accuracy wins (ties go to the point enumerated
first) and is refit on the full training data.
"""

from dataclasses import dataclass
from itertools import product
from typing import Dict, Any, List, Mapping, Optional, Sequence, Tuple
import threading
import warnings
import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from sklearn.metrics import accuracy_score
from tqdm import tqdm

from data.dataset import Dataset
from preprocessing.formula import ModelFormula
from preprocessing.partition import Partitioner, FoldPartition
from .classifiers import Classifier, TrainedModel
from utils.exceptions import InvalidParameter, ComputationError, SearchCancelled


class HyperparameterGrid:
    """
    Cartesian product of named hyperparameter axes.

    Points are enumerated with the axes in declaration order and the last
    axis varying fastest:
        HyperparameterGrid({'sigma': [0.01, 0.1], 'C': [1, 10]}).points()
        -> {sigma: 0.01, C: 1}, {sigma: 0.01, C: 10}, {sigma: 0.1, C: 1}, ...
    """

    def __init__(self, axes: Mapping[str, Sequence[Any]]):
        if not isinstance(axes, Mapping) or not axes:
            raise InvalidParameter("A hyperparameter grid needs at least one axis")

        self.axes: Dict[str, Tuple[Any, ...]] = {}
        for name, values in axes.items():
            if not isinstance(name, str) or not name:
                raise InvalidParameter(f"Axis names must be non-empty strings, got {name!r}")
            if isinstance(values, np.ndarray):
                values = values.tolist()
            if isinstance(values, (str, bytes)) or not isinstance(values, Sequence):
                raise InvalidParameter(f"Axis '{name}' must be a sequence of candidate values, got {values!r}")
            values = tuple(values)
            if not values:
                raise InvalidParameter(f"Axis '{name}' has no candidate values")
            if len(set(map(repr, values))) != len(values):
                raise InvalidParameter(f"Axis '{name}' has duplicate candidate values: {values}")
            self.axes[name] = values

    @classmethod
    def from_dict(cls, axes: Mapping[str, Any]) -> 'HyperparameterGrid':
        """Build a grid from a plain mapping, wrapping scalar values in a list."""
        if not isinstance(axes, Mapping):
            raise InvalidParameter(f"Grid must be a mapping of axis -> values, got {type(axes)}")
        return cls({
            name: list(values) if isinstance(values, (list, tuple, np.ndarray)) else [values]
            for name, values in axes.items()
        })

    @property
    def names(self) -> List[str]:
        return list(self.axes)

    def points(self) -> List[Dict[str, Any]]:
        """Every grid point, in enumeration order."""
        return [dict(zip(self.axes, combo)) for combo in product(*self.axes.values())]

    def __len__(self) -> int:
        return int(np.prod([len(v) for v in self.axes.values()]))

    def __repr__(self) -> str:
        return f"HyperparameterGrid({dict(self.axes)})"


class CancellationToken:
    """Cooperative cancellation flag shared with a running grid search."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise SearchCancelled("Grid search was cancelled")


@dataclass(frozen=True, eq=False)
class TuningResult:
    """
    Outcome of a grid search.

    Attributes:
        best_params: Selected hyperparameters
        best_score: Mean cross-validated accuracy of best_params
        best_index: Enumeration index of best_params in the grid
        best_model: Model refit on the full training data with best_params
        cv_results: One row per grid point (param_* columns, mean_accuracy,
            std_accuracy, n_fits, status, error)
        fold_scores: Accuracy of every fit, shape (n_points, repeats * folds)
    """
    best_params: Dict[str, Any]
    best_score: float
    best_index: int
    best_model: TrainedModel
    cv_results: pd.DataFrame
    fold_scores: np.ndarray
    folds: int
    repeats: int

    @property
    def n_failed(self) -> int:
        return int((self.cv_results['status'] == 'failed').sum())


class GridSearchTuner:
    """
    Hyperparameter tuner using grid search over repeated stratified k-fold CV.

    Usage:
        tuner = GridSearchTuner(folds=10, repeats=3, seed=99)
        result = tuner.tune(SVMClassifier(sigma=0.01, C=1), train, formula,
                            HyperparameterGrid({'sigma': [0.01, 0.05], 'C': [0.5, 1, 2]}))
        result.best_params, result.best_model
    """

    def __init__(
        self,
        folds: int = 10,
        repeats: int = 3,
        seed: int = 0,
        n_jobs: int = 1,
        verbose: bool = False
    ):
        """
        Args:
            folds: Number of cross-validation folds (>= 2)
            repeats: Number of times the k-fold partition is redrawn (>= 1)
            seed: Seed of the first repeat; repeat r uses seed + r
            n_jobs: Grid points evaluated concurrently (-1 = all cores)
            verbose: Print progress
        """
        if not isinstance(folds, (int, np.integer)) or isinstance(folds, bool) or folds < 2:
            raise InvalidParameter(f"folds must be an integer >= 2, got {folds}")
        if not isinstance(repeats, (int, np.integer)) or isinstance(repeats, bool) or repeats < 1:
            raise InvalidParameter(f"repeats must be an integer >= 1, got {repeats}")
        if not isinstance(n_jobs, (int, np.integer)) or n_jobs == 0:
            raise InvalidParameter(f"n_jobs must be a non-zero integer, got {n_jobs}")

        self.folds = int(folds)
        self.repeats = int(repeats)
        self.seed = int(seed)
        self.n_jobs = int(n_jobs)
        self.verbose = verbose

    def tune(
        self,
        classifier: Classifier,
        dataset: Dataset,
        formula: ModelFormula,
        grid: HyperparameterGrid,
        cancel_token: Optional[CancellationToken] = None
    ) -> TuningResult:
        """
        Search ``grid`` and refit the best point on all of ``dataset``.

        Args:
            classifier: Variant to tune; grid values override its hyperparameters
            dataset: Training records (never the test split)
            formula: Target and feature columns
            grid: Candidate hyperparameters
            cancel_token: Optional token; when cancelled the search raises SearchCancelled

        Returns:
            TuningResult
        """
        if not isinstance(grid, HyperparameterGrid):
            grid = HyperparameterGrid.from_dict(grid)

        points = grid.points()
        candidates = [classifier.with_params(**point) for point in points]

        partitions = Partitioner(formula.target, self.seed).repeated_kfold(dataset, self.folds, self.repeats)
        token = cancel_token or CancellationToken()

        if self.verbose:
            print(f"Tuning {classifier.name}: {len(points)} grid points x "
                  f"{self.repeats} repeats x {self.folds} folds = "
                  f"{len(points) * self.repeats * self.folds} fits")

        tasks = (
            delayed(self._score_point)(candidate, dataset, formula, partitions, token)
            for candidate in tqdm(candidates, desc=f"Tuning {classifier.name}", disable=not self.verbose)
        )
        outcomes = Parallel(n_jobs=self.n_jobs, prefer='threads')(tasks)

        # Raised after the pool drains so that no worker outlives the search
        token.raise_if_cancelled()

        cv_results, fold_scores = self._collect(points, outcomes)
        best_index = self._select(cv_results)
        best_params = points[best_index]

        if self.verbose:
            print(f"  Best: {best_params} (mean accuracy {cv_results.loc[best_index, 'mean_accuracy']:.4f})")

        token.raise_if_cancelled()
        best_model = candidates[best_index].fit(dataset, formula)

        return TuningResult(
            best_params=best_params,
            best_score=float(cv_results.loc[best_index, 'mean_accuracy']),
            best_index=best_index,
            best_model=best_model,
            cv_results=cv_results,
            fold_scores=fold_scores,
            folds=self.folds,
            repeats=self.repeats
        )

    def _score_point(
        self,
        classifier: Classifier,
        dataset: Dataset,
        formula: ModelFormula,
        partitions: List[FoldPartition],
        token: CancellationToken
    ) -> Tuple[Optional[np.ndarray], Optional[ComputationError]]:
        """Accuracy of every (repeat, held-out fold) fit for one grid point."""
        scores = []
        labels = dataset.column(formula.target).astype(str).to_numpy()
        try:
            for partition in partitions:
                for train_idx, held_out_idx in partition.train_test_pairs():
                    if token.cancelled:
                        return None, None
                    model = classifier.fit(dataset.subset(train_idx), formula)
                    predicted = model.predict(dataset.subset(held_out_idx))
                    scores.append(float(accuracy_score(labels[held_out_idx], predicted)))
        except ComputationError as e:
            return None, e
        return np.asarray(scores), None

    def _collect(
        self,
        points: List[Dict[str, Any]],
        outcomes: List[Tuple[Optional[np.ndarray], Optional[ComputationError]]]
    ) -> Tuple[pd.DataFrame, np.ndarray]:
        n_fits = self.folds * self.repeats
        fold_scores = np.full((len(points), n_fits), np.nan)
        rows = []

        for i, (point, (scores, error)) in enumerate(zip(points, outcomes)):
            row = {f'param_{name}': value for name, value in point.items()}
            if error is not None:
                warnings.warn(f"Skipping grid point {point}: {error}")
                row.update({
                    'mean_accuracy': np.nan,
                    'std_accuracy': np.nan,
                    'n_fits': 0,
                    'status': 'failed',
                    'error': str(error),
                })
            else:
                fold_scores[i] = scores
                row.update({
                    'mean_accuracy': float(np.mean(scores)),
                    'std_accuracy': float(np.std(scores, ddof=1)) if len(scores) > 1 else 0.0,
                    'n_fits': len(scores),
                    'status': 'ok',
                    'error': None,
                })
            rows.append(row)

        return pd.DataFrame(rows), fold_scores

    @staticmethod
    def _select(cv_results: pd.DataFrame) -> int:
        """Index of the highest mean accuracy; the first one enumerated on ties."""
        ok = cv_results[cv_results['status'] == 'ok']
        if ok.empty:
            raise ComputationError(
                f"All {len(cv_results)} grid points failed; first error: {cv_results['error'].iloc[0]}"
            )
        scores = ok['mean_accuracy'].to_numpy()
        return int(ok.index[int(np.argmax(scores))])
