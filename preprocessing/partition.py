"""
Stratified Partitioning

Split a labeled dataset into train/test sets, or into k cross-validation
folds, preserving the proportion of every class label.

Every split is deterministic for a given seed; the seed is always passed
in explicitly.
"""

from dataclasses import dataclass, field
from typing import List, Iterator, Tuple
import numbers
import numpy as np
from sklearn.model_selection import train_test_split, StratifiedKFold

from data.dataset import Dataset
from utils.exceptions import InvalidParameter


@dataclass(frozen=True, eq=False)
class Split:
    """
    Disjoint train/test partition of a dataset's row indices.

    Attributes:
        train: Row positions of the training set
        test: Row positions of the test set
        seed: Seed used to draw the partition
    """
    train: np.ndarray
    test: np.ndarray
    seed: int = 0

    def __post_init__(self):
        """Validate partition."""
        train = np.asarray(self.train, dtype=int)
        test = np.asarray(self.test, dtype=int)
        if len(np.unique(train)) != len(train) or len(np.unique(test)) != len(test):
            raise InvalidParameter("Split contains duplicate row indices")
        overlap = np.intersect1d(train, test)
        if overlap.size:
            raise InvalidParameter(f"train and test share {overlap.size} row indices")
        train.setflags(write=False)
        test.setflags(write=False)
        object.__setattr__(self, 'train', train)
        object.__setattr__(self, 'test', test)

    @property
    def n_train(self) -> int:
        return len(self.train)

    @property
    def n_test(self) -> int:
        return len(self.test)

    def train_dataset(self, dataset: Dataset) -> Dataset:
        """Training rows of ``dataset``."""
        return dataset.subset(self.train)

    def test_dataset(self, dataset: Dataset) -> Dataset:
        """Test rows of ``dataset``."""
        return dataset.subset(self.test)

    def __repr__(self) -> str:
        return f"Split(n_train={self.n_train}, n_test={self.n_test}, seed={self.seed})"


@dataclass(frozen=True, eq=False)
class FoldPartition:
    """
    k disjoint folds covering every row index exactly once.

    Attributes:
        folds: Row positions of each fold
        seed: Seed used to draw the folds
    """
    folds: Tuple[np.ndarray, ...]
    seed: int = 0
    n_rows: int = field(init=False)

    def __post_init__(self):
        folds = tuple(np.asarray(f, dtype=int) for f in self.folds)
        for f in folds:
            f.setflags(write=False)
        combined = np.concatenate(folds) if folds else np.array([], dtype=int)
        if len(np.unique(combined)) != len(combined):
            raise InvalidParameter("Folds are not disjoint")
        object.__setattr__(self, 'folds', folds)
        object.__setattr__(self, 'n_rows', len(combined))

    @property
    def k(self) -> int:
        return len(self.folds)

    def train_test_pairs(self) -> Iterator[Tuple[np.ndarray, np.ndarray]]:
        """
        Yield (training rows, held-out rows) for every fold-as-held-out assignment.
        """
        for i, held_out in enumerate(self.folds):
            train = np.concatenate([f for j, f in enumerate(self.folds) if j != i])
            yield np.sort(train), held_out

    def __len__(self) -> int:
        return self.k


class Partitioner:
    """
    Stratified partitioner for one target column.

    Usage:
        partitioner = Partitioner(target='Class', seed=99)
        split = partitioner.split(dataset, train_fraction=0.7)
        folds = partitioner.kfold(split.train_dataset(dataset), k=10)
    """

    def __init__(self, target: str, seed: int = 0):
        """
        Initialize partitioner.

        Args:
            target: Column whose label proportions are preserved
            seed: Random seed
        """
        self.target = target
        self.seed = int(seed)

    def split(self, dataset: Dataset, train_fraction: float) -> Split:
        """
        Draw a stratified train/test split.

        Args:
            dataset: Dataset to split
            train_fraction: Fraction of rows assigned to train, in (0, 1)

        Returns:
            Split
        """
        if not isinstance(train_fraction, numbers.Real) or isinstance(train_fraction, bool) \
                or not 0 < train_fraction < 1:
            raise InvalidParameter(f"train_fraction must be in (0, 1), got {train_fraction}")

        labels = self._labels(dataset)
        n_rows = len(labels)
        n_train = int(round(train_fraction * n_rows))
        n_classes = len(np.unique(labels))

        if n_train < n_classes or n_rows - n_train < n_classes:
            raise InvalidParameter(
                f"train_fraction={train_fraction} leaves too few rows to stratify "
                f"{n_classes} classes over {n_rows} rows"
            )
        counts = np.unique(labels, return_counts=True)[1]
        if counts.min() < 2:
            raise InvalidParameter("Every class needs at least 2 rows for a stratified split")

        indices = np.arange(n_rows)
        train_idx, test_idx = train_test_split(
            indices,
            train_size=n_train,
            stratify=labels,
            random_state=self.seed
        )
        return Split(np.sort(train_idx), np.sort(test_idx), seed=self.seed)

    def kfold(self, dataset: Dataset, k: int, seed: int = None) -> FoldPartition:
        """
        Draw k stratified folds.

        Args:
            dataset: Dataset to partition
            k: Number of folds (>= 2)
            seed: Overrides the partitioner's seed

        Returns:
            FoldPartition
        """
        if not isinstance(k, (int, np.integer)) or isinstance(k, bool) or k < 2:
            raise InvalidParameter(f"k must be an integer >= 2, got {k}")

        labels = self._labels(dataset)
        if k > len(labels):
            raise InvalidParameter(f"k={k} exceeds the number of rows ({len(labels)})")

        counts = np.unique(labels, return_counts=True)[1]
        if counts.min() < k:
            raise InvalidParameter(
                f"Smallest class has {counts.min()} rows; cannot stratify into {k} folds"
            )

        seed = self.seed if seed is None else int(seed)
        splitter = StratifiedKFold(n_splits=k, shuffle=True, random_state=seed)
        folds = tuple(
            np.sort(held_out)
            for _, held_out in splitter.split(np.zeros(len(labels)), labels)
        )
        return FoldPartition(folds, seed=seed)

    def repeated_kfold(self, dataset: Dataset, k: int, repeats: int) -> List[FoldPartition]:
        """
        Draw ``repeats`` independent k-fold partitions (seeded seed, seed+1, ...).
        """
        if not isinstance(repeats, (int, np.integer)) or repeats < 1:
            raise InvalidParameter(f"repeats must be an integer >= 1, got {repeats}")
        return [self.kfold(dataset, k, seed=self.seed + r) for r in range(repeats)]

    def _labels(self, dataset: Dataset) -> np.ndarray:
        labels = dataset.labels(self.target)
        if len(labels) == 0:
            raise InvalidParameter("Cannot partition an empty dataset")
        mask = dataset.column(self.target).isna().to_numpy()
        if mask.any():
            raise InvalidParameter(f"Target column '{self.target}' has {mask.sum()} missing values")
        return labels.astype(str)


def stratified_split(dataset: Dataset, target: str, train_fraction: float, seed: int) -> Split:
    """Stratified train/test split of ``dataset`` on ``target``."""
    return Partitioner(target, seed).split(dataset, train_fraction)


def stratified_kfold(dataset: Dataset, target: str, k: int, seed: int) -> FoldPartition:
    """k stratified folds of ``dataset`` on ``target``."""
    return Partitioner(target, seed).kfold(dataset, k)


def repeated_stratified_kfold(
    dataset: Dataset,
    target: str,
    k: int,
    repeats: int,
    seed: int
) -> List[FoldPartition]:
    """``repeats`` stratified k-fold partitions of ``dataset`` on ``target``."""
    return Partitioner(target, seed).repeated_kfold(dataset, k, repeats)
