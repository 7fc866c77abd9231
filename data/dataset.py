"""
Tabular Dataset Structure

This module defines the core data structure for a labeled tabular dataset:
an ordered set of records sharing one schema, where every column is
categorical, numeric or free text.
"""

from enum import Enum
from typing import Optional, Dict, Any, List, Iterator, Callable, Sequence, Union
import numpy as np
import pandas as pd

from utils.exceptions import InvalidParameter


class ColumnKind(str, Enum):
    """Kind of values stored in a column."""
    CATEGORICAL = 'categorical'
    NUMERIC = 'numeric'
    TEXT = 'text'


def infer_column_kind(series: pd.Series, max_categories: int = 20) -> ColumnKind:
    """
    Guess the kind of a column from its values.

    Numeric dtypes are numeric, booleans and pandas categoricals are
    categorical, and object columns are categorical when they have at most
    ``max_categories`` distinct values (text otherwise).
    """
    if pd.api.types.is_bool_dtype(series) or isinstance(series.dtype, pd.CategoricalDtype):
        return ColumnKind.CATEGORICAL
    if pd.api.types.is_numeric_dtype(series):
        return ColumnKind.NUMERIC
    if series.dropna().nunique() <= max_categories:
        return ColumnKind.CATEGORICAL
    return ColumnKind.TEXT


class Dataset:
    """
    Represents a labeled tabular dataset with a fixed schema.

    The dataset is immutable once created: accessors return copies, and the
    only way to add information is :meth:`with_derived_column`, which returns
    a new dataset.

    Attributes:
        name (str): Human readable name (usually the source file)
        schema (Dict[str, ColumnKind]): Column name -> column kind
        metadata (dict): Additional metadata (source, loader options...)
    """

    def __init__(
        self,
        frame: pd.DataFrame,
        schema: Dict[str, Union[ColumnKind, str]],
        name: str = 'dataset',
        metadata: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize a dataset.

        Args:
            frame: Records, one row per record
            schema: Kind of every column in ``frame``
            name: Dataset name
            metadata: Optional additional metadata
        """
        if not isinstance(frame, pd.DataFrame):
            raise TypeError(f"frame must be a pandas DataFrame, got {type(frame)}")

        if list(schema.keys()) != list(frame.columns):
            missing = [c for c in frame.columns if c not in schema]
            extra = [c for c in schema if c not in frame.columns]
            if missing or extra:
                raise InvalidParameter(
                    f"Schema does not match columns (missing kinds: {missing}, unknown columns: {extra})"
                )

        self.schema: Dict[str, ColumnKind] = {}
        for column in frame.columns:
            try:
                kind = ColumnKind(schema[column])
            except ValueError:
                raise InvalidParameter(f"Unknown column kind {schema[column]!r} for column '{column}'")
            if kind == ColumnKind.NUMERIC and not pd.api.types.is_numeric_dtype(frame[column]):
                raise InvalidParameter(f"Column '{column}' is declared numeric but holds {frame[column].dtype} values")
            self.schema[column] = kind

        self._frame = frame.reset_index(drop=True).copy()
        self.name = str(name)
        self.metadata = dict(metadata) if metadata else {}

    @classmethod
    def from_frame(
        cls,
        frame: pd.DataFrame,
        kinds: Optional[Dict[str, Union[ColumnKind, str]]] = None,
        name: str = 'dataset',
        max_categories: int = 20
    ) -> 'Dataset':
        """
        Create a dataset from a DataFrame, inferring the kinds not given.

        Args:
            frame: Records
            kinds: Explicit kinds for some (or all) columns
            name: Dataset name
            max_categories: Distinct-value limit for object columns to count as categorical

        Returns:
            Dataset instance
        """
        kinds = kinds or {}
        unknown = [c for c in kinds if c not in frame.columns]
        if unknown:
            raise InvalidParameter(f"Kinds given for unknown columns: {unknown}")

        schema = {
            column: kinds.get(column) or infer_column_kind(frame[column], max_categories)
            for column in frame.columns
        }
        return cls(frame, schema, name=name)

    @property
    def columns(self) -> List[str]:
        """Column names, in order."""
        return list(self.schema.keys())

    @property
    def frame(self) -> pd.DataFrame:
        """A copy of the underlying records."""
        return self._frame.copy()

    @property
    def n_rows(self) -> int:
        return len(self._frame)

    @property
    def shape(self):
        return self._frame.shape

    def kind(self, column: str) -> ColumnKind:
        """Kind of ``column``."""
        self._require(column)
        return self.schema[column]

    def columns_of_kind(self, kind: Union[ColumnKind, str]) -> List[str]:
        kind = ColumnKind(kind)
        return [c for c, k in self.schema.items() if k == kind]

    def is_categorical(self, column: str) -> bool:
        return self.kind(column) == ColumnKind.CATEGORICAL

    def column(self, column: str) -> pd.Series:
        """Values of one column (copy)."""
        self._require(column)
        return self._frame[column].copy()

    def labels(self, target: str) -> np.ndarray:
        """Values of the target column as a NumPy array."""
        return self.column(target).to_numpy()

    def class_counts(self, target: str) -> pd.Series:
        """Count of every label of ``target``, sorted by label."""
        return self.column(target).value_counts(sort=False).sort_index()

    def class_proportions(self, target: str) -> pd.Series:
        """Proportion of every label of ``target``, sorted by label."""
        counts = self.class_counts(target)
        return counts / counts.sum()

    def subset(self, indices: Sequence[int]) -> 'Dataset':
        """
        Select rows by position.

        Args:
            indices: Row positions (0-based)

        Returns:
            New Dataset with the selected rows, in the given order
        """
        indices = np.asarray(indices, dtype=int)
        if indices.size and (indices.min() < 0 or indices.max() >= self.n_rows):
            raise InvalidParameter(f"Row indices out of range for dataset with {self.n_rows} rows")
        return Dataset(
            self._frame.iloc[indices],
            self.schema,
            name=self.name,
            metadata=self.metadata
        )

    def select(self, columns: Sequence[str]) -> pd.DataFrame:
        """Records restricted to ``columns`` (copy)."""
        for column in columns:
            self._require(column)
        return self._frame[list(columns)].copy()

    def with_derived_column(
        self,
        name: str,
        values: Union[Sequence[Any], Callable[[pd.DataFrame], Any]],
        kind: Union[ColumnKind, str] = ColumnKind.CATEGORICAL
    ) -> 'Dataset':
        """
        Return a new dataset with one extra (computed) column.

        Args:
            name: Name of the new column
            values: Values, or a function computing them from the records
            kind: Kind of the new column

        Returns:
            New Dataset
        """
        if name in self.schema:
            raise InvalidParameter(f"Column '{name}' already exists")

        frame = self.frame
        computed = values(frame) if callable(values) else values
        if len(computed) != len(frame):
            raise InvalidParameter(
                f"Derived column '{name}' has {len(computed)} values, expected {len(frame)}"
            )
        frame[name] = np.asarray(computed)

        schema = dict(self.schema)
        schema[name] = ColumnKind(kind)
        return Dataset(frame, schema, name=self.name, metadata=self.metadata)

    def records(self) -> Iterator[Dict[str, Any]]:
        """Iterate over the records as dictionaries."""
        for record in self._frame.to_dict(orient='records'):
            yield record

    def _require(self, column: str) -> None:
        if column not in self.schema:
            raise InvalidParameter(f"Unknown column '{column}'. Available columns: {self.columns}")

    def __len__(self) -> int:
        return self.n_rows

    def __repr__(self) -> str:
        kinds = {k.value: len(self.columns_of_kind(k)) for k in ColumnKind}
        return (
            f"Dataset(name='{self.name}', n_rows={self.n_rows}, "
            f"n_columns={len(self.schema)}, kinds={kinds})"
        )
