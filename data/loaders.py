"""
Data Loaders

This module provides loaders that read a tabular dataset from a local path
or a remote URL. All loaders implement the DataLoader interface and report
every failure as a LoadError.
"""

from abc import ABC, abstractmethod
from typing import Optional, Dict, List, Sequence
from pathlib import Path
from urllib.error import URLError
from urllib.request import urlopen
import csv
import io
import warnings
import pandas as pd

from .dataset import Dataset, ColumnKind
from utils.exceptions import InvalidParameter, LoadError


def is_remote(source: str) -> bool:
    """Whether ``source`` is a URL rather than a local path."""
    return str(source).split('://', 1)[0].lower() in ('http', 'https', 'ftp', 'file')


class DataLoader(ABC):
    """
    Abstract base class for dataset loaders.

    All data loaders must implement the load() method to read a source
    and return a Dataset object.
    """

    @abstractmethod
    def load(self, source: str) -> Dataset:
        """
        Load a dataset.

        Args:
            source: Local path or URL

        Returns:
            Dataset object

        Raises:
            LoadError: If the source is unreachable or malformed
        """
        pass

    def _read_text(self, source: str, encoding: str = 'utf-8', timeout: float = 30.0) -> str:
        """Fetch the raw text of ``source``."""
        if is_remote(source):
            try:
                with urlopen(str(source), timeout=timeout) as response:
                    return response.read().decode(encoding)
            except (URLError, OSError, ValueError) as e:
                raise LoadError(f"Could not fetch {source}: {e}") from e

        filepath = Path(source)
        if not filepath.exists():
            raise LoadError(f"File not found: {filepath}")
        if filepath.is_dir():
            raise LoadError(f"Expected a file, got a directory: {filepath}")
        try:
            return filepath.read_text(encoding=encoding)
        except (OSError, UnicodeDecodeError) as e:
            raise LoadError(f"Could not read {filepath}: {e}") from e


class DelimitedTextLoader(DataLoader):
    """
    Loader for delimited text files (CSV, TSV, ...).

    The first row is the header. Column kinds are inferred from the values
    (numeric dtypes -> numeric, low-cardinality strings -> categorical,
    other strings -> text) unless given explicitly.

    Attributes:
        delimiter (str): Field separator
        categorical_columns (List[str]): Columns forced to categorical
        text_columns (List[str]): Columns forced to text
        max_categories (int): Distinct-value limit for inferred categoricals
    """

    def __init__(
        self,
        delimiter: str = ',',
        categorical_columns: Optional[Sequence[str]] = None,
        text_columns: Optional[Sequence[str]] = None,
        max_categories: int = 20,
        encoding: str = 'utf-8',
        na_values: Optional[Sequence[str]] = None
    ):
        """
        Initialize delimited text loader.

        Args:
            delimiter: Field separator
            categorical_columns: Columns to treat as categorical whatever their dtype
            text_columns: Columns to treat as free text
            max_categories: Object columns with more distinct values are text
            encoding: Text encoding
            na_values: Extra strings to treat as missing
        """
        if not delimiter:
            raise InvalidParameter("delimiter must be a non-empty string")
        overlap = set(categorical_columns or []) & set(text_columns or [])
        if overlap:
            raise InvalidParameter(f"Columns cannot be both categorical and text: {sorted(overlap)}")

        self.delimiter = delimiter
        self.categorical_columns = list(categorical_columns or [])
        self.text_columns = list(text_columns or [])
        self.max_categories = max_categories
        self.encoding = encoding
        self.na_values = list(na_values) if na_values else None

    def load(self, source: str) -> Dataset:
        """Load a dataset from a delimited text file or URL."""
        text = self._read_text(source, encoding=self.encoding)
        if not text.strip():
            raise LoadError(f"Source is empty: {source}")

        header = self._check_rows(text, source)

        try:
            frame = pd.read_csv(
                io.StringIO(text),
                sep=self.delimiter,
                na_values=self.na_values,
                skipinitialspace=True
            )
        except (pd.errors.ParserError, pd.errors.EmptyDataError, ValueError) as e:
            raise LoadError(f"Malformed rows in {source}: {e}") from e

        frame.columns = header

        kinds: Dict[str, ColumnKind] = {}
        for column in self.categorical_columns:
            kinds[column] = ColumnKind.CATEGORICAL
        for column in self.text_columns:
            kinds[column] = ColumnKind.TEXT

        missing = [c for c in kinds if c not in frame.columns]
        if missing:
            raise LoadError(f"Columns {missing} not found in {source}. Available columns: {header}")

        for column in self.categorical_columns:
            frame[column] = frame[column].astype(str).where(frame[column].notna())

        try:
            dataset = Dataset.from_frame(
                frame,
                kinds=kinds,
                name=Path(str(source)).name,
                max_categories=self.max_categories
            )
        except InvalidParameter as e:
            raise LoadError(f"Schema mismatch in {source}: {e}") from e

        dataset.metadata['source'] = str(source)
        dataset.metadata['delimiter'] = self.delimiter
        return dataset

    def _check_rows(self, text: str, source: str) -> List[str]:
        """
        Verify that every row has as many fields as the header.

        Returns:
            Header column names
        """
        reader = csv.reader(io.StringIO(text), delimiter=self.delimiter)
        header = None
        for line_number, row in enumerate(reader, start=1):
            if not row:
                continue
            if header is None:
                header = [name.strip() for name in row]
                if len(set(header)) != len(header):
                    duplicates = sorted({n for n in header if header.count(n) > 1})
                    raise LoadError(f"Duplicate column names in {source}: {duplicates}")
                if any(not name for name in header):
                    raise LoadError(f"Empty column name in header of {source}")
                continue
            if len(row) != len(header):
                raise LoadError(
                    f"Malformed row {line_number} in {source}: "
                    f"expected {len(header)} fields, got {len(row)}"
                )

        if header is None:
            raise LoadError(f"No header row found in {source}")
        return header


_FORMATS = {
    'csv': ',',
    'delimited': ',',
    'tsv': '\t',
}


def load_dataset(source: str, format: str = 'csv', **options) -> Dataset:
    """
    Load a dataset by format tag.

    Args:
        source: Local path or URL
        format: 'csv', 'tsv' or 'delimited' (comma unless ``delimiter`` is given)
        **options: Passed to the loader

    Returns:
        Dataset object
    """
    tag = str(format).lower()
    if tag not in _FORMATS:
        raise LoadError(f"Unsupported format '{format}'. Supported formats: {sorted(_FORMATS)}")

    options.setdefault('delimiter', _FORMATS[tag])
    loader = DelimitedTextLoader(**options)
    dataset = loader.load(source)

    for column in dataset.columns_of_kind(ColumnKind.TEXT):
        warnings.warn(
            f"Column '{column}' of {dataset.name} was read as free text and will not be used as a feature"
        )
    return dataset
