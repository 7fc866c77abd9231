"""
Data Layer

Handles loading and representing labeled tabular datasets.
Report exporters live in data.exporters and are imported from there.
"""

from .dataset import Dataset, ColumnKind, infer_column_kind
from .loaders import (
    DataLoader,
    DelimitedTextLoader,
    load_dataset,
)

__all__ = [
    # Core data structures
    'Dataset',
    'ColumnKind',
    'infer_column_kind',

    # Loaders
    'DataLoader',
    'DelimitedTextLoader',
    'load_dataset',
]
