"""
Preprocessing Layer

Stratified partitioning, formula resolution and feature encoding.
"""

from .partition import (
    Split,
    FoldPartition,
    Partitioner,
    stratified_split,
    stratified_kfold,
    repeated_stratified_kfold,
)
from .formula import ModelFormula
from .encoding import FeatureEncoder

__all__ = [
    # Partitioning
    'Split',
    'FoldPartition',
    'Partitioner',
    'stratified_split',
    'stratified_kfold',
    'repeated_stratified_kfold',

    # Formula and encoding
    'ModelFormula',
    'FeatureEncoder',
]
