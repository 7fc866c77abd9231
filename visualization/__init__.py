"""Visualization Package - Text reports and interactive plots"""

from .reports import (
    format_evaluation,
    format_tree,
    format_tuning,
    format_comparison,
)
from .interactive import InteractivePlotter

__all__ = [
    'format_evaluation',
    'format_tree',
    'format_tuning',
    'format_comparison',
    'InteractivePlotter',
]
