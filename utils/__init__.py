"""Utilities - shared exceptions"""

from .exceptions import (
    PipelineError,
    InvalidParameter,
    IncompatibleTarget,
    LoadError,
    ComputationError,
    SearchCancelled,
)

__all__ = [
    'PipelineError',
    'InvalidParameter',
    'IncompatibleTarget',
    'LoadError',
    'ComputationError',
    'SearchCancelled',
]
