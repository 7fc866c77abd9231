"""
Custom errors raised by the classification pipeline.
"""

from typing import Any, Dict, Optional


class PipelineError(Exception):
    """Base class for every error raised by the pipeline."""
    pass


class InvalidParameter(PipelineError, ValueError):
    """Raised when a caller-supplied parameter is invalid (split fraction, fold count, grid definition...)."""
    pass


class IncompatibleTarget(PipelineError, TypeError):
    """Raised when the target column is not categorical."""
    pass


class LoadError(PipelineError, IOError):
    """Raised when a dataset source is unreachable, malformed or has an inconsistent schema."""
    pass


class ComputationError(PipelineError):
    """Raised when the underlying library fails to fit a model."""

    def __init__(self, message: str, params: Optional[Dict[str, Any]] = None):
        self.params = dict(params) if params else {}
        if self.params:
            message = f"{message} (hyperparameters: {self.params})"
        super().__init__(message)


class SearchCancelled(PipelineError):
    """Raised when a grid search is cancelled before it finishes."""
    pass
