"""Pipeline Package - Orchestration and configuration"""

from .config import (
    PipelineConfig,
    DataConfig,
    SplitConfig,
    TuningConfig,
    ModelConfig,
    load_config,
)
from .workflow import (
    ClassificationPipeline,
    PipelineResult,
    ModelRun,
    compare_models,
)

__all__ = [
    # Configuration
    'PipelineConfig',
    'DataConfig',
    'SplitConfig',
    'TuningConfig',
    'ModelConfig',
    'load_config',

    # Orchestration
    'ClassificationPipeline',
    'PipelineResult',
    'ModelRun',
    'compare_models',
]
