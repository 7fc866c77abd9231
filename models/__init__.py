"""Models Package - Classifier variants, tuner, evaluator"""

from .classifiers import (
    Classifier,
    DecisionTreeClassifier,
    SVMClassifier,
    TrainedModel,
    CLASSIFIERS,
    create_classifier,
)
from .tuning import (
    HyperparameterGrid,
    GridSearchTuner,
    TuningResult,
    CancellationToken,
)
from .evaluation import (
    EvaluationResult,
    ModelEvaluator,
    majority_baseline,
)

__all__ = [
    'Classifier',
    'DecisionTreeClassifier',
    'SVMClassifier',
    'TrainedModel',
    'CLASSIFIERS',
    'create_classifier',
    'HyperparameterGrid',
    'GridSearchTuner',
    'TuningResult',
    'CancellationToken',
    'EvaluationResult',
    'ModelEvaluator',
    'majority_baseline',
]
