"""
Classifiers

Wrappers for the supported classifier variants with a consistent interface:

    model = SVMClassifier(sigma=0.05, C=1.0).fit(train_dataset, formula)
    labels = model.predict(test_dataset)

Every variant builds a scikit-learn estimator; fitting happens inside a
pipeline that first encodes the features (see preprocessing.encoding).
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional, Any, List
import numpy as np
import joblib

from sklearn.base import BaseEstimator
from sklearn.pipeline import Pipeline
from sklearn.svm import SVC
from sklearn.tree import DecisionTreeClassifier as SkDecisionTreeClassifier, export_text

from data.dataset import Dataset
from preprocessing.encoding import FeatureEncoder
from preprocessing.formula import ModelFormula
from utils.exceptions import InvalidParameter, IncompatibleTarget, ComputationError


class TrainedModel:
    """
    A fitted classifier.

    Produced by Classifier.fit(); not meant to be modified afterwards.

    Attributes:
        variant (str): Name of the classifier variant
        formula (ModelFormula): Target and feature columns
        hyperparameters (dict): Hyperparameters the model was fit with
        classes (np.ndarray): Labels seen during training
        n_train (int): Number of training rows
    """

    def __init__(
        self,
        variant: str,
        pipeline: Pipeline,
        encoder: FeatureEncoder,
        formula: ModelFormula,
        hyperparameters: Dict[str, Any],
        n_train: int
    ):
        self.variant = variant
        self.pipeline = pipeline
        self.encoder = encoder
        self.formula = formula
        self.hyperparameters = dict(hyperparameters)
        self.classes = np.asarray(pipeline.classes_).copy()
        self.n_train = n_train

    @property
    def estimator(self) -> BaseEstimator:
        """The fitted scikit-learn classifier."""
        return self.pipeline.named_steps['model']

    @property
    def feature_names(self) -> List[str]:
        """Names of the encoded feature columns."""
        return self.encoder.get_feature_names()

    def predict(self, dataset: Dataset) -> np.ndarray:
        """
        Predict the target label of every record.

        Args:
            dataset: Records with (at least) the feature columns

        Returns:
            Predicted labels, one per record
        """
        missing = [c for c in self.formula.features if c not in dataset.schema]
        if missing:
            raise InvalidParameter(f"Records are missing feature columns: {missing}")
        if len(dataset) == 0:
            return np.array([], dtype=self.classes.dtype)
        return self.pipeline.predict(self.encoder.frame(dataset))

    def describe(self) -> Dict[str, Any]:
        """
        Descriptive structure of the fitted model, for reporting.

        Decision trees return their node list; support-vector classifiers
        return support-vector counts.
        """
        description = {
            'variant': self.variant,
            'formula': str(self.formula),
            'hyperparameters': dict(self.hyperparameters),
            'classes': [str(c) for c in self.classes],
            'n_train': self.n_train,
        }

        estimator = self.estimator
        if isinstance(estimator, SkDecisionTreeClassifier):
            description['nodes'] = tree_nodes(estimator, self.feature_names)
            description['depth'] = int(estimator.get_depth())
            description['n_leaves'] = int(estimator.get_n_leaves())
            description['text'] = export_text(estimator, feature_names=self.feature_names)
        elif isinstance(estimator, SVC):
            description['n_support'] = {
                str(c): int(n) for c, n in zip(self.classes, estimator.n_support_)
            }
            description['n_support_total'] = int(np.sum(estimator.n_support_))
        return description

    def save(self, filepath: str) -> None:
        """Save the model to disk."""
        joblib.dump(self, filepath)

    @staticmethod
    def load(filepath: str) -> 'TrainedModel':
        """Load a model saved with save()."""
        model = joblib.load(filepath)
        if not isinstance(model, TrainedModel):
            raise TypeError(f"{filepath} does not contain a TrainedModel, got {type(model)}")
        return model

    def __repr__(self) -> str:
        return (
            f"TrainedModel(variant='{self.variant}', formula='{self.formula}', "
            f"hyperparameters={self.hyperparameters})"
        )


def tree_nodes(tree: SkDecisionTreeClassifier, feature_names: List[str]) -> List[Dict[str, Any]]:
    """
    Flatten a fitted decision tree into a node list.

    Each internal node compares one feature against one threshold
    (``feature <= threshold`` goes left).
    """
    structure = tree.tree_
    nodes = []
    for node_id in range(structure.node_count):
        left = int(structure.children_left[node_id])
        right = int(structure.children_right[node_id])
        counts = structure.value[node_id][0]
        node = {
            'node_id': node_id,
            'is_leaf': left == right,
            'n_samples': int(structure.n_node_samples[node_id]),
            'class_distribution': {
                str(c): float(v) for c, v in zip(tree.classes_, counts)
            },
            'predicted_class': str(tree.classes_[int(np.argmax(counts))]),
        }
        if left != right:
            node['feature'] = feature_names[structure.feature[node_id]]
            node['threshold'] = float(structure.threshold[node_id])
            node['left'] = left
            node['right'] = right
        nodes.append(node)
    return nodes


class Classifier(ABC):
    """
    Abstract base class for all classifier variants.

    Subclasses declare their hyperparameters and build the scikit-learn
    estimator; the base class handles target validation, feature encoding
    and fit failures.
    """

    name: str = 'classifier'
    default_scale_numeric: bool = False

    def __init__(self, scale_numeric: Optional[bool] = None, random_state: int = 42, **hyperparameters):
        self.scale_numeric = self.default_scale_numeric if scale_numeric is None else bool(scale_numeric)
        self.random_state = random_state
        self.hyperparameters = self._validate(hyperparameters)

    @abstractmethod
    def _validate(self, hyperparameters: Dict[str, Any]) -> Dict[str, Any]:
        """Check and complete hyperparameters; raise InvalidParameter on bad values."""
        pass

    @abstractmethod
    def _build_estimator(self) -> BaseEstimator:
        """Create the unfitted scikit-learn estimator."""
        pass

    def _fit_problem(self, estimator: BaseEstimator) -> Optional[str]:
        """Describe why a fitted estimator cannot be trusted, or return None."""
        return None

    def with_params(self, **params) -> 'Classifier':
        """New unfitted classifier of the same variant with some hyperparameters replaced."""
        merged = dict(self.hyperparameters)
        merged.update(params)
        return type(self)(scale_numeric=self.scale_numeric, random_state=self.random_state, **merged)

    def fit(self, dataset: Dataset, formula: ModelFormula) -> TrainedModel:
        """
        Fit the classifier.

        Args:
            dataset: Training records
            formula: Target and feature columns

        Returns:
            TrainedModel

        Raises:
            IncompatibleTarget: If the target column is not categorical
            ComputationError: If the underlying fit fails
        """
        formula.check(dataset)
        if not dataset.is_categorical(formula.target):
            raise IncompatibleTarget(
                f"Target column '{formula.target}' is {dataset.kind(formula.target).value}; "
                f"classification needs a categorical target"
            )

        y = dataset.column(formula.target)
        if y.isna().any():
            raise InvalidParameter(f"Target column '{formula.target}' has missing values")
        y = y.astype(str).to_numpy()
        if len(np.unique(y)) < 2:
            raise ComputationError(
                f"{self.name} needs at least 2 classes in the training data, got {np.unique(y).tolist()}",
                self.hyperparameters
            )

        encoder = FeatureEncoder(formula, scale_numeric=self.scale_numeric)
        pipeline = Pipeline([
            ('encode', encoder.build(dataset)),
            ('model', self._build_estimator()),
        ])

        try:
            pipeline.fit(encoder.frame(dataset), y)
        except (ValueError, ArithmeticError) as e:
            raise ComputationError(f"{self.name} fit failed: {e}", self.hyperparameters) from e

        problem = self._fit_problem(pipeline.named_steps['model'])
        if problem:
            raise ComputationError(f"{self.name} did not converge: {problem}", self.hyperparameters)

        return TrainedModel(
            variant=self.name,
            pipeline=pipeline,
            encoder=encoder,
            formula=formula,
            hyperparameters=self.hyperparameters,
            n_train=len(dataset)
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.hyperparameters})"


class DecisionTreeClassifier(Classifier):
    """
    Decision tree classifier.

    Every split compares a single feature (a numeric value or a one-hot
    indicator) against a single threshold.
    """

    name = 'decision_tree'
    default_scale_numeric = False

    def _validate(self, hyperparameters: Dict[str, Any]) -> Dict[str, Any]:
        params = {
            'max_depth': None,
            'min_samples_split': 20,
            'min_samples_leaf': 7,
            'ccp_alpha': 0.0,
            'criterion': 'gini',
        }
        unknown = set(hyperparameters) - set(params)
        if unknown:
            raise InvalidParameter(f"Unknown {self.name} hyperparameters: {sorted(unknown)}")
        params.update(hyperparameters)

        if params['max_depth'] is not None and (not _is_int(params['max_depth']) or params['max_depth'] < 1):
            raise InvalidParameter(f"max_depth must be None or an integer >= 1, got {params['max_depth']}")
        if not _is_int(params['min_samples_split']) or params['min_samples_split'] < 2:
            raise InvalidParameter(f"min_samples_split must be an integer >= 2, got {params['min_samples_split']}")
        if not _is_int(params['min_samples_leaf']) or params['min_samples_leaf'] < 1:
            raise InvalidParameter(f"min_samples_leaf must be an integer >= 1, got {params['min_samples_leaf']}")
        if not _is_number(params['ccp_alpha']) or params['ccp_alpha'] < 0:
            raise InvalidParameter(f"ccp_alpha must be >= 0, got {params['ccp_alpha']}")
        if params['criterion'] not in ('gini', 'entropy', 'log_loss'):
            raise InvalidParameter(f"criterion must be 'gini', 'entropy' or 'log_loss', got {params['criterion']!r}")
        return params

    def _build_estimator(self) -> BaseEstimator:
        return SkDecisionTreeClassifier(random_state=self.random_state, **self.hyperparameters)


class SVMClassifier(Classifier):
    """
    Support-vector classifier with a Gaussian (RBF) kernel.

    Hyperparameters:
        sigma: Kernel bandwidth; the kernel is exp(-sigma * ||x - x'||^2),
            so larger values shrink the influence radius of each example
        C: Penalty weight trading margin width against misclassification
    """

    name = 'svm'
    default_scale_numeric = True

    def _validate(self, hyperparameters: Dict[str, Any]) -> Dict[str, Any]:
        params = {'max_iter': -1}
        unknown = set(hyperparameters) - {'sigma', 'C', 'max_iter'}
        if unknown:
            raise InvalidParameter(f"Unknown {self.name} hyperparameters: {sorted(unknown)}")
        params.update(hyperparameters)

        for required in ('sigma', 'C'):
            if required not in params:
                raise InvalidParameter(f"{self.name} requires the '{required}' hyperparameter")
            if not _is_number(params[required]) or params[required] <= 0:
                raise InvalidParameter(f"{required} must be a positive number, got {params[required]}")
        if not _is_int(params['max_iter']) or (params['max_iter'] < 1 and params['max_iter'] != -1):
            raise InvalidParameter(f"max_iter must be -1 or a positive integer, got {params['max_iter']}")
        return params

    def _build_estimator(self) -> BaseEstimator:
        return SVC(
            kernel='rbf',
            gamma=float(self.hyperparameters['sigma']),
            C=float(self.hyperparameters['C']),
            max_iter=self.hyperparameters['max_iter'],
            random_state=self.random_state
        )

    def _fit_problem(self, estimator: BaseEstimator) -> Optional[str]:
        # libsvm sets fit_status_ to 1 when it stops at max_iter
        if getattr(estimator, 'fit_status_', 0) != 0:
            return f"solver terminated early (max_iter={self.hyperparameters['max_iter']})"
        return None


CLASSIFIERS = {
    DecisionTreeClassifier.name: DecisionTreeClassifier,
    SVMClassifier.name: SVMClassifier,
}


def create_classifier(name: str, scale_numeric: Optional[bool] = None, **params) -> Classifier:
    """
    Create a classifier variant by name.

    Args:
        name: 'decision_tree' or 'svm'
        scale_numeric: Override the variant's default numeric scaling
        **params: Hyperparameters

    Returns:
        Classifier
    """
    key = str(name).lower()
    if key not in CLASSIFIERS:
        raise InvalidParameter(f"Unknown classifier '{name}'. Available classifiers: {sorted(CLASSIFIERS)}")
    return CLASSIFIERS[key](scale_numeric=scale_numeric, **params)


def _is_int(value: Any) -> bool:
    return isinstance(value, (int, np.integer)) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, np.integer, np.floating)) and not isinstance(value, bool)
