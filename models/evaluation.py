"""
Model Evaluation

Apply a fitted model to held-out records and summarise how well it
predicts: accuracy, confusion matrix, per-class precision/recall/F1, and
the majority-class baseline the accuracy should be judged against.

Undefined ratios (zero denominators) are reported as NaN, never as 0.
"""

from dataclasses import dataclass, field
from typing import Dict, Any, Optional, Sequence, Tuple
import numpy as np
import pandas as pd
from scipy import stats
from sklearn import metrics

from data.dataset import Dataset
from .classifiers import TrainedModel
from utils.exceptions import InvalidParameter


@dataclass(frozen=True, eq=False)
class EvaluationResult:
    """
    Performance of one model on one test set.

    Attributes:
        accuracy: Fraction of correct predictions
        confusion_matrix: Counts, rows = actual label, columns = predicted label
        per_class: precision, recall, f1 and support for every label
        n_samples: Number of test records
        majority_class: Most frequent actual label
        baseline_accuracy: Accuracy of always predicting majority_class
        kappa: Cohen's kappa
        accuracy_ci: Exact 95% confidence interval for accuracy
        p_value_vs_baseline: One-sided binomial p-value for accuracy > baseline
        model_name: Variant of the evaluated model
    """
    accuracy: float
    confusion_matrix: pd.DataFrame
    per_class: pd.DataFrame
    n_samples: int
    majority_class: Any
    baseline_accuracy: float
    kappa: float
    accuracy_ci: Tuple[float, float]
    p_value_vs_baseline: float
    model_name: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def labels(self):
        return list(self.confusion_matrix.index)

    @property
    def n_correct(self) -> int:
        return int(np.trace(self.confusion_matrix.to_numpy()))

    @property
    def lift(self) -> float:
        """Accuracy gained over the majority-class baseline."""
        return self.accuracy - self.baseline_accuracy

    @property
    def beats_baseline(self) -> bool:
        return self.accuracy > self.baseline_accuracy

    @property
    def macro_precision(self) -> float:
        return _nanmean(self.per_class['precision'])

    @property
    def macro_recall(self) -> float:
        return _nanmean(self.per_class['recall'])

    @property
    def macro_f1(self) -> float:
        return _nanmean(self.per_class['f1'])

    def precision(self, label) -> float:
        return float(self.per_class.loc[label, 'precision'])

    def recall(self, label) -> float:
        return float(self.per_class.loc[label, 'recall'])

    def f1(self, label) -> float:
        return float(self.per_class.loc[label, 'f1'])

    def confusion_counts(self) -> Dict[Tuple[Any, Any], int]:
        """The confusion matrix as {(actual, predicted): count}."""
        return {
            (actual, predicted): int(self.confusion_matrix.loc[actual, predicted])
            for actual in self.confusion_matrix.index
            for predicted in self.confusion_matrix.columns
        }

    def to_dict(self) -> Dict[str, Any]:
        """Flat summary, for tables and exports."""
        summary = {
            'model': self.model_name,
            'n_samples': self.n_samples,
            'accuracy': self.accuracy,
            'accuracy_ci_lower': self.accuracy_ci[0],
            'accuracy_ci_upper': self.accuracy_ci[1],
            'majority_class': self.majority_class,
            'baseline_accuracy': self.baseline_accuracy,
            'lift': self.lift,
            'p_value_vs_baseline': self.p_value_vs_baseline,
            'kappa': self.kappa,
            'macro_precision': self.macro_precision,
            'macro_recall': self.macro_recall,
            'macro_f1': self.macro_f1,
        }
        for label, row in self.per_class.iterrows():
            for metric in ('precision', 'recall', 'f1'):
                summary[f'{metric}[{label}]'] = row[metric]
        return summary


class ModelEvaluator:
    """
    Evaluates fitted models on held-out data.

    Usage:
        evaluator = ModelEvaluator()
        result = evaluator.evaluate(model, test_dataset)
        print(result.accuracy, result.baseline_accuracy)
    """

    def __init__(self, confidence_level: float = 0.95):
        if not 0 < confidence_level < 1:
            raise InvalidParameter(f"confidence_level must be in (0, 1), got {confidence_level}")
        self.confidence_level = confidence_level

    def evaluate(self, model: TrainedModel, dataset: Dataset) -> EvaluationResult:
        """
        Evaluate ``model`` on the records of ``dataset``.

        Args:
            model: Fitted model
            dataset: Test records, including the target column

        Returns:
            EvaluationResult
        """
        target = model.formula.target
        if target not in dataset.schema:
            raise InvalidParameter(f"Test records have no '{target}' column")

        actual = dataset.column(target)
        if actual.isna().any():
            raise InvalidParameter(f"Target column '{target}' has missing values in the test records")

        predicted = model.predict(dataset)
        return self.evaluate_predictions(
            actual.astype(str).to_numpy(),
            predicted,
            labels=model.classes,
            model_name=model.variant
        )

    def evaluate_predictions(
        self,
        actual: Sequence[Any],
        predicted: Sequence[Any],
        labels: Optional[Sequence[Any]] = None,
        model_name: Optional[str] = None
    ) -> EvaluationResult:
        """
        Compute all metrics from actual and predicted labels.

        Args:
            actual: True labels
            predicted: Predicted labels
            labels: Labels to include in the matrix besides the observed ones
            model_name: Name stored on the result

        Returns:
            EvaluationResult
        """
        actual = np.asarray(actual)
        predicted = np.asarray(predicted)
        if len(actual) != len(predicted):
            raise InvalidParameter(
                f"actual and predicted have different lengths ({len(actual)} vs {len(predicted)})"
            )
        if len(actual) == 0:
            raise InvalidParameter("Cannot evaluate on an empty test set")

        all_labels = set(actual.tolist()) | set(predicted.tolist())
        if labels is not None:
            all_labels |= set(np.asarray(labels).tolist())
        all_labels = sorted(all_labels, key=str)

        cm = self.confusion_matrix(actual, predicted, all_labels)
        n = len(actual)
        accuracy = float(metrics.accuracy_score(actual, predicted))
        n_correct = int(np.trace(cm.to_numpy()))

        actual_counts = cm.sum(axis=1)
        majority_class = actual_counts.idxmax()
        baseline = float(actual_counts.max()) / n

        return EvaluationResult(
            accuracy=accuracy,
            confusion_matrix=cm,
            per_class=self.per_class_metrics(actual, predicted, all_labels),
            n_samples=n,
            majority_class=majority_class,
            baseline_accuracy=baseline,
            kappa=self.cohen_kappa(actual, predicted, all_labels),
            accuracy_ci=self.accuracy_interval(n_correct, n),
            p_value_vs_baseline=self.baseline_p_value(n_correct, n, baseline),
            model_name=model_name
        )

    @staticmethod
    def confusion_matrix(actual: np.ndarray, predicted: np.ndarray, labels: Sequence[Any]) -> pd.DataFrame:
        """
        Count every (actual, predicted) pair.

        Returns:
            DataFrame indexed by actual label, with one column per predicted label
        """
        counts = metrics.confusion_matrix(actual, predicted, labels=list(labels))
        return pd.DataFrame(
            counts,
            index=pd.Index(labels, name='actual'),
            columns=pd.Index(labels, name='predicted')
        )

    @staticmethod
    def per_class_metrics(actual: np.ndarray, predicted: np.ndarray, labels: Sequence[Any]) -> pd.DataFrame:
        """
        Precision, recall, F1 and support for every label.

        precision(c) = cm[c, c] / column total of c
        recall(c)    = cm[c, c] / row total of c
        Both are NaN when their denominator is zero; F1 is NaN when either is.
        """
        precision, recall, f1, support = metrics.precision_recall_fscore_support(
            actual,
            predicted,
            labels=list(labels),
            average=None,
            zero_division=np.nan
        )
        f1 = np.where(np.isnan(precision) | np.isnan(recall), np.nan, f1)

        return pd.DataFrame(
            {
                'precision': precision,
                'recall': recall,
                'f1': f1,
                'support': support.astype(int),
            },
            index=pd.Index(labels, name='label')
        )

    @staticmethod
    def cohen_kappa(actual: np.ndarray, predicted: np.ndarray, labels: Sequence[Any]) -> float:
        """Agreement between actual and predicted labels beyond chance."""
        # chance agreement is 1 when both sides use one and the same label
        if len(set(np.asarray(actual).tolist()) | set(np.asarray(predicted).tolist())) < 2:
            return float('nan')
        return float(metrics.cohen_kappa_score(actual, predicted, labels=list(labels)))

    def accuracy_interval(self, n_correct: int, n: int) -> Tuple[float, float]:
        """Exact (Clopper-Pearson) confidence interval for accuracy."""
        interval = stats.binomtest(n_correct, n).proportion_ci(
            confidence_level=self.confidence_level,
            method='exact'
        )
        return float(interval.low), float(interval.high)

    @staticmethod
    def baseline_p_value(n_correct: int, n: int, baseline: float) -> float:
        """P-value of the one-sided test that accuracy exceeds the baseline."""
        if baseline >= 1.0:
            return 1.0
        return float(stats.binomtest(n_correct, n, p=baseline, alternative='greater').pvalue)


def majority_baseline(labels: Sequence[Any]) -> Tuple[Any, float]:
    """
    Most frequent label and the accuracy of always predicting it.

    Ties resolve to the smallest label.
    """
    values = pd.Series(np.asarray(labels))
    if values.empty:
        raise InvalidParameter("Cannot compute a baseline for an empty label set")
    counts = values.value_counts(sort=False).sort_index()
    return counts.idxmax(), float(counts.max()) / len(values)


def _nanmean(values: pd.Series) -> float:
    values = values.dropna()
    if values.empty:
        return float('nan')
    return float(values.mean())
