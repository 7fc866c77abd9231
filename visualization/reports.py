"""
Text Reports

Plain-text renderings of evaluation results, fitted models and grid
searches, for printing to the console.
"""

from typing import Any, Dict
import math
import pandas as pd

from models.classifiers import TrainedModel
from models.evaluation import EvaluationResult
from models.tuning import TuningResult


def _fmt(value: Any, digits: int = 4) -> str:
    if isinstance(value, float):
        return 'NaN' if math.isnan(value) else f"{value:.{digits}f}"
    return str(value)


def format_evaluation(result: EvaluationResult, title: str = None) -> str:
    """Confusion matrix and statistics, in the layout of a confusion-matrix printout."""
    lines = []
    title = title or f"Evaluation: {result.model_name or 'model'}"
    lines.append(title)
    lines.append('=' * len(title))
    lines.append('')
    lines.append('Confusion Matrix (rows = actual, columns = predicted)')
    lines.append('')
    lines.append(result.confusion_matrix.to_string())
    lines.append('')

    low, high = result.accuracy_ci
    lines.append(f"{'Accuracy':>28} : {_fmt(result.accuracy)}")
    lines.append(f"{'95% CI':>28} : ({_fmt(low)}, {_fmt(high)})")
    lines.append(f"{'No Information Rate':>28} : {_fmt(result.baseline_accuracy)} "
                 f"(always '{result.majority_class}')")
    lines.append(f"{'P-Value [Acc > NIR]':>28} : {_fmt(result.p_value_vs_baseline)}")
    lines.append(f"{'Kappa':>28} : {_fmt(result.kappa)}")
    lines.append(f"{'Lift over baseline':>28} : {_fmt(result.lift)}")
    lines.append('')

    per_class = result.per_class.copy()
    for column in ('precision', 'recall', 'f1'):
        per_class[column] = per_class[column].map(_fmt)
    lines.append('Per-class metrics (NaN = undefined, zero denominator)')
    lines.append('')
    lines.append(per_class.to_string())

    if not result.beats_baseline:
        lines.append('')
        lines.append('WARNING: accuracy does not exceed the majority-class baseline')
    return '\n'.join(lines)


def format_tree(model: TrainedModel) -> str:
    """Indented node list of a fitted decision tree."""
    description = model.describe()
    if 'nodes' not in description:
        raise ValueError(f"{model.variant} models have no tree structure to render")

    nodes: Dict[int, Dict[str, Any]] = {n['node_id']: n for n in description['nodes']}
    lines = [f"Decision tree for {description['formula']}",
             f"depth={description['depth']}, leaves={description['n_leaves']}", '']

    def walk(node_id: int, depth: int, condition: str) -> None:
        node = nodes[node_id]
        prefix = '  ' * depth
        distribution = ', '.join(f"{k}: {_fmt(v, 2)}" for k, v in node['class_distribution'].items())
        leaf = ' *' if node['is_leaf'] else ''
        lines.append(f"{prefix}{node_id}) {condition} n={node['n_samples']} "
                     f"class={node['predicted_class']} ({distribution}){leaf}")
        if not node['is_leaf']:
            feature, threshold = node['feature'], node['threshold']
            walk(node['left'], depth + 1, f"{feature} <= {threshold:.4g}")
            walk(node['right'], depth + 1, f"{feature} > {threshold:.4g}")

    walk(0, 0, 'root')
    return '\n'.join(lines)


def format_tuning(result: TuningResult, top: int = 10) -> str:
    """Grid-search table, best points first."""
    table = result.cv_results.sort_values('mean_accuracy', ascending=False, kind='stable').head(top)
    columns = [c for c in table.columns if c.startswith('param_')] + ['mean_accuracy', 'std_accuracy', 'status']
    lines = [
        f"Grid search: {len(result.cv_results)} points, "
        f"{result.repeats} x {result.folds}-fold cross-validation",
        '',
        table[columns].to_string(index=False),
        '',
        f"Selected: {result.best_params} (mean accuracy {_fmt(result.best_score)})",
    ]
    if result.n_failed:
        lines.append(f"{result.n_failed} grid point(s) failed and were skipped")
    return '\n'.join(lines)


def format_comparison(comparison: pd.DataFrame) -> str:
    """Side-by-side table of several models' evaluation summaries."""
    if comparison.empty:
        return 'No models to compare'
    formatted = comparison.copy()
    for column in formatted.columns:
        if pd.api.types.is_float_dtype(formatted[column]):
            formatted[column] = formatted[column].map(_fmt)
    return formatted.to_string()

