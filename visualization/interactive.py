import plotly.graph_objects as go
import plotly.express as px
import pandas as pd
from pathlib import Path

from models.evaluation import EvaluationResult
from models.tuning import TuningResult


def _safe_name(name):
    return "".join([c for c in str(name) if c.isalnum() or c in ('-', '_')]).strip() or "model"


class InteractivePlotter:
    def __init__(self, output_dir):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def plot_confusion_matrix(self, result: EvaluationResult, name=None, title=None, filename=None):
        """Heatmap of the confusion matrix with the count in every cell."""
        save_dir = self.output_dir / "confusion_matrices"
        save_dir.mkdir(parents=True, exist_ok=True)

        cm = result.confusion_matrix
        labels = [str(label) for label in cm.index]
        annotations = []
        for i in range(cm.shape[0]):
            for j in range(cm.shape[1]):
                annotations.append(dict(x=labels[j], y=labels[i], text=str(cm.iat[i, j]),
                                        showarrow=False, font=dict(color='black')))

        title = title or (f"Confusion Matrix: {name or result.model_name} "
                          f"(accuracy {result.accuracy:.3f}, baseline {result.baseline_accuracy:.3f})")
        fig = go.Figure(data=go.Heatmap(z=cm.to_numpy(), x=labels, y=labels, colorscale='Blues', showscale=False))
        fig.update_layout(title=title, xaxis_title="Predicted", yaxis_title="Actual", annotations=annotations)
        fig.update_yaxes(autorange='reversed')

        path = save_dir / (filename or f"cm_{_safe_name(name or result.model_name)}.html")
        fig.write_html(str(path))
        return path

    def plot_tuning_results(self, result: TuningResult, model_name, filename=None):
        """Mean cross-validated accuracy against the first grid axis, one line per value of the others."""
        param_cols = [c for c in result.cv_results.columns if c.startswith('param_')]
        df = result.cv_results[result.cv_results['status'] == 'ok'].copy()

        x_col = param_cols[0]
        color_col = None
        if len(param_cols) > 1:
            color_col = 'setting'
            df[color_col] = df[param_cols[1:]].astype(str).agg(', '.join, axis=1)
        df[x_col] = df[x_col].astype(str)

        fig = px.line(df, x=x_col, y='mean_accuracy', color=color_col, markers=True,
                      error_y='std_accuracy',
                      title=f"Grid search: {model_name} ({result.repeats} x {result.folds}-fold CV)")
        fig.update_layout(xaxis_title=x_col.replace('param_', ''), yaxis_title="Mean accuracy")

        path = self.output_dir / (filename or f"tuning_{_safe_name(model_name)}.html")
        fig.write_html(str(path))
        return path

    def plot_model_comparison(self, comparison: pd.DataFrame, filename="model_comparison.html"):
        """Accuracy of every model next to the majority-class baseline."""
        if comparison.empty:
            return None
        df = comparison.reset_index().rename(columns={'index': 'model'})
        long_df = df.melt(id_vars='model', value_vars=['accuracy', 'baseline_accuracy'],
                          var_name='metric', value_name='value')

        fig = px.bar(long_df, x='model', y='value', color='metric', barmode='group',
                     title="Test accuracy vs. majority-class baseline", text='value')
        fig.update_traces(texttemplate='%{text:.3f}', textposition='outside')
        fig.update_layout(yaxis_range=[0, 1.05], yaxis_title="Accuracy")

        path = self.output_dir / filename
        fig.write_html(str(path))
        return path
