"""
Classification Pipeline

Orchestrates one train/evaluate run:
1. Load the dataset (unless one is passed in)
2. Resolve the formula (target + feature columns) once
3. Draw a stratified train/test split
4. For every configured model: tune on the training split if a grid is
   configured, otherwise fit with fixed hyperparameters
5. Evaluate every model on the untouched test split
6. Compare models and export reports
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional
import pandas as pd

from data.dataset import Dataset
from data.loaders import load_dataset
from data.exporters import ResultsExporter
from preprocessing.formula import ModelFormula
from preprocessing.partition import Partitioner, Split
from models.classifiers import TrainedModel, create_classifier
from models.evaluation import EvaluationResult, ModelEvaluator
from models.tuning import GridSearchTuner, HyperparameterGrid, TuningResult, CancellationToken
from visualization.interactive import InteractivePlotter
from .config import PipelineConfig, ModelConfig
from utils.exceptions import InvalidParameter


@dataclass
class ModelRun:
    """Everything produced for one configured model."""
    name: str
    model: TrainedModel
    evaluation: EvaluationResult
    tuning: Optional[TuningResult] = None


@dataclass
class PipelineResult:
    formula: ModelFormula
    split: Split
    runs: Dict[str, ModelRun] = field(default_factory=dict)
    comparison: pd.DataFrame = field(default_factory=pd.DataFrame)
    output_path: Optional[str] = None

    @property
    def best(self) -> ModelRun:
        """Run with the highest test accuracy (first configured on ties)."""
        if not self.runs:
            raise ValueError("No models were run")
        return max(self.runs.values(), key=lambda run: run.evaluation.accuracy)


def compare_models(runs: Dict[str, ModelRun]) -> pd.DataFrame:
    """
    One row per model, sorted by test accuracy.

    Columns: accuracy, baseline_accuracy, lift, kappa, macro_f1,
    p_value_vs_baseline, cv_accuracy (NaN for models that were not tuned).
    """
    rows = []
    for name, run in runs.items():
        result = run.evaluation
        rows.append({
            'model': name,
            'variant': run.model.variant,
            'accuracy': result.accuracy,
            'baseline_accuracy': result.baseline_accuracy,
            'lift': result.lift,
            'kappa': result.kappa,
            'macro_f1': result.macro_f1,
            'p_value_vs_baseline': result.p_value_vs_baseline,
            'cv_accuracy': run.tuning.best_score if run.tuning else float('nan'),
            'hyperparameters': str(run.model.hyperparameters),
        })
    if not rows:
        return pd.DataFrame()
    table = pd.DataFrame(rows).set_index('model')
    return table.sort_values('accuracy', ascending=False, kind='stable')


class ClassificationPipeline:
    """
    Main pipeline - runs the whole train/evaluate workflow from a PipelineConfig.

    Usage:
        config = PipelineConfig.from_yaml("config.yaml")
        result = ClassificationPipeline(config).run()
        print(result.comparison)
    """

    def __init__(self, config: PipelineConfig, cancel_token: Optional[CancellationToken] = None):
        config.validate()
        self.config = config
        self.cancel_token = cancel_token
        self.evaluator = ModelEvaluator()

    def _log(self, message: str) -> None:
        if self.config.verbose:
            print(message)

    def load_data(self) -> Dataset:
        data_cfg = self.config.data
        if not data_cfg.source:
            raise InvalidParameter("data.source must be set when no dataset is passed to run()")

        options = {
            'categorical_columns': data_cfg.categorical_columns,
            'text_columns': data_cfg.text_columns,
        }
        if data_cfg.delimiter:
            options['delimiter'] = data_cfg.delimiter
        return load_dataset(data_cfg.source, format=data_cfg.format, **options)

    def resolve_formula(self, dataset: Dataset) -> ModelFormula:
        data_cfg = self.config.data
        if data_cfg.formula:
            return ModelFormula.parse(data_cfg.formula, dataset)
        return ModelFormula.resolve(dataset, data_cfg.target, data_cfg.features)

    def train_model(self, model_cfg: ModelConfig, train: Dataset, formula: ModelFormula):
        """Fit one configured model, tuning it first if it has a grid."""
        classifier_params = dict(model_cfg.params)
        grid = HyperparameterGrid.from_dict(model_cfg.grid) if model_cfg.grid else None

        if grid is not None:
            # Seed the base classifier with the first grid point so required
            # hyperparameters are present before with_params() overrides them
            for name, values in grid.axes.items():
                classifier_params.setdefault(name, values[0])

        classifier = create_classifier(model_cfg.name, scale_numeric=model_cfg.scale_numeric, **classifier_params)

        if grid is None:
            return classifier.fit(train, formula), None

        tuner = GridSearchTuner(
            folds=self.config.tuning.folds,
            repeats=self.config.tuning.repeats,
            seed=self.config.split.seed,
            n_jobs=self.config.tuning.n_jobs,
            verbose=self.config.verbose
        )
        tuning = tuner.tune(classifier, train, formula, grid, cancel_token=self.cancel_token)
        return tuning.best_model, tuning

    def run(self, dataset: Optional[Dataset] = None) -> PipelineResult:
        """
        Run the complete pipeline.

        Args:
            dataset: Already loaded dataset (otherwise loaded from config.data.source)

        Returns:
            PipelineResult
        """
        if dataset is None:
            self._log(f"[1] Loading {self.config.data.source}")
            dataset = self.load_data()
        self._log(f"    {dataset}")

        formula = self.resolve_formula(dataset)
        self._log(f"[2] Formula: {formula}")

        split = Partitioner(formula.target, self.config.split.seed).split(
            dataset, self.config.split.train_fraction
        )
        train = split.train_dataset(dataset)
        test = split.test_dataset(dataset)
        self._log(f"[3] Split: {split.n_train} train / {split.n_test} test (seed {split.seed})")
        self._log(f"    Class proportions (test): "
                  f"{test.class_proportions(formula.target).round(3).to_dict()}")

        result = PipelineResult(formula=formula, split=split)
        for model_cfg in self.config.models:
            name = model_cfg.display_name
            self._log(f"[4] Training {name}")
            model, tuning = self.train_model(model_cfg, train, formula)

            evaluation = self.evaluator.evaluate(model, test)
            self._log(f"    accuracy={evaluation.accuracy:.4f} "
                      f"(baseline {evaluation.baseline_accuracy:.4f}, kappa {evaluation.kappa:.4f})")
            result.runs[name] = ModelRun(name=name, model=model, evaluation=evaluation, tuning=tuning)

        result.comparison = compare_models(result.runs)

        if self.config.output_dir:
            result.output_path = self.export(result)
        return result

    def export(self, result: PipelineResult) -> str:
        """Write reports (and plots) for a finished run to config.output_dir."""
        output_dir = Path(self.config.output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        if self.config.export_format == 'excel':
            target = output_dir / 'report.xlsx'
        else:
            target = output_dir / 'report'

        exporter = ResultsExporter(str(target), format=self.config.export_format)
        path = exporter.export(
            comparison=result.comparison,
            evaluations={name: run.evaluation for name, run in result.runs.items()},
            tunings={name: run.tuning for name, run in result.runs.items() if run.tuning is not None},
            metadata={
                'formula': str(result.formula),
                'seed': result.split.seed,
                'train_fraction': self.config.split.train_fraction,
                'n_train': result.split.n_train,
                'n_test': result.split.n_test,
                'cv_folds': self.config.tuning.folds,
                'cv_repeats': self.config.tuning.repeats,
            }
        )

        if self.config.create_plots:
            plotter = InteractivePlotter(output_dir / 'plots')
            for name, run in result.runs.items():
                plotter.plot_confusion_matrix(run.evaluation, name=name)
                if run.tuning is not None:
                    plotter.plot_tuning_results(run.tuning, name)
            plotter.plot_model_comparison(result.comparison)

        return path
