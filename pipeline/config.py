"""
Pipeline Configuration

Dataclasses describing one pipeline run, loadable from and savable to YAML.

Example config.yaml:

    data:
      source: data/german_credit.csv
      format: csv
      target: Class
      categorical_columns: [Class]
    split:
      train_fraction: 0.7
      seed: 99
    tuning:
      folds: 10
      repeats: 3
      n_jobs: -1
    models:
      - name: decision_tree
        params: {max_depth: 5}
      - name: svm
        grid:
          sigma: [0.005, 0.01, 0.05]
          C: [0.25, 0.5, 1, 2]
    output_dir: results
"""

from dataclasses import dataclass, field, asdict
from pathlib import Path
import numbers
from typing import List, Dict, Optional, Any
import yaml

from utils.exceptions import InvalidParameter


@dataclass
class DataConfig:
    """Where the dataset comes from and which column is predicted."""
    source: Optional[str] = None
    format: str = 'csv'
    target: str = 'Class'
    features: Optional[List[str]] = None
    formula: Optional[str] = None
    categorical_columns: List[str] = field(default_factory=list)
    text_columns: List[str] = field(default_factory=list)
    delimiter: Optional[str] = None


@dataclass
class SplitConfig:
    train_fraction: float = 0.7
    seed: int = 99


@dataclass
class TuningConfig:
    folds: int = 10
    repeats: int = 3
    n_jobs: int = 1


@dataclass
class ModelConfig:
    """
    One classifier variant to train.

    ``params`` are fixed hyperparameters; ``grid`` (axis -> candidate values)
    turns on hyperparameter search for the listed axes.
    """
    name: str
    params: Dict[str, Any] = field(default_factory=dict)
    grid: Optional[Dict[str, List[Any]]] = None
    scale_numeric: Optional[bool] = None
    label: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.label or self.name


@dataclass
class PipelineConfig:
    """Configuration for a complete train/evaluate run."""

    data: DataConfig = field(default_factory=DataConfig)
    split: SplitConfig = field(default_factory=SplitConfig)
    tuning: TuningConfig = field(default_factory=TuningConfig)
    models: List[ModelConfig] = field(default_factory=lambda: [
        ModelConfig(name='decision_tree'),
        ModelConfig(name='svm', grid={'sigma': [0.005, 0.01, 0.05], 'C': [0.25, 0.5, 1.0, 2.0]}),
    ])
    output_dir: Optional[str] = 'results'
    export_format: str = 'excel'
    create_plots: bool = True
    verbose: bool = True

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> 'PipelineConfig':
        """Build a configuration from a nested dictionary (e.g. parsed YAML)."""
        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            raise InvalidParameter(f"Configuration must be a mapping, got {type(raw)}")

        known = {'data', 'split', 'tuning', 'models', 'output_dir', 'export_format', 'create_plots', 'verbose'}
        unknown = set(raw) - known
        if unknown:
            raise InvalidParameter(f"Unknown configuration sections: {sorted(unknown)}")

        try:
            kwargs = {k: v for k, v in raw.items() if k not in ('data', 'split', 'tuning', 'models')}
            config = cls(
                data=DataConfig(**(raw.get('data') or {})),
                split=SplitConfig(**(raw.get('split') or {})),
                tuning=TuningConfig(**(raw.get('tuning') or {})),
                **kwargs
            )
            if 'models' in raw:
                config.models = [ModelConfig(**m) for m in (raw['models'] or [])]
        except TypeError as e:
            raise InvalidParameter(f"Invalid configuration: {e}") from e

        config.validate()
        return config

    @classmethod
    def from_yaml(cls, filepath: str) -> 'PipelineConfig':
        """Load configuration from a YAML file."""
        with open(filepath, 'r') as f:
            raw = yaml.safe_load(f)
        return cls.from_dict(raw)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_yaml(self, filepath: str) -> None:
        """Save configuration to a YAML file."""
        Path(filepath).parent.mkdir(parents=True, exist_ok=True)
        with open(filepath, 'w') as f:
            yaml.safe_dump(self.to_dict(), f, sort_keys=False)

    def validate(self) -> None:
        """Validate configuration parameters; raises InvalidParameter."""
        if not self.data.target:
            raise InvalidParameter("data.target must be set")
        fraction = self.split.train_fraction
        if not isinstance(fraction, numbers.Real) or isinstance(fraction, bool) or not 0 < fraction < 1:
            raise InvalidParameter(f"split.train_fraction must be in (0, 1), got {self.split.train_fraction}")
        if not isinstance(self.tuning.folds, int) or self.tuning.folds < 2:
            raise InvalidParameter(f"tuning.folds must be an integer >= 2, got {self.tuning.folds}")
        if not isinstance(self.tuning.repeats, int) or self.tuning.repeats < 1:
            raise InvalidParameter(f"tuning.repeats must be an integer >= 1, got {self.tuning.repeats}")
        if not isinstance(self.tuning.n_jobs, int) or self.tuning.n_jobs == 0:
            raise InvalidParameter(f"tuning.n_jobs must be a non-zero integer, got {self.tuning.n_jobs}")
        if self.export_format not in ('excel', 'csv'):
            raise InvalidParameter(f"export_format must be 'excel' or 'csv', got {self.export_format!r}")
        if not self.models:
            raise InvalidParameter("At least one model must be configured")

        names = [m.display_name for m in self.models]
        if len(set(names)) != len(names):
            raise InvalidParameter(f"Model names must be unique (use 'label' to tell variants apart): {names}")
        for model in self.models:
            if model.grid is not None and not isinstance(model.grid, dict):
                raise InvalidParameter(f"Grid of model '{model.display_name}' must be a mapping")
            overlap = set(model.params) & set(model.grid or {})
            if overlap:
                raise InvalidParameter(
                    f"Model '{model.display_name}' sets {sorted(overlap)} both as fixed params and grid axes"
                )


def load_config(config_name: str = "config.yaml") -> PipelineConfig:
    """
    Find and load a YAML configuration.

    Looks at ``config_name`` as given, then next to the repository root.
    """
    paths = [Path(config_name), Path(__file__).resolve().parent.parent / config_name]
    for p in paths:
        if p.exists():
            print(f"Found config at: {p.absolute()}")
            return PipelineConfig.from_yaml(str(p))
    raise FileNotFoundError(f"Config not found: {config_name}")
