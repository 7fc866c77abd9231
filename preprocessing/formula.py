"""
Model Formula

Resolve which column is predicted and which columns predict it. The feature
list is computed and validated once, when the pipeline starts, and then
passed explicitly to every trainer.

The formula shorthand of the statistics tutorials is accepted as input:
    "Class ~ ."            -> Class explained by every usable column
    "Class ~ Age + Amount" -> Class explained by Age and Amount
"""

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple
import re

from data.dataset import Dataset, ColumnKind
from utils.exceptions import InvalidParameter


_FORMULA = re.compile(r'^\s*(?P<target>[^~]+?)\s*~\s*(?P<features>.+?)\s*$')


@dataclass(frozen=True)
class ModelFormula:
    """
    Target column and the explicit list of feature columns.

    Attributes:
        target: Column to predict
        features: Feature columns, in dataset order unless given explicitly
    """
    target: str
    features: Tuple[str, ...]

    @classmethod
    def resolve(
        cls,
        dataset: Dataset,
        target: str,
        features: Optional[Sequence[str]] = None
    ) -> 'ModelFormula':
        """
        Build and validate a formula against a dataset.

        Args:
            dataset: Dataset the formula refers to
            target: Column to predict
            features: Feature columns (default: every categorical or numeric
                column other than the target)

        Returns:
            ModelFormula
        """
        if target not in dataset.schema:
            raise InvalidParameter(f"Target column '{target}' not found. Available columns: {dataset.columns}")

        if features is None:
            features = [
                c for c, kind in dataset.schema.items()
                if c != target and kind != ColumnKind.TEXT
            ]
        else:
            features = list(features)
            unknown = [c for c in features if c not in dataset.schema]
            if unknown:
                raise InvalidParameter(f"Unknown feature columns: {unknown}")
            if target in features:
                raise InvalidParameter(f"Target column '{target}' cannot also be a feature")
            if len(set(features)) != len(features):
                raise InvalidParameter(f"Duplicate feature columns: {features}")
            text = [c for c in features if dataset.schema[c] == ColumnKind.TEXT]
            if text:
                raise InvalidParameter(f"Free-text columns cannot be used as features: {text}")

        if not features:
            raise InvalidParameter(f"No usable feature columns to explain '{target}'")

        return cls(target=target, features=tuple(features))

    @classmethod
    def parse(cls, formula: str, dataset: Dataset) -> 'ModelFormula':
        """
        Parse "target ~ ." or "target ~ a + b" and resolve it.

        Args:
            formula: Formula string
            dataset: Dataset the formula refers to

        Returns:
            ModelFormula
        """
        match = _FORMULA.match(formula or '')
        if not match:
            raise InvalidParameter(f"Cannot parse formula {formula!r}; expected 'target ~ features'")

        target = match.group('target')
        terms = [t.strip() for t in match.group('features').split('+')]
        if any(not t for t in terms):
            raise InvalidParameter(f"Empty term in formula {formula!r}")

        if terms == ['.']:
            return cls.resolve(dataset, target)
        if '.' in terms:
            raise InvalidParameter(f"'.' cannot be combined with other terms in {formula!r}")
        return cls.resolve(dataset, target, terms)

    def check(self, dataset: Dataset) -> None:
        """Verify that ``dataset`` has every column the formula needs."""
        missing = [c for c in (self.target,) + self.features if c not in dataset.schema]
        if missing:
            raise InvalidParameter(f"Dataset is missing columns required by the formula: {missing}")

    def __str__(self) -> str:
        return f"{self.target} ~ {' + '.join(self.features)}"
