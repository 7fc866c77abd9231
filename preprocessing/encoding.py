"""
Feature Encoding

Turn a dataset's feature columns into the numeric matrix the classifiers
consume:
- categorical columns are expanded into one binary indicator per category
- numeric columns are passed through, or centred and scaled when configured
"""

from typing import List, Optional
import numpy as np
import pandas as pd
from sklearn.compose import ColumnTransformer
from sklearn.preprocessing import OneHotEncoder, StandardScaler

from data.dataset import Dataset, ColumnKind
from .formula import ModelFormula


class FeatureEncoder:
    """
    One-hot encoder for categorical features with optional Z-score scaling.

    Categories not seen during fit are encoded as all-zero indicators.

    Attributes:
        scale_numeric (bool): Subtract mean and divide by standard deviation
        categorical (List[str]): Categorical feature columns (set by fit)
        numeric (List[str]): Numeric feature columns (set by fit)
    """

    def __init__(self, formula: ModelFormula, scale_numeric: bool = False):
        self.formula = formula
        self.scale_numeric = scale_numeric
        self.categorical: List[str] = []
        self.numeric: List[str] = []
        self.transformer: Optional[ColumnTransformer] = None

    def build(self, dataset: Dataset) -> ColumnTransformer:
        """
        Create the (unfitted) column transformer for ``dataset``'s schema.

        Args:
            dataset: Dataset whose schema defines the feature kinds

        Returns:
            ColumnTransformer
        """
        self.formula.check(dataset)
        self.categorical = [c for c in self.formula.features if dataset.kind(c) == ColumnKind.CATEGORICAL]
        self.numeric = [c for c in self.formula.features if dataset.kind(c) == ColumnKind.NUMERIC]

        transformers = []
        if self.categorical:
            transformers.append((
                'categorical',
                OneHotEncoder(handle_unknown='ignore', sparse_output=False),
                self.categorical
            ))
        if self.numeric:
            transformers.append((
                'numeric',
                StandardScaler() if self.scale_numeric else 'passthrough',
                self.numeric
            ))

        self.transformer = ColumnTransformer(transformers, remainder='drop', verbose_feature_names_out=False)
        return self.transformer

    def fit_transform(self, dataset: Dataset) -> np.ndarray:
        transformer = self.build(dataset)
        return transformer.fit_transform(self.frame(dataset))

    def transform(self, dataset: Dataset) -> np.ndarray:
        if self.transformer is None:
            raise ValueError("FeatureEncoder is not fitted")
        return self.transformer.transform(self.frame(dataset))

    def frame(self, dataset: Dataset) -> pd.DataFrame:
        """Feature columns of ``dataset``, categoricals as strings."""
        frame = dataset.select(self.formula.features)
        for column in self.categorical:
            frame[column] = frame[column].astype(str)
        return frame

    def get_feature_names(self) -> List[str]:
        """Names of the encoded columns (e.g. ``Housing_own``)."""
        if self.transformer is None:
            raise ValueError("FeatureEncoder is not fitted")
        return list(self.transformer.get_feature_names_out())
