"""
Design matrix construction.

Builds the sklearn ColumnTransformer that turns frame columns into a
numeric design matrix. Numeric predictors come first (mean-imputed,
optionally standardized), followed by the encoded categorical
predictors. Missing categorical values form their own level.
"""

from enum import Enum
from typing import Any

import numpy as np
import pandas as pd
from sklearn.compose import ColumnTransformer
from sklearn.impute import SimpleImputer
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import (
    FunctionTransformer,
    OneHotEncoder,
    OrdinalEncoder,
    StandardScaler,
)

from censusfit.utils.logging import get_logger

log = get_logger(__name__)

MISSING_LEVEL = "NA"


class CategoricalEncoding(str, Enum):
    """How categorical predictors enter the design matrix."""

    REFERENCE = "reference"  # one-hot, first level dropped (GLM)
    ONE_HOT = "one_hot"  # one-hot, all levels (deep learning)
    ORDINAL = "ordinal"  # integer codes (tree ensembles)


def categories_as_strings(X: pd.DataFrame) -> pd.DataFrame:
    """Cast categorical values to string labels, mapping missing to MISSING_LEVEL."""
    as_object = X.astype(object)
    return as_object.where(as_object.notna(), MISSING_LEVEL).astype(str)


def _level_name(feature: str, category: Any) -> str:
    """Output column name for a one-hot level, e.g. 'SEX.2'."""
    return f"{feature}.{category}"


def _categorical_encoder(encoding: CategoricalEncoding) -> Any:
    if encoding == CategoricalEncoding.ORDINAL:
        return OrdinalEncoder(
            handle_unknown="use_encoded_value",
            unknown_value=-1,
        )
    return OneHotEncoder(
        drop="first" if encoding == CategoricalEncoding.REFERENCE else None,
        handle_unknown="ignore",
        sparse_output=False,
        feature_name_combiner=_level_name,
    )


def build_design(
    numeric_features: list[str],
    categorical_features: list[str],
    *,
    encoding: CategoricalEncoding = CategoricalEncoding.REFERENCE,
    standardize: bool = False,
) -> ColumnTransformer:
    """
    Build the design-matrix ColumnTransformer.

    Args:
        numeric_features: Numeric predictor columns.
        categorical_features: Categorical predictor columns.
        encoding: Categorical encoding scheme.
        standardize: Whether to standardize numeric columns.

    Returns:
        Unfitted ColumnTransformer producing a dense float matrix.
    """
    transformers: list[tuple[str, Any, list[str]]] = []

    if numeric_features:
        numeric_steps: list[tuple[str, Any]] = [
            ("impute", SimpleImputer(strategy="mean", keep_empty_features=True)),
        ]
        if standardize:
            numeric_steps.append(("scale", StandardScaler()))
        transformers.append(("numeric", Pipeline(numeric_steps), list(numeric_features)))

    if categorical_features:
        transformers.append((
            "categorical",
            Pipeline([
                (
                    "labels",
                    FunctionTransformer(
                        categories_as_strings, feature_names_out="one-to-one"
                    ),
                ),
                ("encode", _categorical_encoder(encoding)),
            ]),
            list(categorical_features),
        ))

    design = ColumnTransformer(
        transformers=transformers,
        remainder="drop",
        verbose_feature_names_out=False,
    )

    log.debug(
        "Built design matrix transformer",
        numeric=numeric_features,
        categorical=categorical_features,
        encoding=encoding.value,
        standardize=standardize,
    )
    return design


def design_feature_names(design: ColumnTransformer) -> list[str]:
    """Output column names of a fitted design transformer."""
    return [str(name) for name in design.get_feature_names_out()]


def standardize_columns(
    X: np.ndarray,
    n_columns: int,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Standardize the first n_columns of a design matrix.

    Used by the GLM, which standardizes numeric predictors only and maps
    coefficients back to the original scale afterwards. Constant columns
    keep a scale of 1.

    Returns:
        (standardized matrix, column means, column scales); means are 0
        and scales 1 for the untouched columns.
    """
    means = np.zeros(X.shape[1])
    scales = np.ones(X.shape[1])
    if n_columns:
        means[:n_columns] = X[:, :n_columns].mean(axis=0)
        sd = X[:, :n_columns].std(axis=0)
        scales[:n_columns] = np.where(sd > 0, sd, 1.0)
    return (X - means) / scales, means, scales
