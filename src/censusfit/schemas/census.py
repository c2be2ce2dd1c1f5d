"""
Pandera schemas for the ACS PUMS adult census extract.

Nominal attributes arrive integer-coded; they are validated as numeric
codes here and only cast to categorical inside the cluster.
"""

import pandera.pandas as pa
from pandera.typing import Series

# Integer-coded nominal columns
CODE_COLUMNS = ("COW", "SCHL", "MAR", "INDP", "RELP", "RAC1P", "SEX", "POBP")


class CensusFeaturesSchema(pa.DataFrameModel):
    """
    Schema for census predictor columns.

    Predictors may be missing; the cluster imputes numeric columns and
    treats a missing code as its own level.
    """

    AGEP: Series[float] = pa.Field(ge=0, le=120, nullable=True, description="Age in years")
    COW: Series[float] = pa.Field(ge=0, nullable=True, description="Class of worker code")
    SCHL: Series[float] = pa.Field(ge=0, nullable=True, description="Schooling level code")
    MAR: Series[float] = pa.Field(ge=1, le=5, nullable=True, description="Marital status code")
    INDP: Series[float] = pa.Field(ge=0, nullable=True, description="Industry code")
    RELP: Series[float] = pa.Field(ge=0, nullable=True, description="Relationship code")
    RAC1P: Series[float] = pa.Field(ge=1, le=9, nullable=True, description="Race code")
    SEX: Series[float] = pa.Field(isin=[1, 2], nullable=True, description="Sex code")
    POBP: Series[float] = pa.Field(ge=0, nullable=True, description="Place of birth code")
    WKHP: Series[float] = pa.Field(
        ge=0, le=168, nullable=True, description="Usual hours worked per week"
    )
    LOG_CAPGAIN: Series[float] = pa.Field(
        ge=0, nullable=True, description="log(1 + capital gain)"
    )
    LOG_CAPLOSS: Series[float] = pa.Field(
        ge=0, nullable=True, description="log(1 + capital loss)"
    )

    @pa.check(*CODE_COLUMNS, name="integer_code")
    def integer_code(cls, series: Series[float]) -> Series[bool]:
        """Nominal codes must be whole numbers."""
        return series.isna() | (series % 1 == 0)

    class Config:
        """Schema configuration."""

        name = "CensusFeaturesSchema"
        strict = False  # Allow extra columns
        coerce = True  # Coerce types where possible


class CensusSchema(CensusFeaturesSchema):
    """
    Schema for a labelled census split (train or test).

    Adds the log-wage response, which must be present on every row.
    """

    LOG_WAGP: Series[float] = pa.Field(nullable=False, description="log(wage)")

    class Config:
        """Schema configuration."""

        name = "CensusSchema"
        strict = False
        coerce = True


class ComparisonSchema(pa.DataFrameModel):
    """Schema for the model comparison table written by the workflow."""

    label: Series[str] = pa.Field(description="Row label")
    model_id: Series[str] = pa.Field(unique=True, description="Model id in the cluster")
    algo: Series[str] = pa.Field(isin=["glm", "gbm", "drf", "deeplearning"])
    aic: Series[float] = pa.Field(nullable=True, description="AIC (GLM only)")
    deviance_explained: Series[float] = pa.Field(
        nullable=True, description="Deviance explained (GLM only)"
    )
    train_mse: Series[float] = pa.Field(ge=0)
    test_mse: Series[float] = pa.Field(ge=0)
    test_r2: Series[float] = pa.Field(nullable=True)

    class Config:
        """Schema configuration."""

        name = "ComparisonSchema"
        strict = True
        coerce = True
