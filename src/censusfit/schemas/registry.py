"""Named lookup of the pandera schemas used by the workflow."""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

import pandera.pandas as pa

from censusfit.schemas.census import CensusFeaturesSchema, CensusSchema, ComparisonSchema

if TYPE_CHECKING:
    import pandas as pd

REGISTRY_VERSION = "1.0.0"


class DataRole(Enum):
    """Where a frame sits in the workflow."""

    SOURCE = "source"
    FEATURE = "feature"
    OUTPUT = "output"


@dataclass(frozen=True)
class SchemaInfo:
    """A schema class with the name, role and description it is registered under."""

    name: str
    schema: type[pa.DataFrameModel]
    role: DataRole
    description: str
    version: str = REGISTRY_VERSION

    @property
    def columns(self) -> list[str]:
        """Column names the schema declares, in declaration order."""
        return list(self.schema.to_schema().columns)


_SCHEMAS: dict[str, SchemaInfo] = {}


def _register(info: SchemaInfo) -> None:
    if info.name in _SCHEMAS:
        msg = f"Schema '{info.name}' is already registered"
        raise ValueError(msg)
    _SCHEMAS[info.name] = info


_register(
    SchemaInfo(
        "census",
        CensusSchema,
        DataRole.SOURCE,
        "ACS adult census split with the log-wage response",
    )
)
_register(
    SchemaInfo(
        "census_features",
        CensusFeaturesSchema,
        DataRole.FEATURE,
        "Census predictors scored by a fitted model, response absent",
    )
)
_register(
    SchemaInfo(
        "comparison",
        ComparisonSchema,
        DataRole.OUTPUT,
        "Model comparison table with one row per fitted model",
    )
)


class SchemaRegistry:
    """Class-level access to the registered schemas."""

    @staticmethod
    def registry_version() -> str:
        """Version of the registered schema set."""
        return REGISTRY_VERSION

    @staticmethod
    def get_info(name: str) -> SchemaInfo:
        """
        Registration record for a schema name.

        Raises:
            KeyError: If no schema is registered under the name.
        """
        try:
            return _SCHEMAS[name]
        except KeyError:
            msg = f"Unknown schema '{name}'. Available: {', '.join(_SCHEMAS)}"
            raise KeyError(msg) from None

    @classmethod
    def get(cls, name: str) -> type[pa.DataFrameModel]:
        """
        Schema class registered under a name.

        Raises:
            KeyError: If no schema is registered under the name.
        """
        return cls.get_info(name).schema

    @staticmethod
    def list_schemas() -> list[str]:
        """Registered schema names in registration order."""
        return list(_SCHEMAS)

    @staticmethod
    def list_by_role(role: DataRole) -> list[str]:
        """Registered schema names with the given role."""
        return [info.name for info in _SCHEMAS.values() if info.role is role]

    @classmethod
    def validate(cls, df: "pd.DataFrame", schema_name: str) -> "pd.DataFrame":
        """
        Validate a frame against the schema registered as `schema_name`.

        The first failing check raises; validation/core.py reports it
        against the file being checked.

        Raises:
            KeyError: If the schema name is unknown.
            pandera.errors.SchemaError: If a column or check fails.
            pandera.errors.SchemaErrors: Raised instead by some pandera
                releases for frame-level failures such as unexpected columns.
        """
        return cls.get(schema_name).validate(df)
