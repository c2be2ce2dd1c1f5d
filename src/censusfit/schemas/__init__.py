"""
Schema definitions using Pandera for data validation.

Data contracts of the census splits and workflow outputs.
"""

from censusfit.schemas.census import CensusFeaturesSchema, CensusSchema, ComparisonSchema
from censusfit.schemas.registry import DataRole, SchemaRegistry

__all__ = [
    "CensusFeaturesSchema",
    "CensusSchema",
    "ComparisonSchema",
    "DataRole",
    "SchemaRegistry",
]
