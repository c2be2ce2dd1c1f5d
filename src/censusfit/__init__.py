"""
censusfit: Census wage regression comparison.

This package imports the ACS adult census extract into an analytics
cluster session, fits GLM, GBM, random forest and deep learning
regressors on log wages, and compares their fit statistics.
"""

from importlib.metadata import version

__version__ = version("censusfit")

__all__ = ["__version__"]
