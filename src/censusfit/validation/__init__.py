"""Data validation module."""

from censusfit.validation.core import ValidationResult, ValidationRunner
from censusfit.validation.reporter import ConsoleReporter

__all__ = ["ConsoleReporter", "ValidationResult", "ValidationRunner"]
