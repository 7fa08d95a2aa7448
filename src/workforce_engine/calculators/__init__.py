"""Payroll calculation."""

from workforce_engine.calculators.aggregator import PayrollCalculator, month_bounds, validate_period
from workforce_engine.calculators.rates import DeductionRate, PayrollRatesTable, RateNotFoundError
from workforce_engine.calculators.types import DeductionLine, PayrollPreview, WorkLine

__all__ = [
    "DeductionLine",
    "DeductionRate",
    "PayrollCalculator",
    "PayrollPreview",
    "PayrollRatesTable",
    "RateNotFoundError",
    "WorkLine",
    "month_bounds",
    "validate_period",
]
