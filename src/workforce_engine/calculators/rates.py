"""Statutory deduction rates by employment type."""

from __future__ import annotations

import json
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Mapping

from workforce_engine.errors import NotFoundError, ValidationError
from workforce_engine.models.enums import EmploymentType


class RateNotFoundError(NotFoundError):
    """Raised when no deduction rate set exists for an employment type."""

    def __init__(self, employment_type: str):
        self.employment_type = employment_type
        super().__init__("Deduction rate set", employment_type)


@dataclass(frozen=True)
class DeductionRate:
    """One deduction component, expressed as a percent of gross pay."""

    code: str
    label: str
    percent: Decimal

    @property
    def fraction(self) -> Decimal:
        return self.percent / Decimal("100")


# Display labels for known components
COMPONENT_LABELS: dict[str, str] = {
    "income_tax": "Income tax",
    "local_tax": "Local income tax",
    "national_pension": "National pension",
    "health_insurance": "Health insurance",
    "employment_insurance": "Employment insurance",
    "long_term_care": "Long-term care insurance",
}

SIMPLIFIED_RATES: tuple[DeductionRate, ...] = (
    DeductionRate("income_tax", COMPONENT_LABELS["income_tax"], Decimal("3.0")),
    DeductionRate("local_tax", COMPONENT_LABELS["local_tax"], Decimal("0.3")),
)

FULL_RATES: tuple[DeductionRate, ...] = SIMPLIFIED_RATES + (
    DeductionRate("national_pension", COMPONENT_LABELS["national_pension"], Decimal("4.5")),
    DeductionRate("health_insurance", COMPONENT_LABELS["health_insurance"], Decimal("3.545")),
    DeductionRate(
        "employment_insurance", COMPONENT_LABELS["employment_insurance"], Decimal("0.9")
    ),
    # 12.95% of the health insurance premium, expressed against gross
    DeductionRate("long_term_care", COMPONENT_LABELS["long_term_care"], Decimal("0.4591")),
)


class PayrollRatesTable:
    """Maps employment types to their deduction rate sets.

    Freelancers and daily workers are withheld the simplified business income
    tax (3.0% + 0.3% local). Regular employees carry the full social insurance
    table on top of it.
    """

    def __init__(self, rates: Mapping[EmploymentType, tuple[DeductionRate, ...]]):
        self._rates = dict(rates)

    @classmethod
    def default(cls) -> PayrollRatesTable:
        return cls(
            {
                EmploymentType.FREELANCER: SIMPLIFIED_RATES,
                EmploymentType.DAILY_WORKER: SIMPLIFIED_RATES,
                EmploymentType.REGULAR_EMPLOYEE: FULL_RATES,
            }
        )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Mapping[str, Any]]) -> PayrollRatesTable:
        """Build a table from ``{employment_type: {component: percent}}``.

        Employment types not present in ``data`` keep their default rates.
        """
        table = cls.default()
        for raw_type, components in data.items():
            employment_type = parse_employment_type(raw_type)
            table._rates[employment_type] = tuple(
                DeductionRate(code, COMPONENT_LABELS.get(code, code), _parse_percent(code, value))
                for code, value in components.items()
            )
        return table

    @classmethod
    def from_file(cls, path: str | Path) -> PayrollRatesTable:
        """Load overrides from a JSON file."""
        with open(path, encoding="utf-8") as f:
            return cls.from_mapping(json.load(f))

    def resolve(self, employment_type: EmploymentType | str) -> tuple[DeductionRate, ...]:
        """Get the rate set for an employment type.

        Raises:
            ValidationError: If the value is not a known employment type
            RateNotFoundError: If the table has no entry for it
        """
        key = parse_employment_type(employment_type)
        rates = self._rates.get(key)
        if rates is None:
            raise RateNotFoundError(key.value)
        return rates

    def total_percent(self, employment_type: EmploymentType | str) -> Decimal:
        return sum((rate.percent for rate in self.resolve(employment_type)), Decimal("0"))


def parse_employment_type(value: EmploymentType | str) -> EmploymentType:
    """Coerce a raw value to EmploymentType, raising ValidationError otherwise."""
    try:
        return EmploymentType(value)
    except ValueError:
        raise ValidationError(f"Unknown employment type: {value!r}") from None


def _parse_percent(code: str, value: Any) -> Decimal:
    try:
        percent = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f"Rate for {code} is not a number: {value!r}") from None
    if percent < 0 or percent > 100:
        raise ValidationError(f"Rate for {code} must be between 0 and 100, got {percent}")
    return percent
