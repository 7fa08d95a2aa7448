"""Monthly payroll aggregation."""

from __future__ import annotations

import calendar
from datetime import date
from decimal import Decimal
from typing import Iterable
from uuid import UUID

from workforce_engine.calculators.rates import PayrollRatesTable, parse_employment_type
from workforce_engine.calculators.types import ZERO, DeductionLine, PayrollPreview, WorkLine
from workforce_engine.config import Settings, get_settings
from workforce_engine.errors import ValidationError
from workforce_engine.models.enums import EmploymentType

DEFAULT_STANDARD_HOURS = 8
MIN_YEAR = 2000
MAX_YEAR = 2100


def validate_period(year: int, month: int) -> None:
    """Raise ValidationError unless (year, month) is a real calendar month."""
    if not isinstance(year, int) or not isinstance(month, int):
        raise ValidationError("Year and month must be integers")
    if not MIN_YEAR <= year <= MAX_YEAR:
        raise ValidationError(f"Year must be between {MIN_YEAR} and {MAX_YEAR}, got {year}")
    if not 1 <= month <= 12:
        raise ValidationError(f"Month must be between 1 and 12, got {month}")


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last day of a month, inclusive."""
    validate_period(year, month)
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


class PayrollCalculator:
    """Aggregates work lines into a monthly payroll preview.

    Pipeline per worker:
    1) Resolve the hourly rate per line (override, else daily wage / standard hours)
    2) Pay at most the standard hours per line; hours above it count as overtime
       but are not paid extra
    3) Sum hours, distinct work dates and gross pay
    4) Apply every deduction component to the same gross base
    5) net = gross - deductions

    All arithmetic is exact Decimal; nothing is rounded here.
    """

    def __init__(
        self,
        rates_table: PayrollRatesTable | None = None,
        standard_hours: int = DEFAULT_STANDARD_HOURS,
    ):
        self.rates_table = rates_table or PayrollRatesTable.default()
        self.standard_hours = Decimal(standard_hours)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> PayrollCalculator:
        """Build a calculator from settings, loading rate overrides if configured."""
        settings = settings or get_settings()
        rates_table = (
            PayrollRatesTable.from_file(settings.payroll_rates_path)
            if settings.payroll_rates_path
            else PayrollRatesTable.default()
        )
        return cls(rates_table, standard_hours=settings.standard_daily_hours)

    def hourly_rate_for(self, daily_wage: Decimal | None) -> Decimal:
        """Derive the hourly rate from a daily wage. Unknown wage pays nothing."""
        if daily_wage is None or daily_wage <= 0:
            return ZERO
        return Decimal(daily_wage) / self.standard_hours

    def calculate(
        self,
        worker_id: UUID,
        year: int,
        month: int,
        employment_type: EmploymentType | str,
        daily_wage: Decimal | None,
        lines: Iterable[WorkLine],
    ) -> PayrollPreview:
        """Calculate a preview. Lines outside the month are rejected."""
        start, end = month_bounds(year, month)
        employment = parse_employment_type(employment_type)
        rates = self.rates_table.resolve(employment)
        base_rate = self.hourly_rate_for(daily_wage)

        preview = PayrollPreview(
            worker_id=worker_id,
            year=year,
            month=month,
            employment_type=employment,
            daily_wage=daily_wage,
            hourly_rate=base_rate,
        )

        work_dates: set[date] = set()
        site_ids: list[UUID] = []
        for line in lines:
            if not start <= line.work_date <= end:
                raise ValidationError(
                    f"Work date {line.work_date} is outside {year}-{month:02d}"
                )
            if line.labor_hours < 0:
                raise ValidationError(f"Negative labor hours on {line.work_date}")

            rate = line.hourly_rate if line.hourly_rate is not None else base_rate
            paid_hours = min(line.labor_hours, self.standard_hours)

            preview.total_labor_hours += line.labor_hours
            preview.total_overtime_hours += max(ZERO, line.labor_hours - self.standard_hours)
            preview.total_gross_pay += paid_hours * rate
            work_dates.add(line.work_date)
            if line.site_id is not None and line.site_id not in site_ids:
                site_ids.append(line.site_id)

        preview.work_days = len(work_dates)
        preview.site_ids = site_ids

        gross = preview.total_gross_pay
        preview.deductions = [
            DeductionLine(
                code=rate.code,
                label=rate.label,
                percent=rate.percent,
                amount=gross * rate.fraction,
            )
            for rate in rates
        ]
        preview.total_deductions = sum((d.amount for d in preview.deductions), ZERO)
        preview.net_pay = gross - preview.total_deductions

        return preview
