"""
Fiscal calendar for the OKR module.

Turns period labels into the concrete calendar months they cover:

- M1..M12: a single fiscal month (M1 is the first month of the fiscal year)
- Q1..Q4: three fiscal months
- FY: the twelve fiscal months
- YTD: fiscal start through the as-of month (clamped to the fiscal year)
- Last12m: the twelve months ending at the as-of month

Months are keyed "YYYY-MM" throughout the engine. A fiscal year that starts in
January is the calendar year; otherwise it is named after the calendar year it
ends in (FY2026 with a July start runs 2025-07..2026-06).
"""
from dataclasses import dataclass
from datetime import date
from typing import Optional, Tuple, List

from dateutil.relativedelta import relativedelta

from app.core.errors import ValidationError

QUARTER_LABELS = ("Q1", "Q2", "Q3", "Q4")
MONTH_LABELS = tuple(f"M{i}" for i in range(1, 13))
FULL_YEAR = "FY"
YEAR_TO_DATE = "YTD"
LAST_12_MONTHS = "Last12m"

PERIOD_LABELS = (YEAR_TO_DATE, *QUARTER_LABELS, FULL_YEAR, LAST_12_MONTHS, *MONTH_LABELS)

# Labels that are also keys of a Key Result's static targets map
STATIC_TARGET_KEYS = (*QUARTER_LABELS, FULL_YEAR)


def month_key(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def parse_month_key(value: str, field: str = "month") -> Tuple[int, int]:
    """Parse "YYYY-MM" or raise ValidationError naming the field."""
    try:
        year_part, month_part = value.split("-")
        year, month = int(year_part), int(month_part)
    except (AttributeError, ValueError):
        raise ValidationError(field, f"Expected YYYY-MM, got {value!r}")
    if not 1 <= month <= 12 or len(year_part) != 4:
        raise ValidationError(field, f"Expected YYYY-MM, got {value!r}")
    return year, month


def months_between(start: str, end: str) -> List[str]:
    """Inclusive list of month keys from start to end; empty if end < start."""
    start_year, start_month = parse_month_key(start, "start")
    end_year, end_month = parse_month_key(end, "end")
    current = date(start_year, start_month, 1)
    last = date(end_year, end_month, 1)
    months = []
    while current <= last:
        months.append(month_key(current.year, current.month))
        current += relativedelta(months=1)
    return months


def normalize_period_label(label: str) -> str:
    """Canonical spelling of a period label, or ValidationError."""
    if not isinstance(label, str) or not label.strip():
        raise ValidationError("period", "Period is required")
    raw = label.strip()
    upper = raw.upper()
    if upper == LAST_12_MONTHS.upper():
        return LAST_12_MONTHS
    if upper in PERIOD_LABELS:
        return upper
    raise ValidationError(
        "period",
        f"Unknown period {label!r}; expected one of {', '.join(PERIOD_LABELS)}"
    )


@dataclass(frozen=True)
class PeriodWindow:
    """A resolved period: its label, fiscal year and covered months in order."""
    label: str
    fiscal_year: int
    months: Tuple[str, ...]

    @property
    def target_key(self) -> Optional[str]:
        """Key into a KR's static targets, when the label has one."""
        return self.label if self.label in STATIC_TARGET_KEYS else None

    @property
    def start(self) -> Optional[str]:
        return self.months[0] if self.months else None

    @property
    def end(self) -> Optional[str]:
        return self.months[-1] if self.months else None

    def __contains__(self, month: str) -> bool:
        return month in self.months


@dataclass(frozen=True)
class FiscalCalendar:
    """Fiscal-year arithmetic for a given start month."""
    start_month: int = 1

    def __post_init__(self):
        if not 1 <= self.start_month <= 12:
            raise ValueError(f"start_month must be 1-12, got {self.start_month}")

    def fiscal_year_start(self, fiscal_year: int) -> date:
        if self.start_month == 1:
            return date(fiscal_year, 1, 1)
        return date(fiscal_year - 1, self.start_month, 1)

    def fiscal_months(self, fiscal_year: int) -> Tuple[str, ...]:
        first = self.fiscal_year_start(fiscal_year)
        months = []
        for offset in range(12):
            d = first + relativedelta(months=offset)
            months.append(month_key(d.year, d.month))
        return tuple(months)

    def fiscal_year_of(self, day: date) -> int:
        if self.start_month == 1 or day.month < self.start_month:
            return day.year
        return day.year + 1

    def quarter_of(self, day: date) -> str:
        index = (day.month - self.start_month) % 12
        return QUARTER_LABELS[index // 3]

    def window(self, label: str, fiscal_year: int, as_of: Optional[date] = None) -> PeriodWindow:
        """Resolve a period label for a fiscal year into its months."""
        label = normalize_period_label(label)
        year_months = self.fiscal_months(fiscal_year)

        if label in MONTH_LABELS:
            index = int(label[1:]) - 1
            months = (year_months[index],)
        elif label in QUARTER_LABELS:
            index = QUARTER_LABELS.index(label) * 3
            months = year_months[index:index + 3]
        elif label == FULL_YEAR:
            months = year_months
        elif label == YEAR_TO_DATE:
            if as_of is None:
                months = year_months
            else:
                cutoff = month_key(as_of.year, as_of.month)
                months = tuple(m for m in year_months if m <= cutoff)
        else:
            end = as_of or date.fromisoformat(f"{year_months[-1]}-01")
            first = date(end.year, end.month, 1) - relativedelta(months=11)
            months = []
            for offset in range(12):
                d = first + relativedelta(months=offset)
                months.append(month_key(d.year, d.month))

        return PeriodWindow(label=label, fiscal_year=fiscal_year, months=tuple(months))
