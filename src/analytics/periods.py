from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta

from src.core.errors import BadRequestError


@dataclass(frozen=True)
class Period:
    start: date
    end: date

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1


@dataclass(frozen=True)
class ComparisonPeriods:
    current: Period
    prior: Period
    two_prior: Period


def resolve_comparison_periods(date_from: date, date_to: date) -> ComparisonPeriods:
    """Split history into three contiguous, equal-length windows ending at ``date_to``.

    Plain day arithmetic keeps the windows aligned across month and quarter ends.
    """
    if date_to < date_from:
        raise BadRequestError("date_to must not be earlier than date_from")
    span = (date_to - date_from).days + 1
    current = Period(start=date_from, end=date_to)
    prior = Period(start=date_from - timedelta(days=span), end=date_from - timedelta(days=1))
    two_prior = Period(
        start=date_from - timedelta(days=2 * span),
        end=date_from - timedelta(days=span + 1),
    )
    return ComparisonPeriods(current=current, prior=prior, two_prior=two_prior)
