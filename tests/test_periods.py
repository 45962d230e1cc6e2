from __future__ import annotations

from datetime import date, timedelta

import pytest

from src.analytics.periods import Period, resolve_comparison_periods
from src.core.errors import BadRequestError
from src.shared.time import business_days_between


@pytest.mark.parametrize(
    "date_from,date_to",
    [
        (date(2026, 3, 2), date(2026, 3, 8)),
        (date(2026, 3, 1), date(2026, 3, 31)),
        (date(2026, 1, 1), date(2026, 3, 31)),
        (date(2024, 2, 29), date(2024, 2, 29)),
        (date(2025, 12, 15), date(2026, 1, 14)),
    ],
)
def test_comparison_periods_are_contiguous_and_equal_length(date_from, date_to):
    periods = resolve_comparison_periods(date_from, date_to)

    assert periods.current == Period(start=date_from, end=date_to)
    assert periods.prior.days == periods.current.days
    assert periods.two_prior.days == periods.current.days
    assert periods.prior.end + timedelta(days=1) == periods.current.start
    assert periods.two_prior.end + timedelta(days=1) == periods.prior.start


def test_comparison_periods_cross_month_boundary():
    periods = resolve_comparison_periods(date(2026, 3, 1), date(2026, 3, 7))

    assert periods.prior == Period(start=date(2026, 2, 22), end=date(2026, 2, 28))
    assert periods.two_prior == Period(start=date(2026, 2, 15), end=date(2026, 2, 21))


def test_single_day_range_resolves_to_single_day_windows():
    periods = resolve_comparison_periods(date(2026, 3, 10), date(2026, 3, 10))

    assert periods.prior == Period(start=date(2026, 3, 9), end=date(2026, 3, 9))
    assert periods.two_prior == Period(start=date(2026, 3, 8), end=date(2026, 3, 8))


def test_reversed_range_is_rejected():
    with pytest.raises(BadRequestError):
        resolve_comparison_periods(date(2026, 3, 8), date(2026, 3, 2))


@pytest.mark.parametrize(
    "start,end,expected",
    [
        # Monday to Sunday of the same week.
        (date(2026, 3, 2), date(2026, 3, 8), 5),
        (date(2026, 3, 2), date(2026, 3, 6), 4),
        (date(2026, 3, 2), date(2026, 3, 2), 0),
        (date(2026, 3, 7), date(2026, 3, 9), 0),
        (date(2026, 3, 1), date(2026, 3, 31), 21),
        (date(2026, 3, 6), date(2026, 3, 2), -4),
    ],
)
def test_business_days_between(start, end, expected):
    assert business_days_between(start, end) == expected
