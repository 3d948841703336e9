from datetime import date

import pytest

from calendar_utils import (
    availability_level,
    build_month_grid,
    get_days_in_month,
    get_first_day_of_month,
    get_month_range,
    get_two_month_window,
    parse_date_string,
)


def test_days_in_month():
    assert get_days_in_month(2026, 2) == 28
    assert get_days_in_month(2028, 2) == 29
    assert get_days_in_month(2026, 10) == 31


def test_first_day_is_monday_based():
    # 1 June 2026 is a Monday, 1 November 2026 a Sunday
    assert get_first_day_of_month(2026, 6) == 0
    assert get_first_day_of_month(2026, 11) == 6


def test_month_range():
    month = get_month_range(2026, 10)
    assert month.start == date(2026, 10, 1)
    assert month.end == date(2026, 10, 31)
    assert (month.year, month.month) == (2026, 10)


def test_two_month_window_rolls_over_year():
    current, following = get_two_month_window(date(2026, 12, 15))
    assert current.start == date(2026, 12, 1)
    assert following.start == date(2027, 1, 1)
    assert following.end == date(2027, 1, 31)


def test_month_grid_pads_to_full_weeks():
    weeks = build_month_grid(get_month_range(2026, 11))
    assert all(len(week) == 7 for week in weeks)
    assert weeks[0][:6] == [None] * 6
    assert weeks[0][6] == date(2026, 11, 1)
    days = [d for week in weeks for d in week if d is not None]
    assert len(days) == 30
    assert days[-1] == date(2026, 11, 30)


@pytest.mark.parametrize('count,total,level', [
    (0, 0, 'none'),
    (0, 4, 'none'),
    (1, 4, 'low'),
    (2, 4, 'medium'),
    (3, 4, 'high'),
    (4, 4, 'full'),
])
def test_availability_level(count, total, level):
    assert availability_level(count, total) == level


def test_parse_date_string():
    assert parse_date_string('2026-10-21') == date(2026, 10, 21)
    for bad in ('2026-10-32', '21/10/2026', '2026-1-5', None, 20261021):
        with pytest.raises(ValueError):
            parse_date_string(bad)
