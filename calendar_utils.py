"""
Date helpers for the two-month availability calendar.
Weeks start on Monday throughout.
"""
import calendar
import re
from collections import namedtuple
from datetime import date, datetime

import pytz

MonthRange = namedtuple('MonthRange', ['start', 'end', 'year', 'month'])

DAYS_OF_WEEK = ['Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat', 'Sun']

ISO_DATE_RE = re.compile(r'^\d{4}-\d{2}-\d{2}$')


def get_days_in_month(year, month):
    """Number of days in a month (month is 1-12)"""
    return calendar.monthrange(year, month)[1]


def get_first_day_of_month(year, month):
    """Weekday of the 1st of the month, Monday = 0 ... Sunday = 6"""
    return date(year, month, 1).weekday()


def get_month_range(year, month):
    """First and last day of a month"""
    start = date(year, month, 1)
    end = date(year, month, get_days_in_month(year, month))
    return MonthRange(start=start, end=end, year=year, month=month)


def get_two_month_window(today=None):
    """Ranges for the current month and the one after it"""
    if today is None:
        today = date.today()
    current = get_month_range(today.year, today.month)
    if today.month == 12:
        following = get_month_range(today.year + 1, 1)
    else:
        following = get_month_range(today.year, today.month + 1)
    return current, following


def build_month_grid(month_range):
    """
    Lay a month out as a list of weeks, each a list of 7 cells.
    Cells before the 1st and after the last day are None.
    """
    cells = [None] * get_first_day_of_month(month_range.year, month_range.month)
    for day in range(1, month_range.end.day + 1):
        cells.append(date(month_range.year, month_range.month, day))
    while len(cells) % 7:
        cells.append(None)
    return [cells[i:i + 7] for i in range(0, len(cells), 7)]


def availability_level(available_count, total_count):
    """Bucket the share of available users: none, low, medium, high or full"""
    if total_count <= 0 or available_count <= 0:
        return 'none'
    ratio = available_count / total_count
    if ratio >= 1:
        return 'full'
    if ratio >= 0.7:
        return 'high'
    if ratio >= 0.3:
        return 'medium'
    return 'low'


def format_date_string(value):
    return value.isoformat()


def parse_date_string(value):
    """Parse a strict YYYY-MM-DD string, raising ValueError otherwise"""
    if not isinstance(value, str) or not ISO_DATE_RE.match(value):
        raise ValueError(f"Invalid date '{value}', expected YYYY-MM-DD")
    return datetime.strptime(value, '%Y-%m-%d').date()


def today_in_timezone(tz_name):
    """Current calendar day in the given timezone"""
    return datetime.now(pytz.timezone(tz_name)).date()
