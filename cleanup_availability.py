#!/usr/bin/env python3
"""
Remove availability records from before the current month.
Can be run by a cron job instead of the in-process scheduler.
"""

import os

# The one-off run replaces the background job
os.environ.setdefault('CLEANUP_SCHEDULER_ENABLED', 'false')

from app import app
from storage import cleanup_past_month_data


def main():
    with app.app_context():
        deleted = cleanup_past_month_data()
        print(f"✅ Removed {deleted} past availability records")
    return deleted


if __name__ == '__main__':
    main()
