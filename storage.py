"""
Storage layer for users and their per-day availability.

All writes commit their own session. Aggregated views (per-day availability,
per-user counts) are recomputed on every call.
"""
import logging
from collections import defaultdict
from datetime import timedelta

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from calendar_utils import today_in_timezone
from models import db, User, Availability

logger = logging.getLogger(__name__)


class UserNotFoundError(LookupError):
    """Raised when an operation references a user id that does not exist"""

    def __init__(self, user_id):
        super().__init__(f"User {user_id} not found")
        self.user_id = user_id


# User management
def get_users():
    return User.query.order_by(User.id).all()


def get_user(user_id):
    return db.session.get(User, user_id)


def get_user_by_username(username):
    return User.find_by_username(username)


def create_user(username):
    """Create a user, or return the existing one whose name matches ignoring case"""
    existing_user = get_user_by_username(username)
    if existing_user:
        logger.info("[USERS] %s logged in again as user %s", username, existing_user.id)
        return existing_user

    user = User(username=username)
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        # Another request registered the same name first
        db.session.rollback()
        existing_user = get_user_by_username(username)
        if existing_user is None:
            raise
        return existing_user

    logger.info("[USERS] Created user %s (%s)", user.id, user.username)
    return user


def delete_user(user_id):
    """Delete a user together with all of their availability rows"""
    user = get_user(user_id)
    if user is None:
        raise UserNotFoundError(user_id)

    removed = Availability.query.filter_by(user_id=user_id).delete(synchronize_session=False)
    db.session.delete(user)
    db.session.commit()
    logger.info("[USERS] Deleted user %s and %s availability rows", user_id, removed)


# Availability management
def get_availability_by_user(user_id):
    return Availability.query.filter_by(user_id=user_id).order_by(Availability.date).all()


def get_availability_by_date(day):
    return Availability.query.filter_by(date=day).order_by(Availability.user_id).all()


def _find_availability(user_id, day):
    return Availability.query.filter_by(user_id=user_id, date=day).first()


def _require_user(user_id):
    if get_user(user_id) is None:
        raise UserNotFoundError(user_id)


def set_availability(user_id, day, available=True):
    """Upsert the availability flag for one user on one day"""
    _require_user(user_id)

    availability = _find_availability(user_id, day)
    if availability:
        availability.available = available
    else:
        availability = Availability(user_id=user_id, date=day, available=available)
        db.session.add(availability)

    db.session.commit()
    return availability


def toggle_availability(user_id, day):
    """Flip the flag for (user, day), creating it as available when missing"""
    _require_user(user_id)

    availability = _find_availability(user_id, day)
    if availability:
        availability.available = not availability.available
    else:
        availability = Availability(user_id=user_id, date=day, available=True)
        db.session.add(availability)

    db.session.commit()
    logger.debug("[AVAILABILITY] User %s on %s -> %s", user_id, day, availability.available)
    return availability


# Aggregated data
def get_users_with_availability_counts():
    counts = dict(
        db.session.query(Availability.user_id, func.count(Availability.id))
        .filter(Availability.available == True)  # noqa: E712
        .group_by(Availability.user_id)
        .all()
    )

    users = []
    for user in get_users():
        user_dict = user.to_dict()
        user_dict['availabilityCount'] = counts.get(user.id, 0)
        users.append(user_dict)
    return users


def get_date_availabilities(start_date, end_date):
    """
    One record per calendar day in [start_date, end_date], ascending.

    Each record lists the users available that day and whether that is
    every registered user. Rows pointing at users that no longer exist
    are ignored.
    """
    users_by_id = {user.id: user for user in get_users()}
    total_users = len(users_by_id)

    rows = (
        Availability.query
        .filter(
            Availability.date >= start_date,
            Availability.date <= end_date,
            Availability.available == True  # noqa: E712
        )
        .order_by(Availability.date, Availability.user_id)
        .all()
    )
    user_ids_by_date = defaultdict(list)
    for row in rows:
        user_ids_by_date[row.date].append(row.user_id)

    days = []
    for offset in range((end_date - start_date).days + 1):
        current = start_date + timedelta(days=offset)
        available_users = [
            users_by_id[user_id].to_dict()
            for user_id in user_ids_by_date.get(current, [])
            if user_id in users_by_id
        ]
        days.append({
            'date': current.isoformat(),
            'availableUsers': available_users,
            'allAvailable': total_users > 0 and len(available_users) == total_users
        })

    return days


# Housekeeping
def cleanup_past_month_data(today=None):
    """Delete availability rows dated before the first day of today's month"""
    if today is None:
        today = today_in_timezone(current_app.config.get('TIMEZONE', 'UTC'))
    cutoff = today.replace(day=1)
    deleted = Availability.query.filter(Availability.date < cutoff).delete(synchronize_session=False)
    db.session.commit()
    logger.info("[CLEANUP] Removed %s availability rows dated before %s", deleted, cutoff.isoformat())
    return deleted
