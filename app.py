from flask import Flask, render_template, request, jsonify, session, redirect, url_for, flash
from flask_cors import CORS
from flask_migrate import Migrate
from models import db, User
from storage import (
    UserNotFoundError,
    cleanup_past_month_data,
    create_user,
    delete_user,
    get_date_availabilities,
    get_user,
    get_users_with_availability_counts,
    set_availability,
    toggle_availability,
)
from scheduler import start_cleanup_scheduler
from calendar_utils import (
    DAYS_OF_WEEK,
    availability_level,
    build_month_grid,
    format_date_string,
    get_two_month_window,
    parse_date_string,
    today_in_timezone,
)
import logging
import os
import sys
from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    level=os.getenv('LOG_LEVEL', 'INFO').upper(),
    format='%(asctime)s %(levelname)s %(name)s: %(message)s'
)
logger = logging.getLogger(__name__)

MAX_USERNAME_LENGTH = 100
MAX_USER_ID = 2 ** 31 - 1


class ValidationError(ValueError):
    """Bad client input; reported as a 400 with a readable message"""


def env_flag(name, default):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def running_cli_command(argv=None):
    """True for `flask <command>` invocations other than `flask run`"""
    if argv is None:
        argv = sys.argv
    if not argv:
        return False
    program = os.path.normpath(argv[0])
    is_flask_cli = (
        os.path.basename(program) in ('flask', 'flask.exe')
        or program.endswith(os.path.join('flask', '__main__.py'))
    )
    return is_flask_cli and 'run' not in argv[1:]


app = Flask(__name__)

# Heroku/Railway style DATABASE_URL (postgres:// -> postgresql://)
database_url = os.getenv('DATABASE_URL', 'sqlite:///availability.db')
if database_url.startswith('postgres://'):
    database_url = database_url.replace('postgres://', 'postgresql://', 1)

app.config['SQLALCHEMY_DATABASE_URI'] = database_url
app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
app.config['SECRET_KEY'] = os.getenv('SECRET_KEY', 'dev-secret-key')
app.config['SESSION_COOKIE_SAMESITE'] = 'Lax'
app.config['TIMEZONE'] = os.getenv('TIMEZONE', 'UTC')
app.config['MAX_DATE_RANGE_DAYS'] = int(os.getenv('MAX_DATE_RANGE_DAYS', '366'))
app.config['CLEANUP_SCHEDULER_ENABLED'] = env_flag('CLEANUP_SCHEDULER_ENABLED', True)

db.init_app(app)
migrate = Migrate(app, db)
CORS(app, resources={r'/api/*': {'origins': '*'}})


# Request parsing helpers
def get_json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


def parse_user_id(value, field='userId'):
    if isinstance(value, bool):
        raise ValidationError(f'{field} must be an integer')
    if isinstance(value, str):
        try:
            value = int(value.strip())
        except ValueError:
            raise ValidationError(f'{field} must be an integer')
    if not isinstance(value, int):
        raise ValidationError(f'{field} must be an integer')
    # ids are stored in a 32-bit INTEGER column
    if not 1 <= value <= MAX_USER_ID:
        raise ValidationError(f'{field} must be between 1 and {MAX_USER_ID}')
    return value


def parse_date(value, field='date'):
    try:
        return parse_date_string(value)
    except ValueError:
        raise ValidationError(f'{field} must be a date in YYYY-MM-DD format')


def parse_username(value):
    if not isinstance(value, str):
        raise ValidationError('username is required')
    username = value.strip()
    if not username:
        raise ValidationError('username must not be empty')
    if len(username) > MAX_USERNAME_LENGTH:
        raise ValidationError(f'username must be at most {MAX_USERNAME_LENGTH} characters')
    return username


def server_error(message):
    """Roll back the failed request and report a generic 500"""
    db.session.rollback()
    logger.exception(message)
    return jsonify({'message': message}), 500


@app.errorhandler(ValidationError)
def handle_validation_error(error):
    return jsonify({'message': str(error)}), 400


def user_not_found():
    return jsonify({'message': 'User not found'}), 404


# Routes - Pages
@app.route('/')
def index():
    if 'user_id' not in session:
        return redirect(url_for('login'))
    return redirect(url_for('calendar_page'))


@app.route('/login', methods=['GET', 'POST'])
def login():
    if request.method == 'POST':
        try:
            username = parse_username(request.form.get('username'))
        except ValidationError:
            flash('Please enter your name', 'error')
            return render_template('login.html'), 400

        user = create_user(username)
        session['user_id'] = user.id
        session['username'] = user.username
        flash(f'Welcome, {user.username}!', 'success')
        return redirect(url_for('calendar_page'))

    # Already logged in, go straight to the calendar
    if 'user_id' in session:
        return redirect(url_for('calendar_page'))
    return render_template('login.html')


@app.route('/logout')
def logout():
    session.clear()
    return redirect(url_for('login'))


def build_calendar_months(current_user_id, today):
    """Two month grids with per-day availability for the calendar page"""
    months = get_two_month_window(today)
    days = get_date_availabilities(months[0].start, months[1].end)
    by_date = {day['date']: day for day in days}
    total_users = User.query.count()

    calendar_months = []
    for month_range in months:
        weeks = []
        for week in build_month_grid(month_range):
            cells = []
            for day in week:
                if day is None:
                    cells.append(None)
                    continue
                record = by_date[format_date_string(day)]
                user_ids = [u['id'] for u in record['availableUsers']]
                mine = current_user_id in user_ids
                others = len(user_ids) - (1 if mine else 0)
                cells.append({
                    'date': format_date_string(day),
                    'day': day.day,
                    'mine': mine,
                    'count': len(user_ids),
                    'all_available': record['allAvailable'],
                    'level': availability_level(others, total_users - 1),
                    'names': [u['username'] for u in record['availableUsers']],
                })
            weeks.append(cells)
        calendar_months.append({
            'name': month_range.start.strftime('%B %Y'),
            'weeks': weeks,
        })
    return calendar_months


@app.route('/calendar')
def calendar_page():
    user_id = session.get('user_id')
    if user_id is None:
        return redirect(url_for('login'))

    user = get_user(user_id)
    if user is None:
        # Deleted since they logged in
        session.clear()
        return redirect(url_for('login'))

    today = today_in_timezone(app.config['TIMEZONE'])
    return render_template(
        'calendar.html',
        user=user,
        days_of_week=DAYS_OF_WEEK,
        months=build_calendar_months(user.id, today),
        users=get_users_with_availability_counts(),
    )


@app.route('/calendar/toggle', methods=['POST'])
def calendar_toggle():
    user_id = session.get('user_id')
    if user_id is None:
        return redirect(url_for('login'))

    try:
        day = parse_date(request.form.get('date'))
        toggle_availability(user_id, day)
    except ValidationError as e:
        flash(str(e), 'error')
    except UserNotFoundError:
        session.clear()
        return redirect(url_for('login'))
    return redirect(url_for('calendar_page'))


@app.route('/users/<user_id>/delete', methods=['POST'])
def delete_user_page(user_id):
    try:
        user_id = parse_user_id(user_id, 'user id')
        delete_user(user_id)
        flash('User deleted', 'success')
    except (ValidationError, UserNotFoundError):
        flash('User not found', 'error')
        return redirect(url_for('calendar_page'))

    if session.get('user_id') == user_id:
        session.clear()
        return redirect(url_for('login'))
    return redirect(url_for('calendar_page'))


# API Routes - Users
@app.route('/api/users', methods=['POST'])
def create_user_endpoint():
    data = get_json_body()
    username = parse_username(data.get('username'))

    try:
        user = create_user(username)
    except Exception:
        return server_error('Failed to create user')
    return jsonify(user.to_dict()), 201


@app.route('/api/users', methods=['GET'])
def list_users():
    try:
        users = get_users_with_availability_counts()
    except Exception:
        return server_error('Failed to fetch users')
    return jsonify(users)


@app.route('/api/users/<user_id>', methods=['DELETE'])
def delete_user_endpoint(user_id):
    try:
        user_id = parse_user_id(user_id)
    except ValidationError:
        raise ValidationError('Invalid user ID')

    try:
        delete_user(user_id)
    except UserNotFoundError:
        return user_not_found()
    except Exception:
        return server_error('Failed to delete user')
    return jsonify({'message': 'User deleted successfully'}), 200


# API Routes - Availability
@app.route('/api/availability', methods=['POST'])
def set_availability_endpoint():
    data = get_json_body()
    if data.get('userId') is None or data.get('date') is None:
        raise ValidationError('userId and date are required')
    user_id = parse_user_id(data['userId'])
    day = parse_date(data['date'])
    available = data.get('available', True)
    if not isinstance(available, bool):
        raise ValidationError('available must be a boolean')

    try:
        availability = set_availability(user_id, day, available)
    except UserNotFoundError:
        return user_not_found()
    except Exception:
        return server_error('Failed to set availability')
    return jsonify(availability.to_dict()), 201


@app.route('/api/availability/toggle', methods=['POST'])
def toggle_availability_endpoint():
    data = get_json_body()
    if not data.get('userId') or not data.get('date'):
        raise ValidationError('userId and date are required')
    user_id = parse_user_id(data['userId'])
    day = parse_date(data['date'])

    try:
        availability = toggle_availability(user_id, day)
    except UserNotFoundError:
        return user_not_found()
    except Exception:
        return server_error('Failed to toggle availability')
    return jsonify(availability.to_dict()), 200


@app.route('/api/availability/dates', methods=['GET'])
def get_date_availability_endpoint():
    start_date = request.args.get('startDate')
    end_date = request.args.get('endDate')
    if not start_date or not end_date:
        raise ValidationError('startDate and endDate are required query parameters')

    start = parse_date(start_date, 'startDate')
    end = parse_date(end_date, 'endDate')
    max_days = app.config['MAX_DATE_RANGE_DAYS']
    if (end - start).days + 1 > max_days:
        raise ValidationError(f'Date range must not exceed {max_days} days')

    try:
        days = get_date_availabilities(start, end)
    except Exception:
        return server_error('Failed to fetch date availability')
    return jsonify(days)


# CLI commands
@app.cli.command('init-db')
def init_db():
    """Initialize the database."""
    db.create_all()
    print("Database initialized!")


@app.cli.command('cleanup-availability')
def cleanup_availability_command():
    """Delete availability rows from before the current month."""
    deleted = cleanup_past_month_data()
    print(f"Removed {deleted} past availability records")


# Create tables on startup (works with both gunicorn and direct execution)
with app.app_context():
    try:
        logger.info("Initializing database tables...")
        db.create_all()
    except Exception:
        logger.exception("Error creating database tables")

# Every process that imports the app runs its own scheduler, so multi-worker
# deployments should set CLEANUP_SCHEDULER_ENABLED=false and run
# cleanup_availability.py from cron instead.
if app.config['CLEANUP_SCHEDULER_ENABLED'] and not running_cli_command():
    cleanup_scheduler = start_cleanup_scheduler(app)


if __name__ == '__main__':
    app.run(debug=True, host='0.0.0.0', port=5001)
