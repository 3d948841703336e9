import os

# Configure before the app module is imported
os.environ['DATABASE_URL'] = 'sqlite://'
os.environ['CLEANUP_SCHEDULER_ENABLED'] = 'false'
os.environ.setdefault('SECRET_KEY', 'test-secret-key')

import pytest

from app import app as flask_app
from models import db


@pytest.fixture()
def app():
    flask_app.config['TESTING'] = True
    with flask_app.app_context():
        db.drop_all()
        db.create_all()
        yield flask_app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    with app.test_client() as test_client:
        yield test_client


def _register(client, username):
    resp = client.post('/api/users', json={'username': username})
    assert resp.status_code == 201
    return resp.get_json()


@pytest.fixture()
def register(client):
    return lambda username: _register(client, username)
