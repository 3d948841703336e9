from calendar_utils import today_in_timezone


def _login(client, username='Alice'):
    return client.post('/login', data={'username': username}, follow_redirects=True)


def test_index_redirects_to_login(client):
    resp = client.get('/')
    assert resp.status_code == 302
    assert resp.headers['Location'].endswith('/login')


def test_login_creates_user_and_shows_calendar(client):
    resp = _login(client)
    assert resp.status_code == 200
    body = resp.get_data(as_text=True)
    assert 'Welcome, Alice' in body
    assert today_in_timezone('UTC').strftime('%B %Y') in body

    with client.session_transaction() as sess:
        assert sess['username'] == 'Alice'

    users = client.get('/api/users').get_json()
    assert [u['username'] for u in users] == ['Alice']


def test_login_requires_name(client):
    resp = client.post('/login', data={'username': '  '})
    assert resp.status_code == 400
    assert 'Please enter your name' in resp.get_data(as_text=True)


def test_calendar_requires_login(client):
    resp = client.get('/calendar')
    assert resp.status_code == 302


def test_toggle_from_calendar(client):
    _login(client)
    today = today_in_timezone('UTC').isoformat()

    resp = client.post('/calendar/toggle', data={'date': today})
    assert resp.status_code == 302

    [day] = client.get('/api/availability/dates', query_string={'startDate': today, 'endDate': today}).get_json()
    assert [u['username'] for u in day['availableUsers']] == ['Alice']
    assert day['allAvailable'] is True


def test_deleting_yourself_logs_out(client):
    _login(client)
    with client.session_transaction() as sess:
        user_id = sess['user_id']

    resp = client.post(f'/users/{user_id}/delete')
    assert resp.status_code == 302
    assert resp.headers['Location'].endswith('/login')
    assert client.get('/api/users').get_json() == []


def test_logout_clears_session(client):
    _login(client)
    client.get('/logout')
    with client.session_transaction() as sess:
        assert 'user_id' not in sess


def test_delete_page_with_out_of_range_id(client):
    _login(client)
    resp = client.post(f'/users/{10 ** 20}/delete', follow_redirects=True)
    assert resp.status_code == 200
    assert 'User not found' in resp.get_data(as_text=True)
