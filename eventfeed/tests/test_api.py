from datetime import timedelta, timezone

import httpx
import pytest
from sqlalchemy import update

from eventfeed.auth import utcnow
from eventfeed.models import AsyncSessionLocal
from eventfeed.models.events import Event
from eventfeed.routes import stops as stops_routes

USER = {'username': 'testuser', 'email': 'testuser@example.com', 'password': 'SuperSecret123!'}


async def register_and_login(ac, user=USER, agent='pytest'):
    r = await ac.post('/api/auth/register', json=user)
    assert r.status_code == 201, r.text
    login = await ac.post(
        '/api/auth/login',
        json={'username_or_email': user['username'], 'password': user['password']},
        headers={'User-Agent': agent},
    )
    assert login.status_code == 200, login.text
    return r.json(), {'Authorization': f"Bearer {login.json()['access_token']}"}


@pytest.mark.asyncio
async def test_healthz(client):
    res = await client.get('/healthz')
    assert res.status_code == 200
    assert res.json() == {'status': 'ok'}


@pytest.mark.asyncio
async def test_register_login_me_logout(client):
    created, headers = await register_and_login(client)
    assert created['username'] == USER['username']
    assert 'password' not in created and 'hashed_password' not in created

    me = await client.get('/api/auth/me', headers=headers)
    assert me.status_code == 200, me.text
    assert me.json()['id'] == created['id']

    out = await client.post('/api/auth/logout', headers=headers)
    assert out.status_code == 200
    assert out.json()['ok'] is True

    again = await client.get('/api/auth/me', headers=headers)
    assert again.status_code == 401
    assert again.json()['detail'] == 'Token not recognized or revoked'


@pytest.mark.asyncio
async def test_duplicate_registration_conflicts(client):
    await client.post('/api/auth/register', json=USER)
    same_name = await client.post('/api/auth/register', json={**USER, 'email': 'other@example.com'})
    same_email = await client.post('/api/auth/register', json={**USER, 'username': 'otheruser'})
    assert same_name.status_code == 409
    assert same_email.status_code == 409
    assert 'in use' in same_name.json()['detail']


@pytest.mark.asyncio
async def test_register_validates_shape(client):
    res = await client.post('/api/auth/register', json={'username': 'x', 'email': 'nope', 'password': 'short'})
    assert res.status_code == 422


@pytest.mark.asyncio
async def test_login_by_email_and_bad_password(client):
    await client.post('/api/auth/register', json=USER)
    ok = await client.post('/api/auth/login', json={'username_or_email': USER['email'], 'password': USER['password']})
    assert ok.status_code == 200
    assert ok.json()['token_type'] == 'bearer'
    assert ok.json()['user']['email'] == USER['email']

    bad = await client.post('/api/auth/login', json={'username_or_email': USER['username'], 'password': 'wrongpassword'})
    assert bad.status_code == 401
    nobody = await client.post('/api/auth/login', json={'username_or_email': 'ghost', 'password': 'whatever'})
    assert nobody.status_code == 401


@pytest.mark.asyncio
async def test_logout_on_one_device_keeps_other(client):
    await client.post('/api/auth/register', json=USER)
    creds = {'username_or_email': USER['username'], 'password': USER['password']}
    phone = (await client.post('/api/auth/login', json=creds, headers={'User-Agent': 'phone'})).json()['access_token']
    laptop = (await client.post('/api/auth/login', json=creds, headers={'User-Agent': 'laptop'})).json()['access_token']

    await client.post('/api/auth/logout', headers={'Authorization': f'Bearer {phone}'})

    assert (await client.get('/api/auth/me', headers={'Authorization': f'Bearer {phone}'})).status_code == 401
    assert (await client.get('/api/auth/me', headers={'Authorization': f'Bearer {laptop}'})).status_code == 200


@pytest.mark.asyncio
async def test_protected_routes_require_bearer(client):
    missing = await client.get('/api/auth/me')
    assert missing.status_code == 401
    assert missing.headers['www-authenticate'] == 'Bearer'
    wrong_scheme = await client.get('/api/auth/me', headers={'Authorization': 'Basic abc'})
    assert wrong_scheme.json()['detail'] == 'Missing or invalid Authorization header'
    garbage = await client.post('/api/events/', json={'stop_id': 's', 'type': 't'}, headers={'Authorization': 'Bearer garbage'})
    assert garbage.status_code == 401
    assert garbage.json()['detail'] == 'Invalid or expired token'


@pytest.mark.asyncio
async def test_event_lifecycle_with_reactions(client):
    created, headers = await register_and_login(client)

    res = await client.post('/api/events/', json={'stop_id': 'stop-42', 'type': 'delay', 'description': 'late'}, headers=headers)
    assert res.status_code == 201, res.text
    ev = res.json()
    assert ev['created_by'] == created['id']
    assert (ev['likes'], ev['dislikes']) == (0, 0)

    first = await client.post(f"/api/events/{ev['id']}/like", headers=headers)
    assert first.json() == {'message': 'Reaction registered', 'likes': 1, 'dislikes': 0}
    repeat = await client.post(f"/api/events/{ev['id']}/like", headers=headers)
    assert repeat.json() == {'message': 'Reaction registered', 'likes': 1, 'dislikes': 0}
    flip = await client.post(f"/api/events/{ev['id']}/dislike", headers=headers)
    assert flip.json() == {'message': 'Reaction updated', 'likes': 0, 'dislikes': 1}

    detail = await client.get(f"/api/events/{ev['id']}")
    assert detail.status_code == 200
    assert (detail.json()['likes'], detail.json()['dislikes']) == (0, 1)


@pytest.mark.asyncio
async def test_reacting_to_missing_event_is_404(client):
    _, headers = await register_and_login(client)
    res = await client.post('/api/events/does-not-exist/like', headers=headers)
    assert res.status_code == 404
    assert (await client.get('/api/events/does-not-exist')).status_code == 404


@pytest.mark.asyncio
async def test_event_listing_filters_and_window(client):
    _, headers = await register_and_login(client)
    for stop_id, kind in [('a', 'delay'), ('b', 'crowd'), ('c', 'delay')]:
        await client.post('/api/events/', json={'stop_id': stop_id, 'type': kind}, headers=headers)

    old = await client.post('/api/events/', json={'stop_id': 'old', 'type': 'delay'}, headers=headers)
    async with AsyncSessionLocal() as session:
        await session.execute(update(Event).where(Event.id == old.json()['id']).values(timestamp=utcnow() - timedelta(days=4)))
        await session.commit()

    everything = (await client.get('/api/events/')).json()['events']
    assert {e['stop_id'] for e in everything} == {'a', 'b', 'c'}
    assert [e['stop_id'] for e in everything] == ['c', 'b', 'a']

    delays = (await client.get('/api/events/', params={'type': 'delay'})).json()['events']
    assert {e['stop_id'] for e in delays} == {'a', 'c'}

    future = (utcnow() + timedelta(minutes=5)).isoformat()
    assert (await client.get('/api/events/', params={'since': future})).json()['events'] == []


@pytest.mark.asyncio
async def test_since_with_offset_is_compared_in_utc(client):
    _, headers = await register_and_login(client)
    ev = (await client.post('/api/events/', json={'stop_id': 's', 'type': 'delay'}, headers=headers)).json()

    warsaw = timezone(timedelta(hours=2))
    an_hour_ago = (utcnow() - timedelta(hours=1)).astimezone(warsaw).isoformat()
    in_an_hour = (utcnow() + timedelta(hours=1)).astimezone(warsaw).isoformat()

    recent = (await client.get('/api/events/', params={'since': an_hour_ago})).json()['events']
    assert [e['id'] for e in recent] == [ev['id']]
    assert (await client.get('/api/events/', params={'since': in_an_hour})).json()['events'] == []


@pytest.mark.asyncio
async def test_long_password_within_limit(client):
    user = {**USER, 'password': 'p' * 128}
    _, headers = await register_and_login(client, user=user)
    assert (await client.get('/api/auth/me', headers=headers)).status_code == 200
    too_long = await client.post('/api/auth/register', json={**USER, 'username': 'other', 'email': 'o@example.com', 'password': 'p' * 129})
    assert too_long.status_code == 422

@pytest.mark.asyncio
async def test_stops_are_fetched_once_per_window(client, monkeypatch):
    calls = []

    async def fake_fetch(params=None):
        calls.append(params)
        return [{'stop_name': f'call-{len(calls)}'}]

    monkeypatch.setattr(stops_routes, 'fetch_stops', fake_fetch)

    first = await client.get('/api/stops/')
    second = await client.get('/api/stops/')
    assert first.json() == second.json() == [{'stop_name': 'call-1'}]

    filtered = await client.get('/api/stops/', params={'zone': 'B'})
    assert filtered.json() == [{'stop_name': 'call-2'}]
    assert calls == [None, {'zone': 'B'}]


@pytest.mark.asyncio
async def test_stops_upstream_failure_is_not_cached(client, monkeypatch):
    outcomes = [httpx.ConnectError('boom'), [{'stop_name': 'ok'}]]

    async def flaky_fetch(params=None):
        outcome = outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    monkeypatch.setattr(stops_routes, 'fetch_stops', flaky_fetch)

    failed = await client.get('/api/stops/')
    assert failed.status_code == 502
    recovered = await client.get('/api/stops/')
    assert recovered.status_code == 200
    assert recovered.json() == [{'stop_name': 'ok'}]
