from sqlalchemy.exc import OperationalError


def _submit(client, openid, name, score, role_id=None):
    body = {'player_name': name, 'score': score}
    if role_id is not None:
        body['role_id'] = role_id
    return client.post('/api/rank/submit', json=body, headers={'X-WX-OPENID': openid})


def test_index_and_current_date(client):
    res = client.get('/')
    assert res.status_code == 200
    assert res.get_json()['date'] == '2025-03-10'

    info = client.get('/api/current_date').get_json()
    assert info['date'] == '2025-03-10'
    assert info['hour'] == 12


def test_submit_requires_identity(client):
    res = client.post('/api/rank/submit', json={'player_name': 'Alice', 'score': 1})
    assert res.status_code == 401
    res = client.post('/api/rank/submit', json={'player_name': 'Alice', 'score': 1},
                      headers={'X-WX-OPENID': '   '})
    assert res.status_code == 401


def test_submit_validation_errors(client):
    assert _submit(client, 'A', '', 10).status_code == 400
    assert _submit(client, 'A', 'Alice', -5).status_code == 400
    assert _submit(client, 'A', 'Alice', 10, role_id=-1).status_code == 400
    res = client.post('/api/rank/submit', data='not json', headers={'X-WX-OPENID': 'A'})
    assert res.status_code == 400
    assert 'error' in res.get_json()
    # Nothing was stored
    assert client.get('/api/rank/stats').get_json()['total_players'] == 0


def test_out_of_range_values_are_bad_requests(client):
    huge = _submit(client, 'A', 'Alice', 2 ** 63)
    assert huge.status_code == 400
    assert 'score' in huge.get_json()['error']
    assert _submit(client, 'A', 'Alice', 2 ** 31).status_code == 400
    assert _submit(client, 'A', 'x' * 51, 10).status_code == 400
    assert _submit(client, 'A', 'Alice', 10, role_id=2 ** 40).status_code == 400

    long_id = 'o' * 101
    res = _submit(client, long_id, 'Alice', 10)
    assert res.status_code == 400
    assert 'identity' in res.get_json()['error']
    assert client.get('/api/rank/my', headers={'X-WX-OPENID': long_id}).status_code == 400
    assert client.get('/api/rank/list', headers={'X-WX-OPENID': long_id}).status_code == 400

    assert client.get('/api/rank/stats').get_json()['total_players'] == 0
    assert _submit(client, 'o' * 100, 'x' * 50, 2 ** 31 - 1).status_code == 200


def test_submit_flow_over_http(client):
    res = _submit(client, 'A', 'Alice', 50, role_id=1)
    assert res.status_code == 200
    assert res.get_json() == {'player_name': 'Alice', 'role_id': 1, 'score': 50, 'rank': 1,
                              'updated': True, 'created': True, 'date': '2025-03-10'}

    assert _submit(client, 'B', 'Bob', 80).get_json()['rank'] == 1
    assert _submit(client, 'A', 'Alice', 90).get_json()['rank'] == 1

    kept = _submit(client, 'B', 'Bob', 60).get_json()
    assert kept['updated'] is False
    assert kept['score'] == 80
    assert kept['rank'] == 2

    board = client.get('/api/rank/list', headers={'X-WX-OPENID': 'B'}).get_json()
    assert [(e['rank'], e['player_name'], e['score']) for e in board['entries']] == [
        (1, 'Alice', 90), (2, 'Bob', 80),
    ]
    assert board['my_rank'] == 2 and board['my_score'] == 80 and board['my_role_id'] == 1
    assert board['date'] == '2025-03-10'


def test_list_without_identity(client):
    _submit(client, 'A', 'Alice', 5)
    board = client.get('/api/rank/list').get_json()
    assert board['my_rank'] is None
    assert len(board['entries']) == 1


def test_my_rank_endpoint(client):
    assert client.get('/api/rank/my').status_code == 401

    res = client.get('/api/rank/my', headers={'X-WX-OPENID': 'A'})
    assert res.get_json() == {'on_rank': False, 'date': '2025-03-10'}

    _submit(client, 'A', 'Alice', 42, role_id=4)
    mine = client.get('/api/rank/my', headers={'X-WX-OPENID': 'A'}).get_json()
    assert mine == {'on_rank': True, 'rank': 1, 'score': 42, 'player_name': 'Alice',
                    'role_id': 4, 'date': '2025-03-10'}


def test_stats_endpoint(client):
    _submit(client, 'A', 'Alice', 42)
    _submit(client, 'B', 'Bob', 7)
    stats = client.get('/api/rank/stats').get_json()
    assert stats == {'total_players': 2, 'top100_min_score': 7, 'top100_count': 2, 'date': '2025-03-10'}


def test_date_query_parameter(client):
    _submit(client, 'A', 'Alice', 42)
    other = client.get('/api/rank/stats?date=2025-03-09').get_json()
    assert other['total_players'] == 0 and other['date'] == '2025-03-09'
    assert client.get('/api/rank/list?date=yesterday').status_code == 400


def test_store_failure_is_server_error(client, monkeypatch):
    from dailyrank.services.ranking import SqlRankStore

    def unavailable(self, *args, **kwargs):
        raise OperationalError('SELECT 1', {}, Exception('database is gone'))

    monkeypatch.setattr(SqlRankStore, 'find_top', unavailable)
    res = client.get('/api/rank/list')
    assert res.status_code == 500
    assert res.get_json() == {'error': 'Leaderboard storage is unavailable'}
