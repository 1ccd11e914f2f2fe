def test_health(client):
    res = client.get('/api/health')
    assert res.status_code == 200
    assert res.get_json() == {'ok': True}


def test_lobby_snapshot(client, game):
    lobby = game.create_lobby('Host', 'sid-1')
    game.membership.join(lobby.code, 'Guest', 'sid-2')

    res = client.get(f'/api/lobbies/{lobby.code.lower()}')
    assert res.status_code == 200
    data = res.get_json()
    assert data['code'] == lobby.code
    assert data['state'] == 'WAITING_FOR_PLAYERS'
    assert data['hostId'] == 1
    assert [p['nickname'] for p in data['players']] == ['Host', 'Guest']
    assert data['currentRound'] is None
    # Secrets never leave the server.
    for p in data['players']:
        assert set(p) == {'id', 'nickname', 'score', 'status', 'wordCount'}


def test_lobby_snapshot_hides_answers_until_reveal(client, game):
    lobby = game.create_lobby('Host', 'sid-1')
    guest = game.membership.join(lobby.code, 'Guest', 'sid-2')
    game.rounds.start_round(lobby.code)
    game.rounds.submit_answer(lobby.code, guest.id, [guest.words[0]])

    rnd = client.get(f'/api/lobbies/{lobby.code}').get_json()['currentRound']
    assert rnd['stage'] == 'ANSWERING'
    assert rnd['submitted'] == [guest.id]
    assert rnd['submissions'] == {}


def test_missing_lobby(client):
    res = client.get('/api/lobbies/NOPE22')
    assert res.status_code == 404
    assert res.get_json() == {'error': 'lobby_not_found'}


def test_cors_headers(client):
    res = client.get('/api/health', headers={'Origin': 'http://example.com'})
    assert 'Access-Control-Allow-Origin' in res.headers
