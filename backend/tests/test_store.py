import re

import pytest

from ransomnotes.game.errors import InvalidNickname, LobbyNotFound
from ransomnotes.game.models import LobbyState, PlayerStatus, VoteMode
from ransomnotes.game.store import CODE_ALPHABET


CODE_RE = re.compile(r'^[ABCDEFGHJKLMNPQRSTUVWXYZ23456789]{6}$')


def test_create_lobby_builds_host(game):
    lobby = game.create_lobby('Host', 'sid-host')
    assert CODE_RE.match(lobby.code)
    assert lobby.state == LobbyState.WAITING_FOR_PLAYERS
    assert lobby.judge_index is None
    assert lobby.round_number == 0
    assert lobby.current_round is None
    host = lobby.players[0]
    assert host.id == 1
    assert host.nickname == 'Host'
    assert host.status == PlayerStatus.JOINED
    assert host.words == []
    assert host.connection_ref == 'sid-host'
    assert host.player_key


def test_codes_are_unique_and_well_formed(game):
    codes = [game.create_lobby('Host', f'sid-{i}').code for i in range(300)]
    assert len(set(codes)) == len(codes)
    assert all(CODE_RE.match(c) for c in codes)
    for confusable in '0O1I':
        assert confusable not in CODE_ALPHABET


def test_get_and_require(game):
    lobby = game.create_lobby('Host', 'sid-host')
    assert game.store.get(lobby.code) is lobby
    assert game.store.get(lobby.code.lower()) is lobby
    assert game.store.get('NOPE22') is None
    with pytest.raises(LobbyNotFound):
        game.store.require('NOPE22')


def test_find_by_connection(game):
    a = game.create_lobby('Alice', 'sid-a')
    b = game.create_lobby('Bob', 'sid-b')
    p = game.membership.join(b.code, 'Cara', 'sid-c')

    lobby, player = game.store.find_by_connection('sid-c')
    assert lobby is b
    assert player is p
    assert game.store.find_by_connection('sid-a')[0] is a
    assert game.store.find_by_connection('missing') is None
    assert game.store.find_by_connection(None) is None


def test_remove_deregisters_and_cancels_timers(game):
    lobby = game.create_lobby('Host', 'sid-host')
    game.timers.schedule(lobby.code, 'submission', 10, lambda: None)
    assert game.timers.pending(lobby.code) == ['submission']

    assert game.store.remove(lobby.code) is True
    assert game.store.get(lobby.code) is None
    assert game.timers.pending(lobby.code) == []
    assert game.store.remove(lobby.code) is False


@pytest.mark.parametrize('nickname', ['', '   ', 'A', 'x' * 16, '<b>hi</b>', 'bad\x01name'])
def test_create_rejects_invalid_nickname(game, nickname):
    with pytest.raises(InvalidNickname):
        game.create_lobby(nickname, 'sid-host')


def test_lobby_mode_override(game):
    lobby = game.create_lobby('Host', 'sid-host', mode='judge')
    assert lobby.settings.mode == VoteMode.JUDGE
    assert game.create_lobby('Other', 'sid-2').settings.mode == VoteMode.PEER


def test_list_lobbies_is_a_snapshot(game):
    a = game.create_lobby('Alice', 'sid-a')
    b = game.create_lobby('Bob', 'sid-b')
    snapshot = game.store.list_lobbies()
    assert {l.code for l in snapshot} == {a.code, b.code}

    game.store.remove(a.code)
    assert len(snapshot) == 2
    assert [l.code for l in game.store.list_lobbies()] == [b.code]
