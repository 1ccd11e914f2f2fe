from __future__ import annotations

import logging
from typing import Callable

from .errors import GameInProgress, LobbyFull, NicknameTaken, PlayerNotInLobby
from .models import Lobby, LobbyState, Player, PlayerStatus
from .store import LobbyStore, new_player_key, validate_nickname
from .timers import TimerCoordinator, reconnect_kind


logger = logging.getLogger(__name__)


class MembershipManager:
    def __init__(self, store: LobbyStore, timers: TimerCoordinator) -> None:
        self.store = store
        self.timers = timers

    def join(self, code: str, nickname: str, connection_ref: str | None) -> Player:
        lobby = self.store.require(code)
        name = validate_nickname(nickname)
        with lobby.lock:
            if any(p.nickname == name for p in lobby.players):
                raise NicknameTaken()
            if len(lobby.players) >= lobby.settings.max_players:
                raise LobbyFull()
            # Late joins would desync a round in flight.
            if lobby.state != LobbyState.WAITING_FOR_PLAYERS:
                raise GameInProgress()

            next_id = max([p.id for p in lobby.players] + [lobby.next_player_id - 1, 0]) + 1
            player = Player(
                id=next_id,
                nickname=name,
                status=PlayerStatus.JOINED,
                connection_ref=connection_ref,
                player_key=new_player_key(),
            )
            lobby.players.append(player)
            lobby.next_player_id = next_id + 1
        logger.info("[lobby-join] lobby=%s player=%s id=%d", lobby.code, name, player.id)
        return player

    def set_status(self, code: str, player_id: int, status: PlayerStatus) -> None:
        lobby = self.store.get(code)
        if lobby is None:
            return
        with lobby.lock:
            player = lobby.get_player(player_id)
            if player is not None:
                player.status = status

    def remove(self, code: str, player_id: int) -> Lobby | None:
        """Remove a player; returns the lobby, or None once it no longer exists."""
        lobby = self.store.get(code)
        if lobby is None:
            return None
        with lobby.lock:
            idx = next((i for i, p in enumerate(lobby.players) if p.id == player_id), None)
            if idx is None:
                return lobby
            player = lobby.players.pop(idx)
            if player.player_key:
                self.timers.cancel(lobby.code, reconnect_kind(player.player_key))

            # Keep judge_index on the same upcoming judge.
            if lobby.judge_index is not None:
                if not lobby.players:
                    lobby.judge_index = None
                else:
                    if idx < lobby.judge_index:
                        lobby.judge_index -= 1
                    lobby.judge_index %= len(lobby.players)

            logger.info("[lobby-leave] lobby=%s player=%s id=%d", lobby.code, player.nickname, player.id)
            if not lobby.players:
                self.store.remove(lobby.code)
                return None
        return lobby

    def leave(self, connection_ref: str) -> tuple[str, Lobby | None] | None:
        found = self.store.find_by_connection(connection_ref)
        if found is None:
            return None
        lobby, player = found
        return lobby.code, self.remove(lobby.code, player.id)

    def resolve_disconnect(
        self,
        connection_ref: str,
        on_change: Callable[[str, Lobby | None], None] | None = None,
    ) -> Player | None:
        found = self.store.find_by_connection(connection_ref)
        if found is None:
            return None
        lobby, player = found
        code = lobby.code
        with lobby.lock:
            player.status = PlayerStatus.DISCONNECTED
            player.connection_ref = None
            logger.info("[disconnect] lobby=%s player=%s id=%d", code, player.nickname, player.id)
            if on_change is not None:
                on_change(code, lobby)

            player_id = player.id
            grace = lobby.settings.reconnect_grace_seconds

            def _expire() -> None:
                current = self.store.get(code)
                if current is None:
                    return
                with current.lock:
                    p = current.get_player(player_id)
                    if p is None or p.status != PlayerStatus.DISCONNECTED:
                        return
                    remaining = self.remove(code, player_id)
                    logger.info("[grace-expired] lobby=%s id=%d", code, player_id)
                    if on_change is not None:
                        on_change(code, remaining)

            self.timers.schedule(code, reconnect_kind(player.player_key), grace, _expire)
        return player

    def reconnect(self, code: str, player_key: str, connection_ref: str) -> tuple[Lobby, Player]:
        lobby = self.store.require(code)
        found = self.store.find_by_player_key(code, player_key)
        if found is None:
            raise PlayerNotInLobby()
        _, player = found
        with lobby.lock:
            self.timers.cancel(lobby.code, reconnect_kind(player.player_key))
            player.connection_ref = connection_ref
            if player.status == PlayerStatus.DISCONNECTED:
                if lobby.state == LobbyState.WAITING_FOR_PLAYERS:
                    player.status = PlayerStatus.JOINED
                else:
                    player.status = PlayerStatus.READY
        logger.info("[reconnect] lobby=%s player=%s id=%d", lobby.code, player.nickname, player.id)
        return lobby, player
