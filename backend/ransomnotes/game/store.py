from __future__ import annotations

import logging
import random
import uuid
from threading import RLock

from .errors import InvalidNickname, LobbyNotFound
from .models import Lobby, LobbySettings, Player, PlayerStatus
from .timers import TimerCoordinator


logger = logging.getLogger(__name__)


# No confusable 0/O/1/I.
CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CODE_LENGTH = 6

NICKNAME_MIN = 2
NICKNAME_MAX = 15


def normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()


def validate_nickname(nickname: str | None) -> str:
    n = (nickname or "").strip()
    if len(n) < NICKNAME_MIN or len(n) > NICKNAME_MAX:
        raise InvalidNickname()
    # Avoid obvious HTML/script injection.
    if "<" in n or ">" in n:
        raise InvalidNickname()
    # No control characters.
    for ch in n:
        if ord(ch) < 32:
            raise InvalidNickname()
    return n


def new_player_key() -> str:
    return uuid.uuid4().hex


class LobbyStore:
    def __init__(self, timers: TimerCoordinator, rng: random.Random | None = None) -> None:
        self._lock = RLock()
        self._lobbies: dict[str, Lobby] = {}
        self._timers = timers
        self._rng = rng or random.Random()

    def _generate_code(self) -> str:
        code = "".join(self._rng.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))
        while code in self._lobbies:
            code = "".join(self._rng.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))
        return code

    def create_lobby(
        self,
        host_nickname: str,
        connection_ref: str | None,
        settings: LobbySettings | None = None,
    ) -> Lobby:
        nickname = validate_nickname(host_nickname)
        host = Player(
            id=1,
            nickname=nickname,
            status=PlayerStatus.JOINED,
            connection_ref=connection_ref,
            player_key=new_player_key(),
        )
        with self._lock:
            lobby = Lobby(
                code=self._generate_code(),
                settings=settings or LobbySettings(),
                players=[host],
                next_player_id=2,
            )
            self._lobbies[lobby.code] = lobby
        logger.info("[lobby-create] lobby=%s host=%s mode=%s", lobby.code, nickname, lobby.settings.mode.value)
        return lobby

    def get(self, code: str | None) -> Lobby | None:
        with self._lock:
            return self._lobbies.get(normalize_code(code))

    def require(self, code: str | None) -> Lobby:
        lobby = self.get(code)
        if lobby is None:
            raise LobbyNotFound()
        return lobby

    def list_lobbies(self) -> list[Lobby]:
        with self._lock:
            return list(self._lobbies.values())

    def find_by_connection(self, connection_ref: str | None) -> tuple[Lobby, Player] | None:
        if not connection_ref:
            return None
        # MVP linear scan
        for lobby in self.list_lobbies():
            with lobby.lock:
                for p in lobby.players:
                    if p.connection_ref == connection_ref:
                        return lobby, p
        return None

    def find_by_player_key(self, code: str | None, player_key: str | None) -> tuple[Lobby, Player] | None:
        lobby = self.get(code)
        if lobby is None or not player_key:
            return None
        with lobby.lock:
            for p in lobby.players:
                if p.player_key == player_key:
                    return lobby, p
        return None

    def remove(self, code: str) -> bool:
        with self._lock:
            removed = self._lobbies.pop(normalize_code(code), None)
        if removed is None:
            return False
        self._timers.cancel_all(removed.code)
        logger.info("[lobby-remove] lobby=%s", removed.code)
        return True
