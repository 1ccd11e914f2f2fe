from __future__ import annotations

import random
from typing import Any, Callable

from ..config import Config
from .models import Lobby, LobbySettings, VoteMode
from .membership import MembershipManager
from .rounds import RoundEngine, now_ms
from .store import LobbyStore
from .timers import TimerCoordinator
from .words import WordSource


class GameService:
    """One store, timer registry and engine shared by every lobby in the process."""

    def __init__(
        self,
        config=Config,
        words: WordSource | None = None,
        timers: TimerCoordinator | None = None,
        timer_factory: Callable[[float, Callable[[], None]], Any] | None = None,
        clock: Callable[[], int] = now_ms,
        rng: random.Random | None = None,
    ) -> None:
        self.config = config
        self.rng = rng or random.Random()
        self.words = words or WordSource.from_config(config, rng=self.rng)
        if timers is None:
            if timer_factory is None:
                raise ValueError("GameService needs timers or a timer_factory")
            timers = TimerCoordinator(timer_factory=timer_factory)
        self.timers = timers
        self.store = LobbyStore(self.timers, rng=self.rng)
        self.membership = MembershipManager(self.store, self.timers)
        self.rounds = RoundEngine(self.store, self.timers, self.words, clock=clock)

    def settings_for(self, mode: str | VoteMode | None = None) -> LobbySettings:
        return LobbySettings.from_config(self.config, mode=mode)

    def create_lobby(self, nickname: str, connection_ref: str | None, mode: str | VoteMode | None = None) -> Lobby:
        return self.store.create_lobby(nickname, connection_ref, settings=self.settings_for(mode))

    def shutdown(self) -> None:
        self.timers.shutdown()
