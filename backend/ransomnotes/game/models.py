from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from threading import RLock


class PlayerStatus(str, Enum):
    JOINED = "JOINED"
    READY = "READY"
    DISCONNECTED = "DISCONNECTED"


class LobbyState(str, Enum):
    WAITING_FOR_PLAYERS = "WAITING_FOR_PLAYERS"
    ROUND_ACTIVE = "ROUND_ACTIVE"
    VOTING = "VOTING"
    ROUND_END = "ROUND_END"
    GAME_END = "GAME_END"


class RoundStage(str, Enum):
    ANSWERING = "ANSWERING"
    REVEALING = "REVEALING"
    VOTING = "VOTING"
    COMPLETE = "COMPLETE"


class VoteMode(str, Enum):
    PEER = "peer"
    JUDGE = "judge"

    @classmethod
    def parse(cls, raw: str | VoteMode | None) -> VoteMode:
        if isinstance(raw, VoteMode):
            return raw
        value = (raw or "").strip().lower()
        if value == "judge":
            return cls.JUDGE
        return cls.PEER


@dataclass(frozen=True)
class LobbySettings:
    mode: VoteMode = VoteMode.PEER
    max_players: int = 8
    min_players: int = 2
    win_score: int = 5
    word_pool_size: int = 15
    submission_seconds: int = 90
    vote_seconds: int = 30
    reconnect_grace_seconds: int = 30

    @classmethod
    def from_config(cls, config, mode: str | VoteMode | None = None) -> LobbySettings:
        return cls(
            mode=VoteMode.parse(mode or getattr(config, "VOTE_MODE", "peer")),
            max_players=int(getattr(config, "MAX_PLAYERS", 8)),
            min_players=int(getattr(config, "MIN_PLAYERS", 2)),
            win_score=int(getattr(config, "WIN_SCORE", 5)),
            word_pool_size=int(getattr(config, "WORD_POOL_SIZE", 15)),
            submission_seconds=int(getattr(config, "SUBMISSION_DURATION_SEC", 90)),
            vote_seconds=int(getattr(config, "VOTE_DURATION_SEC", 30)),
            reconnect_grace_seconds=int(getattr(config, "RECONNECT_GRACE_SEC", 30)),
        )


@dataclass
class Player:
    id: int
    nickname: str
    score: int = 0
    status: PlayerStatus = PlayerStatus.JOINED
    words: list[str] = field(default_factory=list)
    connection_ref: str | None = None
    player_key: str = ""

    @property
    def active(self) -> bool:
        return self.status != PlayerStatus.DISCONNECTED


@dataclass
class Round:
    prompt: str
    stage: RoundStage = RoundStage.ANSWERING
    submissions: dict[int, list[str]] = field(default_factory=dict)
    votes: dict[int, int] = field(default_factory=dict)
    submission_deadline_ms: int | None = None
    vote_deadline_ms: int | None = None
    judge_id: int | None = None
    winner_id: int | None = None


@dataclass
class RoundResult:
    round_number: int
    prompt: str
    winner_id: int | None
    votes: dict[int, int] = field(default_factory=dict)
    judged: bool = False


@dataclass
class Lobby:
    code: str
    settings: LobbySettings = field(default_factory=LobbySettings)
    state: LobbyState = LobbyState.WAITING_FOR_PLAYERS
    players: list[Player] = field(default_factory=list)
    judge_index: int | None = None
    round_number: int = 0
    current_round: Round | None = None
    next_player_id: int = 1
    history: list[RoundResult] = field(default_factory=list)
    lock: RLock = field(default_factory=RLock, repr=False, compare=False)

    @property
    def host(self) -> Player | None:
        return self.players[0] if self.players else None

    def get_player(self, player_id: int) -> Player | None:
        for p in self.players:
            if p.id == player_id:
                return p
        return None

    def active_players(self) -> list[Player]:
        return [p for p in self.players if p.active]


def player_public_state(player: Player) -> dict:
    # Do NOT expose player_key or the connection to other clients.
    return {
        "id": player.id,
        "nickname": player.nickname,
        "score": player.score,
        "status": player.status.value,
        "wordCount": len(player.words),
    }


def round_public_state(rnd: Round) -> dict:
    # Submissions stay hidden until the reveal.
    show_submissions = rnd.stage != RoundStage.ANSWERING
    return {
        "prompt": rnd.prompt,
        "stage": rnd.stage.value,
        "submitted": sorted(rnd.submissions.keys()),
        "submissions": {str(pid): list(words) for pid, words in rnd.submissions.items()}
        if show_submissions
        else {},
        "votes": {str(v): t for v, t in rnd.votes.items()} if rnd.stage == RoundStage.COMPLETE else {},
        "votesCount": len(rnd.votes),
        "submissionDeadlineMs": rnd.submission_deadline_ms,
        "voteDeadlineMs": rnd.vote_deadline_ms,
        "judgeId": rnd.judge_id,
        "winnerId": rnd.winner_id,
    }


def lobby_public_state(lobby: Lobby) -> dict:
    with lobby.lock:
        return {
            "code": lobby.code,
            "state": lobby.state.value,
            "mode": lobby.settings.mode.value,
            "hostId": lobby.host.id if lobby.host else None,
            "players": [player_public_state(p) for p in lobby.players],
            "judgeIndex": lobby.judge_index,
            "roundNumber": lobby.round_number,
            "winScore": lobby.settings.win_score,
            "currentRound": round_public_state(lobby.current_round) if lobby.current_round else None,
            "history": [asdict(r) for r in lobby.history],
        }
