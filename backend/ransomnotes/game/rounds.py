"""Round state machine.

Lobby: WAITING_FOR_PLAYERS -> ROUND_ACTIVE -> VOTING -> ROUND_END -> ... -> GAME_END
Round: ANSWERING -> REVEALING -> VOTING -> COMPLETE

Every mutation happens under ``lobby.lock``. Deadline timers and the early
completion paths (everyone submitted / everyone voted / judge picked) both
funnel into the same stage-guarded transitions, so whichever runs first wins
and the other becomes a no-op.
"""

from __future__ import annotations

import logging
import time
from collections import Counter
from dataclasses import dataclass
from typing import Callable

from .errors import (
    AlreadySubmitted,
    AlreadyVoted,
    CannotVoteForSelf,
    GameAlreadyEnded,
    InvalidSubmission,
    InvalidVoteTarget,
    InvalidWinner,
    JudgeCannotSubmit,
    LobbyNotFound,
    LobbyOrRoundNotFound,
    NoActiveRound,
    NotAcceptingAnswers,
    NotAllPlayersReady,
    NotEnoughPlayers,
    NotInJudgeMode,
    NotInVotingStage,
    OnlyHostCanStart,
    PlayerNotInLobby,
    SubmissionTimeExpired,
    VoterNotFound,
    VotingDisabledInJudgeMode,
    VotingTimeExpired,
)
from .models import Lobby, LobbyState, PlayerStatus, Round, RoundResult, RoundStage, VoteMode
from .store import LobbyStore
from .timers import SUBMISSION, VOTING, TimerCoordinator
from .words import WordSource


logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class SubmitResult:
    lobby: Lobby
    all_submitted: bool


@dataclass
class VoteResult:
    lobby: Lobby
    winner_id: int | None
    all_voted: bool


@dataclass
class RoundOutcome:
    winner_id: int | None
    lobby: Lobby


class RoundEngine:
    def __init__(
        self,
        store: LobbyStore,
        timers: TimerCoordinator,
        words: WordSource,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.store = store
        self.timers = timers
        self.words = words
        self.clock = clock

    @property
    def rng(self):
        return self.words.rng

    def _require_lobby(self, code: str) -> Lobby:
        lobby = self.store.get(code)
        if lobby is None:
            raise LobbyOrRoundNotFound()
        return lobby

    @staticmethod
    def _round_of(lobby: Lobby) -> Round:
        # Read under lobby.lock; a concurrent start_round may swap it.
        if lobby.current_round is None:
            raise LobbyOrRoundNotFound()
        return lobby.current_round

    # ---- start ----

    def check_can_start(self, code: str, connection_ref: str | None) -> Lobby:
        lobby = self.store.require(code)
        with lobby.lock:
            host = lobby.host
            if host is None or not connection_ref or host.connection_ref != connection_ref:
                raise OnlyHostCanStart()
            if lobby.state == LobbyState.GAME_END:
                raise GameAlreadyEnded()
            active = lobby.active_players()
            if len(active) < lobby.settings.min_players:
                raise NotEnoughPlayers()
            if not all(p.status == PlayerStatus.READY for p in active):
                raise NotAllPlayersReady()
        return lobby

    def _pick_judge(self, lobby: Lobby) -> int | None:
        if not lobby.players:
            return None
        if lobby.judge_index is None:
            lobby.judge_index = 0
        lobby.judge_index %= len(lobby.players)
        if lobby.settings.mode != VoteMode.JUDGE:
            return None
        # Skip players who are away.
        for offset in range(len(lobby.players)):
            idx = (lobby.judge_index + offset) % len(lobby.players)
            if lobby.players[idx].active:
                lobby.judge_index = idx
                return lobby.players[idx].id
        return None

    def start_round(
        self,
        code: str,
        pool_size: int | None = None,
        submission_seconds: int | None = None,
        on_reveal: Callable[[Lobby], None] | None = None,
    ) -> Lobby:
        lobby = self.store.get(code)
        if lobby is None:
            raise LobbyNotFound()
        with lobby.lock:
            if lobby.state == LobbyState.GAME_END:
                raise GameAlreadyEnded()

            pool_size = lobby.settings.word_pool_size if pool_size is None else pool_size
            seconds = lobby.settings.submission_seconds if submission_seconds is None else submission_seconds

            prompt = self.words.random_prompt()
            judge_id = self._pick_judge(lobby)
            for p in lobby.players:
                p.words = [] if p.id == judge_id else self.words.random_pool(pool_size)

            lobby.current_round = Round(
                prompt=prompt,
                stage=RoundStage.ANSWERING,
                submission_deadline_ms=self.clock() + seconds * 1000,
                judge_id=judge_id,
            )
            lobby.round_number += 1
            lobby.state = LobbyState.ROUND_ACTIVE
            round_number = lobby.round_number

            def _deadline() -> None:
                self._reveal_on_timeout(lobby.code, round_number, on_reveal)

            self.timers.cancel(lobby.code, VOTING)
            self.timers.schedule(lobby.code, SUBMISSION, seconds, _deadline)

        logger.info(
            "[round-start] lobby=%s round=%d judge=%s pool=%d seconds=%d",
            lobby.code, round_number, judge_id, pool_size, seconds,
        )
        return lobby

    def _reveal_on_timeout(self, code: str, round_number: int, on_reveal: Callable[[Lobby], None] | None) -> None:
        lobby = self.store.get(code)
        if lobby is None:
            return
        with lobby.lock:
            rnd = lobby.current_round
            if rnd is None or lobby.round_number != round_number or rnd.stage != RoundStage.ANSWERING:
                return
            for p in lobby.active_players():
                if p.id != rnd.judge_id and p.id not in rnd.submissions:
                    rnd.submissions[p.id] = []
            rnd.stage = RoundStage.REVEALING
            logger.info("[round-reveal] lobby=%s round=%d reason=timeout", code, round_number)
            if on_reveal is not None:
                on_reveal(lobby)

    # ---- answers ----

    def _expected_submitters(self, lobby: Lobby, rnd: Round) -> list[int]:
        return [p.id for p in lobby.active_players() if p.id != rnd.judge_id]

    def all_submitted(self, lobby: Lobby) -> bool:
        rnd = lobby.current_round
        if rnd is None:
            return False
        return all(pid in rnd.submissions for pid in self._expected_submitters(lobby, rnd))

    def submit_answer(self, code: str, player_id: int, words: list[str]) -> SubmitResult:
        lobby = self.store.get(code)
        if lobby is None:
            raise LobbyNotFound()
        with lobby.lock:
            player = lobby.get_player(player_id)
            if player is None:
                raise PlayerNotInLobby()
            rnd = lobby.current_round
            if rnd is None:
                raise NoActiveRound()
            if rnd.stage != RoundStage.ANSWERING:
                raise NotAcceptingAnswers()
            if rnd.judge_id is not None and player_id == rnd.judge_id:
                raise JudgeCannotSubmit()
            if player_id in rnd.submissions:
                raise AlreadySubmitted()
            if rnd.submission_deadline_ms is not None and self.clock() > rnd.submission_deadline_ms:
                raise SubmissionTimeExpired()
            if not isinstance(words, list) or not all(isinstance(w, str) for w in words):
                raise InvalidSubmission()

            # Each pool slot can be used once, so duplicates count.
            available = Counter(player.words)
            wanted = Counter(words)
            if any(n > available[w] for w, n in wanted.items()):
                raise InvalidSubmission()

            rnd.submissions[player_id] = list(words)

            done = self.all_submitted(lobby)
            if done:
                rnd.stage = RoundStage.REVEALING
                self.timers.cancel(lobby.code, SUBMISSION)
                logger.info("[round-reveal] lobby=%s round=%d reason=all_submitted", lobby.code, lobby.round_number)
        return SubmitResult(lobby=lobby, all_submitted=done)

    def reveal_if_complete(self, code: str) -> bool:
        """Reveal early when a departure leaves nobody left to wait for."""
        lobby = self.store.get(code)
        if lobby is None:
            return False
        with lobby.lock:
            rnd = lobby.current_round
            if rnd is None or rnd.stage != RoundStage.ANSWERING or not self.all_submitted(lobby):
                return False
            rnd.stage = RoundStage.REVEALING
            self.timers.cancel(lobby.code, SUBMISSION)
            logger.info("[round-reveal] lobby=%s round=%d reason=player_left", lobby.code, lobby.round_number)
        return True

    # ---- voting ----

    def start_voting(
        self,
        code: str,
        vote_seconds: int | None = None,
        on_complete: Callable[[RoundOutcome], None] | None = None,
    ) -> Lobby:
        lobby = self._require_lobby(code)
        with lobby.lock:
            rnd = self._round_of(lobby)
            if rnd.stage == RoundStage.COMPLETE:
                raise NotInVotingStage()
            seconds = lobby.settings.vote_seconds if vote_seconds is None else vote_seconds
            rnd.stage = RoundStage.VOTING
            rnd.vote_deadline_ms = self.clock() + seconds * 1000
            lobby.state = LobbyState.VOTING
            round_number = lobby.round_number

            def _deadline() -> None:
                self._finalize_on_timeout(lobby.code, round_number, on_complete)

            self.timers.cancel(lobby.code, SUBMISSION)
            self.timers.schedule(lobby.code, VOTING, seconds, _deadline)
        logger.info("[voting-start] lobby=%s round=%d seconds=%d", lobby.code, round_number, seconds)
        return lobby

    def _finalize_on_timeout(
        self,
        code: str,
        round_number: int,
        on_complete: Callable[[RoundOutcome], None] | None,
    ) -> None:
        lobby = self.store.get(code)
        if lobby is None:
            return
        with lobby.lock:
            rnd = lobby.current_round
            if rnd is None or lobby.round_number != round_number or rnd.stage != RoundStage.VOTING:
                return
            if lobby.settings.mode == VoteMode.JUDGE:
                # The judge never picked: choose among the real answers.
                candidates = sorted(pid for pid, words in rnd.submissions.items() if words and pid != rnd.judge_id)
                winner_id = self._award(lobby, self.rng.choice(candidates) if candidates else None, judged=True)
            else:
                winner_id = self.finalize_votes(lobby)
            logger.info("[round-complete] lobby=%s round=%d winner=%s reason=timeout", code, round_number, winner_id)
            if on_complete is not None:
                on_complete(RoundOutcome(winner_id=winner_id, lobby=lobby))

    def eligible_voters(self, lobby: Lobby) -> list[int]:
        rnd = lobby.current_round
        if rnd is None:
            return []
        return [p.id for p in lobby.active_players() if rnd.submissions.get(p.id)]

    def submit_vote(self, code: str, voter_id: int, submission_id: int) -> VoteResult:
        lobby = self._require_lobby(code)
        with lobby.lock:
            rnd = self._round_of(lobby)
            if lobby.settings.mode == VoteMode.JUDGE:
                raise VotingDisabledInJudgeMode()
            if voter_id == submission_id:
                raise CannotVoteForSelf()
            if rnd.stage != RoundStage.VOTING:
                raise NotInVotingStage()
            voter = lobby.get_player(voter_id)
            if voter is None or not voter.active:
                raise VoterNotFound()
            if voter_id in rnd.votes:
                raise AlreadyVoted()
            if not rnd.submissions.get(submission_id):
                raise InvalidVoteTarget()
            if rnd.vote_deadline_ms is not None and self.clock() > rnd.vote_deadline_ms:
                raise VotingTimeExpired()

            rnd.votes[voter_id] = submission_id

            eligible = self.eligible_voters(lobby)
            if all(pid in rnd.votes for pid in eligible):
                self.timers.cancel(lobby.code, VOTING)
                winner_id = self.finalize_votes(lobby)
                logger.info(
                    "[round-complete] lobby=%s round=%d winner=%s reason=all_voted",
                    lobby.code, lobby.round_number, winner_id,
                )
                return VoteResult(lobby=lobby, winner_id=winner_id, all_voted=True)
        return VoteResult(lobby=lobby, winner_id=None, all_voted=False)

    def finalize_winner(self, code: str, winner_id: int) -> RoundOutcome:
        lobby = self._require_lobby(code)
        with lobby.lock:
            rnd = self._round_of(lobby)
            if lobby.settings.mode != VoteMode.JUDGE:
                raise NotInJudgeMode()
            if rnd.stage not in (RoundStage.REVEALING, RoundStage.VOTING):
                raise NotInVotingStage()
            # Blank answers (including timeout fills) cannot win.
            if winner_id == rnd.judge_id or not rnd.submissions.get(winner_id) or lobby.get_player(winner_id) is None:
                raise InvalidWinner()
            self.timers.cancel(lobby.code, VOTING)
            awarded = self._award(lobby, winner_id, judged=True)
            logger.info("[round-complete] lobby=%s round=%d winner=%s reason=judge", lobby.code, lobby.round_number, awarded)
        return RoundOutcome(winner_id=awarded, lobby=lobby)

    def finalize_votes(self, lobby: Lobby) -> int | None:
        rnd = lobby.current_round
        if rnd is None:
            return None
        if rnd.stage == RoundStage.COMPLETE:
            return rnd.winner_id

        tally = Counter(rnd.votes.values())
        winner_id = None
        if tally:
            top = max(tally.values())
            tied = sorted(sid for sid, count in tally.items() if count == top)
            winner_id = tied[0] if len(tied) == 1 else self.rng.choice(tied)
        return self._award(lobby, winner_id, judged=False)

    def _award(self, lobby: Lobby, winner_id: int | None, judged: bool) -> int | None:
        rnd = lobby.current_round
        winner = lobby.get_player(winner_id) if winner_id is not None else None
        if winner is not None:
            winner.score += 1

        rnd.stage = RoundStage.COMPLETE
        rnd.winner_id = winner_id
        lobby.history.append(
            RoundResult(
                round_number=lobby.round_number,
                prompt=rnd.prompt,
                winner_id=winner_id,
                votes=dict(rnd.votes),
                judged=judged,
            )
        )

        if any(p.score >= lobby.settings.win_score for p in lobby.players):
            lobby.state = LobbyState.GAME_END
            self.timers.cancel(lobby.code, SUBMISSION)
            self.timers.cancel(lobby.code, VOTING)
            logger.info("[game-end] lobby=%s round=%d", lobby.code, lobby.round_number)
        else:
            lobby.state = LobbyState.ROUND_END
            if lobby.judge_index is not None and lobby.players:
                lobby.judge_index = (lobby.judge_index + 1) % len(lobby.players)
        return winner_id

    # ---- reset ----

    def reset_game(self, code: str) -> Lobby:
        lobby = self.store.require(code)
        with lobby.lock:
            self.timers.cancel(lobby.code, SUBMISSION)
            self.timers.cancel(lobby.code, VOTING)
            lobby.state = LobbyState.WAITING_FOR_PLAYERS
            lobby.current_round = None
            lobby.round_number = 0
            lobby.judge_index = None
            lobby.history = []
            for p in lobby.players:
                p.score = 0
                p.words = []
                if p.active:
                    p.status = PlayerStatus.JOINED
        logger.info("[game-reset] lobby=%s", lobby.code)
        return lobby
