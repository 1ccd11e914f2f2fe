"""Typed, recoverable game errors.

Every error carries a snake_case ``code`` that the realtime layer sends
back to the requesting client alongside a human readable ``message``.
"""

from __future__ import annotations


class GameError(Exception):
    code = "game_error"
    message = "Game error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)
        if message:
            self.message = message

    def to_payload(self) -> dict:
        return {"error": self.code, "message": self.message}


class NotFoundError(GameError):
    code = "not_found"


class ValidationError(GameError):
    code = "invalid"


class TimingError(GameError):
    code = "too_late"


class AuthorizationError(GameError):
    code = "forbidden"


class ProtocolError(GameError):
    code = "protocol_mismatch"


# Not found

class LobbyNotFound(NotFoundError):
    code = "lobby_not_found"
    message = "Lobby not found"


class PlayerNotInLobby(NotFoundError):
    code = "player_not_in_lobby"
    message = "Player not in lobby"


class NoActiveRound(NotFoundError):
    code = "no_active_round"
    message = "No active round"


class LobbyOrRoundNotFound(NotFoundError):
    code = "lobby_or_round_not_found"
    message = "Lobby or round not found"


class VoterNotFound(NotFoundError):
    code = "voter_not_found"
    message = "Voter not found or disconnected"


# Validation

class InvalidNickname(ValidationError):
    code = "invalid_nickname"
    message = "Invalid nickname"


class NicknameTaken(ValidationError):
    code = "nickname_taken"
    message = "Nickname already taken in lobby"


class LobbyFull(ValidationError):
    code = "lobby_full"
    message = "Lobby is full"


class GameInProgress(ValidationError):
    code = "game_in_progress"
    message = "Game already in progress"


class RoundInProgress(ValidationError):
    code = "round_in_progress"
    message = "Round still in progress"


class GameAlreadyEnded(ValidationError):
    code = "game_ended"
    message = "Game has ended"


class NotAcceptingAnswers(ValidationError):
    code = "not_accepting_answers"
    message = "Not accepting answers"


class InvalidSubmission(ValidationError):
    code = "invalid_submission"
    message = "Invalid submission, uses words not in your pool"


class AlreadySubmitted(ValidationError):
    code = "already_submitted"
    message = "Answer already submitted"


class JudgeCannotSubmit(ValidationError):
    code = "judge_cannot_submit"
    message = "Judge cannot submit answer"


class NotInVotingStage(ValidationError):
    code = "not_in_voting_stage"
    message = "Not in voting stage"


class CannotVoteForSelf(ValidationError):
    code = "cannot_vote_for_self"
    message = "Cannot vote for self"


class AlreadyVoted(ValidationError):
    code = "already_voted"
    message = "Vote already cast"


class InvalidVoteTarget(ValidationError):
    code = "invalid_vote_target"
    message = "No submission to vote for"


class VotingDisabledInJudgeMode(ValidationError):
    code = "voting_disabled"
    message = "Voting disabled in judge mode"


class NotInJudgeMode(ValidationError):
    code = "not_judge_mode"
    message = "Lobby is not in judge mode"


class InvalidWinner(ValidationError):
    code = "invalid_winner"
    message = "Winner must be a non-judge player with a submission"


# Timing

class SubmissionTimeExpired(TimingError):
    code = "submission_time_expired"
    message = "Submission time expired"


class VotingTimeExpired(TimingError):
    code = "voting_time_expired"
    message = "Voting time expired"


# Authorization

class OnlyHostCanStart(AuthorizationError):
    code = "only_host"
    message = "Only host can start game"


class NotEnoughPlayers(AuthorizationError):
    code = "not_enough_players"
    message = "Not enough players"


class NotAllPlayersReady(AuthorizationError):
    code = "not_all_ready"
    message = "All players must be ready"


class OnlyJudgeCanPick(AuthorizationError):
    code = "only_judge"
    message = "Only the judge can pick a winner"


# Protocol

class ConnectionMismatch(ProtocolError):
    code = "connection_mismatch"
    message = "Socket/player mismatch"
