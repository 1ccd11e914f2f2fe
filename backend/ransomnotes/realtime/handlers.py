from __future__ import annotations

import logging
from typing import Any

from flask import request
from flask_socketio import SocketIO, emit, join_room, leave_room

from ..game.errors import (
    ConnectionMismatch,
    GameError,
    GameInProgress,
    LobbyNotFound,
    OnlyHostCanStart,
    OnlyJudgeCanPick,
    RoundInProgress,
)
from ..game.models import Lobby, LobbyState, PlayerStatus, lobby_public_state, player_public_state
from ..game.rounds import RoundOutcome
from ..game.service import GameService
from ..game.store import normalize_code


logger = logging.getLogger(__name__)


def _as_int(raw: Any) -> int | None:
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def register_socketio_handlers(socketio: SocketIO, game: GameService) -> None:
    store = game.store
    membership = game.membership
    rounds = game.rounds

    def _broadcast_lobby(lobby: Lobby) -> None:
        socketio.emit("lobby:update", lobby_public_state(lobby), to=lobby.code)

    def _error(err: GameError, event: str = "lobby:error") -> None:
        logger.info("[rejected] sid=%s event=%s error=%s", request.sid, event, err.code)
        emit(event, err.to_payload())

    def _ack(event: str, err: GameError | None = None) -> dict:
        payload = {"ok": True} if err is None else {"ok": False, **err.to_payload()}
        emit(event, payload)
        return payload

    def _resolve_caller(lobby_code: str, claimed_id: int | None):
        found = store.find_by_connection(request.sid)
        if found is None:
            raise ConnectionMismatch("Player not found for socket")
        lobby, player = found
        if lobby.code != normalize_code(lobby_code) or (claimed_id is not None and claimed_id != player.id):
            logger.warning(
                "[protocol-mismatch] sid=%s claimed=%s/%s actual=%s/%s",
                request.sid, lobby_code, claimed_id, lobby.code, player.id,
            )
            raise ConnectionMismatch()
        return lobby, player

    def _on_complete(outcome: RoundOutcome) -> None:
        lobby = outcome.lobby
        socketio.emit(
            "result:winner",
            {
                "winnerId": outcome.winner_id,
                "players": [player_public_state(p) for p in lobby.players],
                "state": lobby.state.value,
            },
            to=lobby.code,
        )
        _broadcast_lobby(lobby)

    def _on_reveal(lobby: Lobby) -> None:
        rnd = lobby.current_round
        submissions = {str(pid): words for pid, words in rnd.submissions.items()} if rnd else {}
        socketio.emit("round:reveal", {"submissions": submissions}, to=lobby.code)
        _broadcast_lobby(lobby)
        # Voting opens right after the reveal.
        try:
            rounds.start_voting(lobby.code, on_complete=_on_complete)
        except GameError as exc:
            logger.warning("[voting-skip] lobby=%s error=%s", lobby.code, exc.code)
            return
        _broadcast_lobby(lobby)

    def _on_membership_change(code: str, lobby: Lobby | None) -> None:
        if lobby is None:
            logger.info("[lobby-gone] lobby=%s", code)
            return
        _broadcast_lobby(lobby)
        # The player who left may have been the last one still answering.
        if rounds.reveal_if_complete(code):
            _on_reveal(lobby)

    def _begin_round(code: str) -> None:
        lobby = rounds.start_round(code, on_reveal=_on_reveal)
        rnd = lobby.current_round
        # Each player only ever sees their own pool.
        for p in lobby.players:
            if p.connection_ref:
                socketio.emit(
                    "round:begin",
                    {
                        "prompt": rnd.prompt,
                        "words": list(p.words),
                        "timeLimit": lobby.settings.submission_seconds,
                        "roundNumber": lobby.round_number,
                        "judgeId": rnd.judge_id,
                    },
                    to=p.connection_ref,
                )
        state = lobby_public_state(lobby)
        socketio.emit("game:start", state, to=lobby.code)
        socketio.emit("lobby:update", state, to=lobby.code)

    @socketio.on("connect")
    def on_connect():
        logger.info("[connect] sid=%s", request.sid)

    @socketio.on("lobby:create")
    def lobby_create(data):
        payload = data or {}
        nickname = str(payload.get("nickname", ""))
        mode = payload.get("mode")
        try:
            lobby = game.create_lobby(nickname, request.sid, mode=mode if isinstance(mode, str) else None)
        except GameError as exc:
            _error(exc)
            return {"ok": False, **exc.to_payload()}

        join_room(lobby.code)
        host = lobby.host
        emit("lobby:joined", {"lobby": lobby_public_state(lobby), "player": player_public_state(host), "playerKey": host.player_key})
        _broadcast_lobby(lobby)
        return {"ok": True, "code": lobby.code}

    @socketio.on("lobby:join")
    def lobby_join(data):
        payload = data or {}
        code = normalize_code(str(payload.get("code", "")))
        nickname = str(payload.get("nickname", ""))
        try:
            player = membership.join(code, nickname, request.sid)
        except GameError as exc:
            _error(exc)
            return {"ok": False, **exc.to_payload()}

        lobby = store.get(code)
        join_room(code)
        emit("lobby:joined", {"lobby": lobby_public_state(lobby), "player": player_public_state(player), "playerKey": player.player_key})
        _broadcast_lobby(lobby)
        return {"ok": True}

    @socketio.on("lobby:rejoin")
    def lobby_rejoin(data):
        payload = data or {}
        code = normalize_code(str(payload.get("code", "")))
        player_key = str(payload.get("playerKey", "")).strip()
        try:
            lobby, player = membership.reconnect(code, player_key, request.sid)
        except GameError as exc:
            _error(exc)
            return {"ok": False, **exc.to_payload()}

        join_room(lobby.code)
        emit("lobby:joined", {"lobby": lobby_public_state(lobby), "player": player_public_state(player), "playerKey": player.player_key})
        rnd = lobby.current_round
        if rnd is not None and lobby.state != LobbyState.GAME_END:
            emit(
                "round:begin",
                {
                    "prompt": rnd.prompt,
                    "words": list(player.words),
                    "timeLimit": lobby.settings.submission_seconds,
                    "roundNumber": lobby.round_number,
                    "judgeId": rnd.judge_id,
                },
            )
        _broadcast_lobby(lobby)
        return {"ok": True}

    @socketio.on("lobby:leave")
    def lobby_leave(data=None):
        result = membership.leave(request.sid)
        if result is None:
            return
        code, lobby = result
        leave_room(code)
        _on_membership_change(code, lobby)

    @socketio.on("player:ready")
    def player_ready(data):
        payload = data or {}
        code = normalize_code(str(payload.get("code", "")))
        found = store.find_by_connection(request.sid)
        if found is None or found[0].code != code:
            _error(LobbyNotFound() if store.get(code) is None else ConnectionMismatch())
            return
        lobby, player = found
        membership.set_status(code, player.id, PlayerStatus.READY)
        _broadcast_lobby(lobby)

    @socketio.on("game:start")
    def game_start(data):
        payload = data or {}
        code = normalize_code(str(payload.get("code", "")))
        try:
            lobby = rounds.check_can_start(code, request.sid)
            if lobby.state != LobbyState.WAITING_FOR_PLAYERS:
                raise GameInProgress()
            _begin_round(code)
        except GameError as exc:
            _error(exc)

    @socketio.on("game:next_round")
    def game_next_round(data):
        payload = data or {}
        code = normalize_code(str(payload.get("code", "")))
        try:
            lobby = store.require(code)
            host = lobby.host
            if host is None or host.connection_ref != request.sid:
                raise OnlyHostCanStart()
            if lobby.state != LobbyState.ROUND_END:
                raise RoundInProgress()
            _begin_round(code)
        except GameError as exc:
            _error(exc)

    @socketio.on("game:reset")
    def game_reset(data):
        payload = data or {}
        code = normalize_code(str(payload.get("code", "")))
        try:
            lobby = store.require(code)
            host = lobby.host
            if host is None or host.connection_ref != request.sid:
                raise OnlyHostCanStart("Only host can reset game")
            rounds.reset_game(code)
        except GameError as exc:
            _error(exc)
            return
        _broadcast_lobby(lobby)

    @socketio.on("round:submit")
    def round_submit(data):
        payload = data or {}
        lobby_code = str(payload.get("lobbyCode", ""))
        player_id = _as_int(payload.get("playerId"))
        answer = payload.get("answer")
        try:
            lobby, player = _resolve_caller(lobby_code, player_id)
            result = rounds.submit_answer(lobby.code, player.id, answer)
        except GameError as exc:
            return _ack("round:submitAck", exc)

        ack = _ack("round:submitAck")
        _broadcast_lobby(result.lobby)
        if result.all_submitted:
            _on_reveal(result.lobby)
        return ack

    @socketio.on("round:vote")
    def round_vote(data):
        payload = data or {}
        lobby_code = str(payload.get("lobbyCode", ""))
        voter_id = _as_int(payload.get("voterId"))
        submission_id = _as_int(payload.get("submissionId"))
        try:
            lobby, voter = _resolve_caller(lobby_code, voter_id)
            result = rounds.submit_vote(lobby.code, voter.id, submission_id)
        except GameError as exc:
            return _ack("round:voteAck", exc)

        ack = _ack("round:voteAck")
        _broadcast_lobby(result.lobby)
        if result.all_voted:
            _on_complete(RoundOutcome(winner_id=result.winner_id, lobby=result.lobby))
        return ack

    @socketio.on("round:judge_pick")
    def round_judge_pick(data):
        payload = data or {}
        lobby_code = str(payload.get("lobbyCode", ""))
        winner_id = _as_int(payload.get("winnerId"))
        try:
            lobby, player = _resolve_caller(lobby_code, None)
            rnd = lobby.current_round
            if rnd is None or rnd.judge_id != player.id:
                raise OnlyJudgeCanPick()
            outcome = rounds.finalize_winner(lobby.code, winner_id)
        except GameError as exc:
            _error(exc)
            return {"ok": False, **exc.to_payload()}

        _on_complete(outcome)
        return {"ok": True, "winnerId": outcome.winner_id}

    @socketio.on("disconnect")
    def on_disconnect(*args):
        logger.info("[disconnect-socket] sid=%s", request.sid)
        membership.resolve_disconnect(request.sid, on_change=_on_membership_change)
