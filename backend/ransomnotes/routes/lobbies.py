from __future__ import annotations

from flask import Blueprint, current_app, jsonify

from ..game.models import lobby_public_state

bp = Blueprint("lobbies", __name__)


@bp.get("/lobbies/<code>")
def get_lobby(code: str):
    game = current_app.extensions["ransomnotes"]
    lobby = game.store.get(code)
    if not lobby:
        return jsonify({"error": "lobby_not_found"}), 404
    return jsonify(lobby_public_state(lobby))
