from __future__ import annotations

import os
import sys

from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
from werkzeug.middleware.proxy_fix import ProxyFix

from .config import Config
from .game.service import GameService
from .game.timers import background_timer_factory
from .routes.health import bp as health_bp
from .routes.lobbies import bp as lobbies_bp
from .realtime.handlers import register_socketio_handlers


def create_app(config_class=Config, game: GameService | None = None) -> tuple[Flask, SocketIO]:
    app = Flask(__name__)
    app.config.from_object(config_class)

    if app.config.get("TRUST_PROXY_HEADERS", False):
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)

    cors_origins = app.config.get("CORS_ORIGINS", "*")
    CORS(app, resources={r"/api/*": {"origins": cors_origins}})

    env_async_mode = app.config.get("SOCKETIO_ASYNC_MODE") or os.environ.get("SOCKETIO_ASYNC_MODE", "").strip()
    if env_async_mode:
        async_mode = env_async_mode
    else:
        # Default choice:
        # - Windows: threading (eventlet has known compatibility issues on newer Python)
        # - Python >= 3.13: threading (safer default)
        # - Otherwise: eventlet
        if sys.platform.startswith("win") or sys.version_info >= (3, 13):
            async_mode = "threading"
        else:
            async_mode = "eventlet"

    socketio = SocketIO(
        app,
        cors_allowed_origins=cors_origins,
        async_mode=async_mode,
    )

    if game is None:
        game = GameService(config_class, timer_factory=background_timer_factory(socketio))
    app.extensions["ransomnotes"] = game

    app.register_blueprint(health_bp, url_prefix="/api")
    app.register_blueprint(lobbies_bp, url_prefix="/api")

    register_socketio_handlers(socketio, game)

    app.logger.info("[startup] async_mode=%s mode=%s", async_mode, app.config.get("VOTE_MODE"))
    return app, socketio
