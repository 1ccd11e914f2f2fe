try:
    from backend.ransomnotes.server import create_app
except ImportError:  # pragma: no cover
    from ransomnotes.server import create_app

app, socketio = create_app()
