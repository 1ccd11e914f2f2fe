import os


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev")

    # CORS
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")

    # Reverse proxy / IP headers
    TRUST_PROXY_HEADERS = os.environ.get("TRUST_PROXY_HEADERS", "1") == "1"

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Lobby
    MAX_PLAYERS = int(os.environ.get("MAX_PLAYERS", "8"))
    MIN_PLAYERS = int(os.environ.get("MIN_PLAYERS", "2"))
    RECONNECT_GRACE_SEC = int(os.environ.get("RECONNECT_GRACE_SEC", "30"))

    # Game
    VOTE_MODE = os.environ.get("VOTE_MODE", "peer")
    WIN_SCORE = int(os.environ.get("WIN_SCORE", os.environ.get("WIN_THRESHOLD", "5")))
    WORD_POOL_SIZE = int(os.environ.get("WORD_POOL_SIZE", "15"))
    SUBMISSION_DURATION_SEC = int(os.environ.get("SUBMISSION_DURATION_SEC", "90"))
    VOTE_DURATION_SEC = int(os.environ.get("VOTE_DURATION_SEC", "30"))

    # Optional JSON file with {"prompts": [...], "words": [...]}
    WORDS_FILE = os.environ.get("WORDS_FILE", "")
