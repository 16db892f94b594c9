import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///timing_arena.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    CORS_ORIGINS = [
        origin.strip()
        for origin in os.environ.get('CORS_ORIGINS', 'http://localhost:5173,http://127.0.0.1:5173').split(',')
        if origin.strip()
    ]
    # Room sizing
    MAX_ROOM_SIZE = int(os.environ.get('MAX_ROOM_SIZE', '4'))
    MIN_PLAYERS = int(os.environ.get('MIN_PLAYERS', '2'))
    # Rounds per game; each round is played once as color and once as font
    ROUNDS_PER_GAME = int(os.environ.get('ROUNDS_PER_GAME', '5'))
    # Auto-advance timers (seconds)
    COUNTDOWN_DURATION_SEC = float(os.environ.get('COUNTDOWN_DURATION_SEC', '3'))
    SCOREBOARD_DURATION_SEC = float(os.environ.get('SCOREBOARD_DURATION_SEC', '5'))
    FINAL_SCREEN_DURATION_SEC = float(os.environ.get('FINAL_SCREEN_DURATION_SEC', '10'))
    # Grace after the target moment before a round closes without stragglers. 0 disables.
    ROUND_DEADLINE_SEC = float(os.environ.get('ROUND_DEADLINE_SEC', '30'))
    # Round parameter ranges (ms, upper bound exclusive)
    WAIT_TIME_MIN_MS = int(os.environ.get('WAIT_TIME_MIN_MS', '1000'))
    WAIT_TIME_MAX_MS = int(os.environ.get('WAIT_TIME_MAX_MS', '5000'))
    TARGET_OFFSET_MIN_MS = int(os.environ.get('TARGET_OFFSET_MIN_MS', '200'))
    TARGET_OFFSET_MAX_MS = int(os.environ.get('TARGET_OFFSET_MAX_MS', '1000'))
    LEADERBOARD_SIZE = int(os.environ.get('LEADERBOARD_SIZE', '10'))
    # 'background' runs timers on socketio background tasks, 'manual' waits for fire_next()
    SCHEDULER = os.environ.get('SCHEDULER', 'background')
    # Optional: heartbeat interval for timer worker logs (sec). 0 disables.
    TIMER_HEARTBEAT_SEC = int(os.environ.get('TIMER_HEARTBEAT_SEC', '0'))
