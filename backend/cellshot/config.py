import os


def _origins(raw):
    return [origin.strip() for origin in raw.split(',') if origin.strip()]


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    CORS_ORIGINS = _origins(os.environ.get(
        'CORS_ORIGINS',
        'http://localhost:5173,http://127.0.0.1:5173',
    ))
    # Room codes are numeric strings of this many digits
    ROOM_CODE_DIGITS = int(os.environ.get('ROOM_CODE_DIGITS', '6'))
    QUICK_MATCH_MAX_PLAYERS = int(os.environ.get('QUICK_MATCH_MAX_PLAYERS', '4'))
    BCRYPT_LOG_ROUNDS = int(os.environ.get('BCRYPT_LOG_ROUNDS', '12'))
    MAX_USERNAME_LENGTH = int(os.environ.get('MAX_USERNAME_LENGTH', '24'))
    MAX_EMOTE_LENGTH = int(os.environ.get('MAX_EMOTE_LENGTH', '140'))
