from flask import Flask
from flask_bcrypt import Bcrypt
from flask_cors import CORS
from flask_socketio import SocketIO
from cellshot.config import Config

bcrypt = Bcrypt()
socketio = SocketIO(async_mode=None)


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    allowed_origins = flask_app.config.get('CORS_ORIGINS', [])

    bcrypt.init_app(flask_app)
    CORS(flask_app, origins=allowed_origins)
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # One directory per process; handlers reach it through the app
    from cellshot.services.rooms.directory import RoomDirectory
    flask_app.extensions['room_directory'] = RoomDirectory(
        code_digits=flask_app.config.get('ROOM_CODE_DIGITS', 6),
        quick_match_capacity=flask_app.config.get('QUICK_MATCH_MAX_PLAYERS', 4),
    )

    from cellshot.main import main
    flask_app.register_blueprint(main)

    from cellshot.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    return flask_app
