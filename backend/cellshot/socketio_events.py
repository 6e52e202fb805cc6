from functools import wraps
from typing import Any, Dict, Optional

from flask import current_app, request
from flask_socketio import emit, join_room, leave_room

from cellshot import socketio
from cellshot.exceptions import CellshotError, InvalidRequest
from cellshot.models import IN_PROGRESS
from cellshot.services.games import engine
from cellshot.services.rooms import lobby
from cellshot.services.rooms.directory import JoinResult, LeaveResult, RoomDirectory


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _directory() -> RoomDirectory:
    return current_app.extensions['room_directory']


def _payload(data) -> Dict[str, Any]:
    return data if isinstance(data, dict) else {}


def _username(data: Dict[str, Any]) -> str:
    username = data.get('username')
    if not isinstance(username, str) or not username.strip():
        raise InvalidRequest('Please set a username first')
    username = username.strip()
    limit = current_app.config.get('MAX_USERNAME_LENGTH', 24)
    if len(username) > limit:
        raise InvalidRequest(f"Username must be at most {limit} characters")
    return username


def _message(data: Dict[str, Any]) -> str:
    message = data.get('message')
    if not isinstance(message, str) or not message.strip():
        raise InvalidRequest('Message is required')
    limit = current_app.config.get('MAX_EMOTE_LENGTH', 140)
    if len(message) > limit:
        raise InvalidRequest(f"Message must be at most {limit} characters")
    return message


def reports_errors(handler):
    """Turn a CellshotError into an ``error`` push to the requester only."""
    @wraps(handler)
    def wrapper(*args, **kwargs):
        try:
            return handler(*args, **kwargs)
        except CellshotError as exc:
            current_app.logger.info(f"[error] sid={_get_sid()} event={handler.__name__}: {exc}")
            emit('error', {'message': str(exc)})
    return wrapper


def _announce_leave(result: Optional[LeaveResult]) -> None:
    if result is None:
        return
    leave_room(result.room.code)
    if not result.deleted:
        emit('playerLeft', {'room': result.room.to_dict(), 'username': result.username}, to=result.room.code)


def _announce_join(result: JoinResult) -> None:
    _announce_leave(result.left)
    room = result.room
    with room.lock:
        join_room(room.code)
        if result.created:
            emit('roomCreated', {'room': room.to_dict()})
        else:
            emit('playerJoined', {'room': room.to_dict()}, to=room.code)
        if result.started:
            emit('gameStarted', {'gameState': room.game_state.to_dict()}, to=room.code)


def handle_connect(auth=None):
    current_app.logger.info(f"[connect] sid={_get_sid()}")


def handle_leave_room(data=None):
    directory = _directory()
    with directory.lock:
        _announce_leave(directory.leave(_get_sid()))


def handle_disconnect(reason=None):
    # A dropped connection leaves its room exactly like leaveRoom
    current_app.logger.info(f"[disconnect] sid={_get_sid()} reason={reason}")
    handle_leave_room()


@reports_errors
def handle_create_room(data):
    data = _payload(data)
    username = _username(data)
    directory = _directory()
    with directory.lock:
        _announce_join(directory.create_room(
            _get_sid(), data.get('maxPlayers'), username, password=data.get('password'),
        ))


@reports_errors
def handle_join_room(data):
    data = _payload(data)
    username = _username(data)
    room_code = str(data.get('roomCode') or '')
    directory = _directory()
    # Password hashing stays outside the directory lock
    room = directory.verify_password(room_code, data.get('password'))
    with directory.lock:
        _announce_join(directory.join_room(
            _get_sid(), room_code, username, password=data.get('password'), verified_room=room,
        ))


@reports_errors
def handle_quick_match(data):
    data = _payload(data)
    username = _username(data)
    directory = _directory()
    with directory.lock:
        _announce_join(directory.quick_match(_get_sid(), username))


def handle_toggle_ready(data):
    data = _payload(data)
    room = _directory().get(data.get('roomCode', ''))
    if room is None:
        return
    with room.lock:
        if room.started or not lobby.toggle_ready(room, _get_sid()):
            return
        emit('roomUpdated', {'room': room.to_dict()}, to=room.code)


@reports_errors
def handle_start_game(data):
    data = _payload(data)
    room = _directory().get(data.get('roomCode', ''))
    if room is None:
        return
    with room.lock:
        game_state = lobby.start_game(room, _get_sid())
        emit('gameStarted', {'gameState': game_state.to_dict()}, to=room.code)


def handle_game_action(data):
    data = _payload(data)
    room = _directory().get(data.get('roomCode', ''))
    if room is None:
        return
    with room.lock:
        game = room.game_state
        # Out-of-turn and stale actions are dropped without an error
        if game is None or game.status != IN_PROGRESS or game.acting_player.id != _get_sid():
            return
        result = engine.apply_action(game, data.get('actionKind'), data.get('data'))
        if not result.applied:
            return
        if result.game_ended:
            emit('gameEnded', {'history': result.history, 'gameState': game.to_dict()}, to=room.code)
        else:
            emit('gameStateUpdated', {'gameState': game.to_dict()}, to=room.code)


@reports_errors
def handle_send_emote(data):
    data = _payload(data)
    room = _directory().get(data.get('roomCode', ''))
    if room is None:
        return
    with room.lock:
        player = room.find_player(_get_sid())
        if player is None:
            return
        emit('emote', {'username': player.username, 'message': _message(data)}, to=room.code)


def register_socketio_handlers(namespace: str = '/') -> None:
    """Register Socket.IO event handlers on ``namespace``."""
    socketio.on_event('connect', handle_connect, namespace=namespace)
    socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
    socketio.on_event('quickMatch', handle_quick_match, namespace=namespace)
    socketio.on_event('createRoom', handle_create_room, namespace=namespace)
    socketio.on_event('joinRoom', handle_join_room, namespace=namespace)
    socketio.on_event('toggleReady', handle_toggle_ready, namespace=namespace)
    socketio.on_event('startGame', handle_start_game, namespace=namespace)
    socketio.on_event('gameAction', handle_game_action, namespace=namespace)
    socketio.on_event('sendEmote', handle_send_emote, namespace=namespace)
    socketio.on_event('leaveRoom', handle_leave_room, namespace=namespace)
