from flask import Blueprint, current_app, jsonify

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the Cellshot game server!'})


@main.route('/health')
def health():
    return jsonify({'status': 'healthy'})


@main.route('/api/rooms')
def list_open_rooms():
    """
    Lists lobbies that can still be joined, for a room browser.
    """
    directory = current_app.extensions['room_directory']
    with directory.lock:
        rooms = [room.to_summary() for room in directory.open_rooms()]
    return jsonify(rooms), 200
