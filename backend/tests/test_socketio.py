import threading

from cellshot.models import Room


def events(sio_client, name):
    """Payloads of every ``name`` push received since the last call."""
    return [pkt['args'][0] for pkt in sio_client.get_received() if pkt['name'] == name]


def received_names(sio_client):
    return [pkt['name'] for pkt in sio_client.get_received()]


def open_room(sio_factory, *usernames, max_players=4, password=None):
    """Create a room with the first user as leader and join the others."""
    leader = sio_factory()
    leader.emit('createRoom', {'maxPlayers': max_players, 'password': password, 'username': usernames[0]})
    room = events(leader, 'roomCreated')[0]['room']
    clients = [leader]
    for username in usernames[1:]:
        member = sio_factory()
        member.emit('joinRoom', {'roomCode': room['code'], 'password': password, 'username': username})
        clients.append(member)
    for c in clients:
        c.get_received()
    return room['code'], clients


def start(code, clients):
    for member in clients[1:]:
        member.emit('toggleReady', {'roomCode': code})
    clients[0].emit('startGame', {'roomCode': code})
    state = events(clients[0], 'gameStarted')[0]['gameState']
    for c in clients[1:]:
        c.get_received()
    return state


def roll(sio_client, code, value):
    sio_client.emit('gameAction', {'roomCode': code, 'actionKind': 'roll', 'data': {'value': value}})


def test_create_room_never_echoes_password(sio_factory):
    alice = sio_factory()
    assert alice.is_connected()
    alice.emit('createRoom', {'maxPlayers': 3, 'password': 'hunter2', 'username': 'Alice'})
    room = events(alice, 'roomCreated')[0]['room']
    assert room['maxPlayers'] == 3
    assert room['hasPassword'] is True
    assert room['started'] is False
    assert 'password' not in room
    assert 'hunter2' not in str(room)
    assert room['players'][0]['username'] == 'Alice'
    assert room['players'][0]['isLeader'] is True


def test_bad_create_reports_error(sio_factory):
    alice = sio_factory()
    alice.emit('createRoom', {'maxPlayers': 9, 'username': 'Alice'})
    errors = events(alice, 'error')
    assert errors and 'maxPlayers' in errors[0]['message']

    alice.emit('createRoom', {'maxPlayers': 2})
    assert events(alice, 'error')[0]['message'] == 'Please set a username first'


def test_join_broadcasts_roster_and_errors_go_to_requester_only(sio_factory):
    alice = sio_factory()
    alice.emit('createRoom', {'maxPlayers': 2, 'password': 'pw', 'username': 'Alice'})
    code = events(alice, 'roomCreated')[0]['room']['code']

    bob = sio_factory()
    bob.emit('joinRoom', {'roomCode': code, 'password': 'wrong', 'username': 'Bob'})
    assert events(bob, 'error') == [{'message': 'Incorrect password'}]
    assert received_names(alice) == []

    bob.emit('joinRoom', {'roomCode': 'nope', 'username': 'Bob'})
    assert events(bob, 'error') == [{'message': 'Room nope not found'}]

    bob.emit('joinRoom', {'roomCode': code, 'password': 'pw', 'username': 'Bob'})
    for c in (alice, bob):
        room = events(c, 'playerJoined')[0]['room']
        assert [p['username'] for p in room['players']] == ['Alice', 'Bob']
        assert room['players'][1]['ready'] is False
        assert 'password' not in room

    carol = sio_factory()
    carol.emit('joinRoom', {'roomCode': code, 'password': 'pw', 'username': 'Carol'})
    assert events(carol, 'error') == [{'message': 'Room is full'}]


def test_ready_and_start_flow(sio_factory):
    code, (alice, bob) = open_room(sio_factory, 'Alice', 'Bob')

    alice.emit('startGame', {'roomCode': code})
    assert events(alice, 'error') == [{'message': 'All players must be ready'}]

    bob.emit('toggleReady', {'roomCode': code})
    for c in (alice, bob):
        room = events(c, 'roomUpdated')[0]['room']
        assert room['players'][1]['ready'] is True

    bob.emit('startGame', {'roomCode': code})
    assert events(bob, 'error') == [{'message': 'Only the room leader can do that'}]
    assert received_names(alice) == []

    alice.emit('startGame', {'roomCode': code})
    for c in (alice, bob):
        state = events(c, 'gameStarted')[0]['gameState']
        assert state['currentPlayer'] == 0
        assert state['lastRoll'] is None
        assert state['gameLog'] == []
        assert [len(p['cells']) for p in state['players']] == [2, 2]


def test_game_actions_only_from_current_player(sio_factory):
    code, (alice, bob) = open_room(sio_factory, 'Alice', 'Bob')
    start(code, [alice, bob])

    roll(bob, code, 1)
    assert received_names(alice) == []
    assert received_names(bob) == []

    alice.emit('gameAction', {'roomCode': code, 'actionKind': 'dance', 'data': {}})
    assert received_names(alice) == []

    roll(alice, code, 1)
    for c in (alice, bob):
        state = events(c, 'gameStateUpdated')[0]['gameState']
        assert state['currentPlayer'] == 1
        assert state['lastRoll'] == 1
        assert state['players'][0]['cells'][0] == {'stage': 1, 'isActive': True, 'bullets': 0}
        assert state['gameLog'] == [{'type': 'activate', 'player': 'Alice', 'cell': 1}]


def test_full_game_to_game_ended(sio_factory):
    code, (alice, bob) = open_room(sio_factory, 'Alice', 'Bob')
    start(code, [alice, bob])

    # Both players level cell 1 to max; Alice gets there first
    for _ in range(6):
        roll(alice, code, 1)
        roll(bob, code, 1)
    alice.get_received()
    bob.get_received()

    alice.emit('gameAction', {'roomCode': code, 'actionKind': 'shoot', 'data': {'targetPlayer': 1, 'targetCell': 0}})
    for c in (alice, bob):
        ended = events(c, 'gameEnded')[0]
        assert ended['history'] == {
            'winner': 'Alice',
            'eliminations': [{'eliminator': 'Alice', 'eliminated': 'Bob'}],
            'playerStats': {
                'Alice': {'shotsFired': 1, 'eliminations': 1, 'timesTargeted': 0},
                'Bob': {'shotsFired': 0, 'eliminations': 0, 'timesTargeted': 1},
            },
        }
        assert ended['gameState']['status'] == 'ended'
        assert ended['gameState']['currentPlayer'] == 0

    # Game over: nothing more is processed
    alice.emit('gameAction', {'roomCode': code, 'actionKind': 'emote', 'data': {'message': 'gg'}})
    assert received_names(bob) == []


def test_send_emote_reaches_room(sio_factory):
    code, (alice, bob) = open_room(sio_factory, 'Alice', 'Bob')
    bob.emit('sendEmote', {'roomCode': code, 'message': 'hi!'})
    for c in (alice, bob):
        assert events(c, 'emote') == [{'username': 'Bob', 'message': 'hi!'}]

    outsider = sio_factory()
    outsider.emit('sendEmote', {'roomCode': code, 'message': 'spam'})
    assert received_names(alice) == []


def test_leave_and_disconnect_update_roster(sio_factory, directory):
    code, (alice, bob, carol) = open_room(sio_factory, 'Alice', 'Bob', 'Carol')

    alice.emit('leaveRoom')
    for c in (bob, carol):
        left = events(c, 'playerLeft')[0]
        assert left['username'] == 'Alice'
        assert left['room']['leader'] == left['room']['players'][0]['id']
        assert [p['isLeader'] for p in left['room']['players']] == [True, False]
    assert received_names(alice) == []

    carol.disconnect()
    left = events(bob, 'playerLeft')[0]
    assert left['username'] == 'Carol'
    assert [p['username'] for p in left['room']['players']] == ['Bob']

    bob.emit('leaveRoom')
    assert code not in directory


def test_quick_match_starts_when_full(sio_factory, client):
    players = []
    for i in range(4):
        c = sio_factory()
        c.emit('quickMatch', {'username': f"p{i}"})
        players.append(c)

    first_names = received_names(players[0])
    assert first_names[0] == 'roomCreated'
    assert first_names.count('playerJoined') == 3
    assert first_names[-1] == 'gameStarted'
    for c in players[1:]:
        assert 'gameStarted' in received_names(c)

    # The started room is no longer listed as open
    assert client.get('/api/rooms').get_json() == []


def test_password_check_runs_outside_directory_lock(sio_factory, directory, monkeypatch):
    alice = sio_factory()
    alice.emit('createRoom', {'maxPlayers': 2, 'password': 'pw', 'username': 'Alice'})
    code = events(alice, 'roomCreated')[0]['room']['code']

    check_password = Room.check_password
    lock_was_free = []

    def try_directory_lock():
        acquired = directory.lock.acquire(blocking=False)
        if acquired:
            directory.lock.release()
        lock_was_free.append(acquired)

    def checking(self, password):
        other = threading.Thread(target=try_directory_lock)
        other.start()
        other.join()
        return check_password(self, password)

    monkeypatch.setattr(Room, 'check_password', checking)
    bob = sio_factory()
    bob.emit('joinRoom', {'roomCode': code, 'password': 'pw', 'username': 'Bob'})
    assert lock_was_free == [True]
    assert events(bob, 'playerJoined')
