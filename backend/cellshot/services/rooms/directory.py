"""
Room directory: every live room in this process, keyed by room code.

Responsibilities:
1. Hand out collision-free numeric room codes
2. Create / join / quick-match rooms
3. Remove connections from rooms, transferring leadership and deleting
   rooms that become empty
4. Track which room each connection is in (at most one)

Nothing here is persisted; a restart forgets every room.
"""
import logging
import random
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional

from cellshot.exceptions import (
    GameAlreadyStarted,
    InvalidPassword,
    InvalidRequest,
    RoomFull,
    RoomNotFound,
)
from cellshot.models import MAX_PLAYERS, MIN_PLAYERS, Room
from cellshot.services.rooms.lobby import begin_game

logger = logging.getLogger(__name__)


class SessionRegistry:
    """Connection id -> code of the room that connection is in."""

    def __init__(self):
        self._rooms_by_sid: Dict[str, str] = {}

    def room_of(self, sid: str) -> Optional[str]:
        return self._rooms_by_sid.get(sid)

    def bind(self, sid: str, room_code: str) -> None:
        self._rooms_by_sid[sid] = room_code

    def unbind(self, sid: str) -> Optional[str]:
        return self._rooms_by_sid.pop(sid, None)


@dataclass
class LeaveResult:
    room: Room
    username: str
    deleted: bool
    new_leader: Optional[str] = None


@dataclass
class JoinResult:
    room: Room
    # Room the connection had to leave first, if any
    left: Optional[LeaveResult] = None
    created: bool = False
    started: bool = False


def check_max_players(max_players) -> int:
    if isinstance(max_players, bool) or not isinstance(max_players, int) \
            or not MIN_PLAYERS <= max_players <= MAX_PLAYERS:
        raise InvalidRequest(f"maxPlayers must be between {MIN_PLAYERS} and {MAX_PLAYERS}")
    return max_players


class RoomDirectory:

    def __init__(self, code_digits: int = 6, quick_match_capacity: int = 4):
        self._rooms: Dict[str, Room] = {}
        self.sessions = SessionRegistry()
        self.code_digits = code_digits
        self.quick_match_capacity = quick_match_capacity
        # Guards the mapping and the session registry; take it before any room lock
        self.lock = threading.RLock()

    def __len__(self):
        return len(self._rooms)

    def __contains__(self, room_code):
        return room_code in self._rooms

    def get(self, room_code) -> Optional[Room]:
        return self._rooms.get(str(room_code))

    def require(self, room_code) -> Room:
        room = self.get(room_code)
        if room is None:
            raise RoomNotFound(room_code)
        return room

    def open_rooms(self) -> List[Room]:
        return [room for room in self._rooms.values() if not room.started and not room.is_full]

    def generate_room_code(self) -> str:
        low = 10 ** (self.code_digits - 1)
        high = 10 ** self.code_digits - 1
        code = str(random.randint(low, high))
        while code in self._rooms:
            logger.warning(f"Room code collision detected, regenerating: {code}")
            code = str(random.randint(low, high))
        return code

    def _register(self, room: Room) -> Room:
        self._rooms[room.code] = room
        self.sessions.bind(room.leader, room.code)
        logger.info(f"Created room {room.code} (max {room.max_players}, quick match={room.is_quick_match})")
        return room

    def create_room(self, sid: str, max_players, username: str, password: Optional[str] = None) -> JoinResult:
        """Create a room with ``sid`` as its only (ready) player and leader."""
        max_players = check_max_players(max_players)
        left = self.leave(sid)

        room = Room(code=self.generate_room_code(), leader=sid, max_players=max_players)
        room.set_password(password)
        room.add_player(sid, username, ready=True, is_leader=True)
        return JoinResult(room=self._register(room), left=left, created=True)

    def verify_password(self, room_code, password: Optional[str] = None) -> Room:
        """Check a room password without holding any lock.

        Hashing is slow; the hash never changes after creation, so this runs
        before ``join_room`` takes the directory lock.
        """
        room = self.require(room_code)
        if not room.check_password(password):
            raise InvalidPassword()
        return room

    def join_room(self, sid: str, room_code, username: str, password: Optional[str] = None,
                  verified_room: Optional[Room] = None) -> JoinResult:
        room = self.require(room_code)
        with room.lock:
            if room.find_player(sid) is not None:
                return JoinResult(room=room)
            if room is not verified_room and not room.check_password(password):
                raise InvalidPassword()
            if room.is_full:
                raise RoomFull()
            if room.started:
                raise GameAlreadyStarted()

            left = self.leave(sid)
            room.add_player(sid, username)
            self.sessions.bind(sid, room.code)
            logger.info(f"{username} joined room {room.code} ({len(room.players)}/{room.max_players})")
            return JoinResult(room=room, left=left)

    def quick_match(self, sid: str, username: str) -> JoinResult:
        """Join the first open quick-match room, or open a new one.

        Quick-match players are ready on arrival; the game starts as soon
        as the room fills up.
        """
        left = self.leave(sid)
        for room in self._rooms.values():
            with room.lock:
                if not room.is_quick_match or room.started or room.is_full:
                    continue
                room.add_player(sid, username, ready=True)
                self.sessions.bind(sid, room.code)
                logger.info(f"{username} quick-matched into room {room.code}")
                if room.is_full:
                    begin_game(room)
                return JoinResult(room=room, left=left, started=room.started)

        room = Room(
            code=self.generate_room_code(),
            leader=sid,
            max_players=self.quick_match_capacity,
            is_quick_match=True,
        )
        room.add_player(sid, username, ready=True, is_leader=True)
        return JoinResult(room=self._register(room), left=left, created=True)

    def leave(self, sid: str) -> Optional[LeaveResult]:
        """Remove ``sid`` from its room. Returns None if it was in no room."""
        code = self.sessions.unbind(sid)
        room = self.get(code) if code else None
        if room is None:
            return None

        with room.lock:
            player = room.find_player(sid)
            if player is None:
                return None
            room.players.remove(player)

            if not room.players:
                del self._rooms[room.code]
                logger.info(f"Room {room.code} is empty, deleted")
                return LeaveResult(room=room, username=player.username, deleted=True)

            new_leader = None
            if room.leader == sid:
                successor = room.players[0]
                successor.is_leader = True
                room.leader = successor.id
                new_leader = successor.id
                logger.info(f"Leadership of room {room.code} passed to {successor.username}")
            logger.info(f"{player.username} left room {room.code}")
            return LeaveResult(room=room, username=player.username, deleted=False, new_leader=new_leader)
