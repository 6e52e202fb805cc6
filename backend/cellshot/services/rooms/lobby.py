"""Lobby rules for a single room: readiness and starting the game."""
import logging

from cellshot.exceptions import GameAlreadyStarted, NotAuthorized, NotReady
from cellshot.models import MIN_PLAYERS, GameState, Room

logger = logging.getLogger(__name__)


def toggle_ready(room: Room, sid: str) -> bool:
    """Flip the ready flag of ``sid``. Returns False if it is not in the room."""
    player = room.find_player(sid)
    if player is None:
        return False
    player.ready = not player.ready
    return True


def begin_game(room: Room) -> GameState:
    """Move the room from lobby to in progress with a fresh game state."""
    room.game_state = GameState.from_roster(room.players)
    room.started = True
    logger.info(f"Game started in room {room.code} with {len(room.players)} players")
    return room.game_state


def start_game(room: Room, sid: str) -> GameState:
    if room.started:
        raise GameAlreadyStarted()
    if room.leader != sid:
        raise NotAuthorized()
    if len(room.players) < MIN_PLAYERS:
        raise NotReady(f"At least {MIN_PLAYERS} players are needed to start")
    if not all(p.ready for p in room.players):
        raise NotReady()
    return begin_game(room)
