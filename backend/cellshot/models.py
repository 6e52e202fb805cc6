import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from cellshot import bcrypt

MIN_PLAYERS = 2
MAX_PLAYERS = 6
MAX_STAGE = 6
FULL_CLIP = 5
MAX_EMOTE_LENGTH = 140

PLAYER_COLORS = [
    '#3B82F6',  # blue
    '#EF4444',  # red
    '#10B981',  # green
    '#F59E0B',  # yellow
    '#8B5CF6',  # purple
    '#EC4899',  # pink
]

LOBBY = 'lobby'
IN_PROGRESS = 'in_progress'
ENDED = 'ended'


def color_for(join_index: int) -> str:
    """Palette color for the player who joined at ``join_index``."""
    return PLAYER_COLORS[join_index % len(PLAYER_COLORS)]


@dataclass
class LobbyPlayer:
    id: str
    username: str
    color: str
    ready: bool = False
    is_leader: bool = False

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'ready': self.ready,
            'isLeader': self.is_leader,
            'color': self.color,
        }


@dataclass
class Cell:
    stage: int = 0
    bullets: int = 0

    @property
    def is_active(self) -> bool:
        return self.stage >= 1

    def reset(self) -> None:
        self.stage = 0
        self.bullets = 0

    def to_dict(self):
        return {
            'stage': self.stage,
            'isActive': self.is_active,
            'bullets': self.bullets,
        }


@dataclass
class PlayerStats:
    shots_fired: int = 0
    eliminations: int = 0
    times_targeted: int = 0

    def to_dict(self):
        return {
            'shotsFired': self.shots_fired,
            'eliminations': self.eliminations,
            'timesTargeted': self.times_targeted,
        }


@dataclass
class GamePlayer:
    id: str
    username: str
    color: str
    cells: List[Cell]
    eliminated: bool = False
    first_move: bool = True
    stats: PlayerStats = field(default_factory=PlayerStats)

    @classmethod
    def from_lobby(cls, player: LobbyPlayer, cell_count: int) -> 'GamePlayer':
        return cls(
            id=player.id,
            username=player.username,
            color=player.color,
            cells=[Cell() for _ in range(cell_count)],
        )

    @property
    def all_cells_inactive(self) -> bool:
        return not any(cell.is_active for cell in self.cells)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'color': self.color,
            'eliminated': self.eliminated,
            'firstMove': self.first_move,
            'cells': [cell.to_dict() for cell in self.cells],
            'stats': self.stats.to_dict(),
        }


@dataclass
class GameState:
    players: List[GamePlayer]
    current_player: int = 0
    last_roll: Optional[int] = None
    game_log: List[Any] = field(default_factory=list)
    status: str = IN_PROGRESS
    history: Optional[Dict[str, Any]] = None

    @classmethod
    def from_roster(cls, roster: List[LobbyPlayer]) -> 'GameState':
        size = len(roster)
        return cls(players=[GamePlayer.from_lobby(p, size) for p in roster])

    @property
    def size(self) -> int:
        return len(self.players)

    @property
    def acting_player(self) -> GamePlayer:
        return self.players[self.current_player]

    def remaining_players(self) -> List[GamePlayer]:
        return [p for p in self.players if not p.eliminated]

    def to_dict(self):
        return {
            'status': self.status,
            'currentPlayer': self.current_player,
            'players': [p.to_dict() for p in self.players],
            'lastRoll': self.last_roll,
            'gameLog': [entry.to_dict() for entry in self.game_log],
        }


@dataclass
class Room:
    """A lobby of up to ``max_players`` connections and, once started, its game."""

    code: str
    leader: str
    max_players: int
    players: List[LobbyPlayer] = field(default_factory=list)
    is_quick_match: bool = False
    started: bool = False
    game_state: Optional[GameState] = None
    password_hash: Optional[str] = field(default=None, repr=False)
    lock: Any = field(default_factory=threading.RLock, repr=False, compare=False)

    @property
    def status(self) -> str:
        if self.game_state is None:
            return LOBBY
        return self.game_state.status

    @property
    def has_password(self) -> bool:
        return self.password_hash is not None

    @property
    def is_full(self) -> bool:
        return len(self.players) >= self.max_players

    def set_password(self, password: Optional[str]) -> None:
        if password:
            self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')
        else:
            self.password_hash = None

    def check_password(self, password: Optional[str]) -> bool:
        if self.password_hash is None:
            return True
        if not password:
            return False
        return bcrypt.check_password_hash(self.password_hash, password)

    def find_player(self, sid: str) -> Optional[LobbyPlayer]:
        return next((p for p in self.players if p.id == sid), None)

    def add_player(self, sid: str, username: str, ready=False, is_leader=False) -> LobbyPlayer:
        player = LobbyPlayer(
            id=sid,
            username=username,
            color=color_for(len(self.players)),
            ready=ready,
            is_leader=is_leader,
        )
        self.players.append(player)
        return player

    def to_dict(self):
        # Never include the password hash
        return {
            'code': self.code,
            'leader': self.leader,
            'maxPlayers': self.max_players,
            'isQuickMatch': self.is_quick_match,
            'hasPassword': self.has_password,
            'started': self.started,
            'status': self.status,
            'players': [p.to_dict() for p in self.players],
            'gameState': self.game_state.to_dict() if self.game_state else None,
        }

    def to_summary(self):
        return {
            'code': self.code,
            'playerCount': len(self.players),
            'maxPlayers': self.max_players,
            'isQuickMatch': self.is_quick_match,
            'hasPassword': self.has_password,
        }
