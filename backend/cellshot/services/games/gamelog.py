"""Game log entries and the end-of-game history derived from them.

The log is append-only and is the only record of what happened in a match,
so the history shown after the game is rebuilt from it rather than tracked
separately.
"""
from dataclasses import asdict, dataclass
from typing import Any, Dict, List

from cellshot.models import GameState


@dataclass(frozen=True)
class LogEntry:
    type = 'entry'

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['type'] = self.type
        return data


@dataclass(frozen=True)
class FirstMoveEntry(LogEntry):
    player: str
    message: str
    type = 'firstMove'


@dataclass(frozen=True)
class ActivateEntry(LogEntry):
    player: str
    cell: int
    type = 'activate'


@dataclass(frozen=True)
class MaxLevelEntry(LogEntry):
    player: str
    cell: int
    type = 'maxLevel'


@dataclass(frozen=True)
class ReloadEntry(LogEntry):
    player: str
    cell: int
    type = 'reload'


@dataclass(frozen=True)
class ShootEntry(LogEntry):
    shooter: str
    target: str
    cell: int
    type = 'shoot'


@dataclass(frozen=True)
class EliminateEntry(LogEntry):
    player: str
    type = 'eliminate'


@dataclass(frozen=True)
class EmoteEntry(LogEntry):
    player: str
    message: str
    type = 'emote'


def first_move_entry(username: str) -> FirstMoveEntry:
    return FirstMoveEntry(player=username, message=f"{username} needs to roll a 1 to start!")


def elimination_chain(log: List[LogEntry]) -> List[Dict[str, str]]:
    """Pair every eliminate entry with the shot that caused it.

    An eliminate entry is always appended right after the shoot entry
    that emptied the target's last cell.
    """
    chain = []
    for previous, entry in zip([None] + log[:-1], log):
        if not isinstance(entry, EliminateEntry):
            continue
        eliminator = previous.shooter if isinstance(previous, ShootEntry) else None
        chain.append({'eliminator': eliminator, 'eliminated': entry.player})
    return chain


def build_history(game: GameState, winner_username: str) -> Dict[str, Any]:
    return {
        'winner': winner_username,
        'eliminations': elimination_chain(game.game_log),
        'playerStats': {p.username: p.stats.to_dict() for p in game.players},
    }
