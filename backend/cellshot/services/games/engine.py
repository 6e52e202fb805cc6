"""Turn engine for an in-progress game.

``apply_action`` is the only way game state changes once a match has
started. The caller is responsible for checking that the sender owns the
current turn; the engine trusts that and never raises for rule violations.
A processed action always ends the turn, even when it changed nothing.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from cellshot.models import ENDED, FULL_CLIP, MAX_EMOTE_LENGTH, MAX_STAGE, GamePlayer, GameState
from cellshot.services.games.gamelog import (
    ActivateEntry,
    EliminateEntry,
    EmoteEntry,
    MaxLevelEntry,
    ReloadEntry,
    ShootEntry,
    build_history,
    first_move_entry,
)

logger = logging.getLogger(__name__)


@dataclass
class ActionResult:
    game_state: GameState
    game_ended: bool = False
    history: Optional[Dict[str, Any]] = None
    # False when the action was not processed at all (unknown kind or bad payload)
    applied: bool = True


def _index(value) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def _roll(game: GameState, actor: GamePlayer, data: Dict[str, Any]) -> bool:
    value = _index(data.get('value'))
    if value is None or not 1 <= value <= game.size:
        return False

    game.last_roll = value
    if actor.first_move:
        if value != 1:
            game.game_log.append(first_move_entry(actor.username))
            return True
        actor.first_move = False

    cell = actor.cells[value - 1]
    if not cell.is_active:
        cell.stage = 1
        cell.bullets = 0
        game.game_log.append(ActivateEntry(player=actor.username, cell=value))
    elif cell.stage < MAX_STAGE:
        cell.stage += 1
        if cell.stage == MAX_STAGE:
            cell.bullets = FULL_CLIP
            game.game_log.append(MaxLevelEntry(player=actor.username, cell=value))
    elif cell.bullets == 0:
        cell.bullets = FULL_CLIP
        game.game_log.append(ReloadEntry(player=actor.username, cell=value))
    # fully loaded cell: nothing to do
    return True


def _shoot(game: GameState, actor: GamePlayer, data: Dict[str, Any]) -> bool:
    target_index = _index(data.get('targetPlayer'))
    cell_index = _index(data.get('targetCell'))
    if target_index is None or cell_index is None:
        return False
    if not 0 <= target_index < game.size or not 0 <= cell_index < game.size:
        return False

    target = game.players[target_index]
    ammo = actor.cells[cell_index]
    if game.last_roll != cell_index + 1 or ammo.bullets <= 0:
        return True

    was_eliminated = target.eliminated
    # Spend the bullet first: on a self-shot the reset below empties the same cell
    ammo.bullets -= 1
    target.cells[cell_index].reset()
    actor.stats.shots_fired += 1
    target.stats.times_targeted += 1
    game.game_log.append(ShootEntry(shooter=actor.username, target=target.username, cell=cell_index + 1))

    target.eliminated = target.all_cells_inactive
    if target.eliminated and not was_eliminated:
        actor.stats.eliminations += 1
        game.game_log.append(EliminateEntry(player=target.username))
        logger.info(f"{target.username} eliminated by {actor.username}")
    return True


def _emote(game: GameState, actor: GamePlayer, data: Dict[str, Any]) -> bool:
    message = data.get('message')
    message = '' if message is None else str(message)
    game.game_log.append(EmoteEntry(player=actor.username, message=message[:MAX_EMOTE_LENGTH]))
    return True


ACTIONS = {
    'roll': _roll,
    'shoot': _shoot,
    'emote': _emote,
}


def advance_turn(game: GameState) -> None:
    """Move to the next player who is still in the game.

    Only called while at least two players remain.
    """
    index = game.current_player
    while True:
        index = (index + 1) % game.size
        if not game.players[index].eliminated:
            break
    game.current_player = index


def apply_action(game: GameState, action_kind: str, data: Optional[Dict[str, Any]] = None) -> ActionResult:
    handler = ACTIONS.get(action_kind)
    if handler is None:
        return ActionResult(game_state=game, applied=False)
    if not handler(game, game.acting_player, data if isinstance(data, dict) else {}):
        return ActionResult(game_state=game, applied=False)

    remaining = game.remaining_players()
    if len(remaining) == 1:
        winner = remaining[0]
        game.status = ENDED
        game.history = build_history(game, winner.username)
        logger.info(f"Game over, {winner.username} wins")
        return ActionResult(game_state=game, game_ended=True, history=game.history)

    advance_turn(game)
    return ActionResult(game_state=game)
