"""
Errors reported back to the connection that caused them.

Socket handlers catch ``CellshotError`` and emit an ``error`` push carrying
``str(exc)``; the room itself is never affected.
"""


class CellshotError(Exception):
    """Base class for every recoverable lobby or game error."""
    message = 'Something went wrong'

    def __init__(self, message=None):
        super().__init__(message or self.message)


class RoomNotFound(CellshotError):
    def __init__(self, room_code):
        self.room_code = room_code
        super().__init__(f"Room {room_code} not found")


class InvalidPassword(CellshotError):
    message = 'Incorrect password'


class RoomFull(CellshotError):
    message = 'Room is full'


class GameAlreadyStarted(CellshotError):
    message = 'Game already in progress'


class NotAuthorized(CellshotError):
    """Caller is not the room leader (or not the turn owner)."""
    message = 'Only the room leader can do that'


class NotReady(CellshotError):
    """Start requested while the roster cannot start yet."""
    message = 'All players must be ready'


class InvalidRequest(CellshotError):
    """Malformed or out-of-bounds client payload."""
    message = 'Invalid request'
