"""Game domain services: the turn engine and the game log.

Pure domain logic with no Flask or Socket.IO imports, so socket handlers
stay a thin transport layer over it.
"""
