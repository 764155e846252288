"""
WebSocket server and message handling for the Salute game.
"""

from .connections import ConnectionRegistry
from .router import ClientSession, MessageRouter
from .server import create_app

__all__ = ["ClientSession", "ConnectionRegistry", "MessageRouter", "create_app"]
