"""
Infrastructure layer - External dependencies and implementations.

Contains:
- WebSocket transport session to the terminal
- Redis state mirror
"""

from .redis_repository import (
    RedisStateRepository,
    TerminalStateRepository,
)
from .websocket_session import WebSocketSession


__all__ = [
    # Transport
    "WebSocketSession",
    # Repositories
    "RedisStateRepository",
    "TerminalStateRepository",
]
