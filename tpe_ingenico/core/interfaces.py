"""
Interfaces (Protocols) for the TPE adapter.

Defines contracts for the terminal transport and the state mirror using
an abstract base class and Python's Protocol for structural subtyping.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Optional, Protocol, runtime_checkable

from .message_stream import MessageSubscription


# Sync or async callable taking the lifecycle payload
LifecycleCallback = Callable[..., Any]


# =============================================================================
# Transport Interface
# =============================================================================


class Transport(ABC):
    """
    Abstract persistent connection to the terminal.

    Implementations reconnect on their own; callers only see
    whether the link is currently up.
    """

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Check if the connection is open."""
        ...

    @abstractmethod
    async def connect(self) -> bool:
        """
        Open the connection.

        Returns:
            True if the connection is open afterwards.
        """
        ...

    @abstractmethod
    async def send(self, payload: str) -> None:
        """
        Write one text frame.

        Raises:
            TransportError: If not connected or the write fails.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close the connection and stop reconnecting."""
        ...

    @abstractmethod
    async def reconnect(self) -> None:
        """Drop the current connection and open a new one."""
        ...

    @abstractmethod
    def subscribe(self) -> MessageSubscription:
        """Subscribe to inbound frames."""
        ...

    @abstractmethod
    def on_open(self, callback: LifecycleCallback) -> None:
        """Register a callback for connection opened."""
        ...

    @abstractmethod
    def on_close(self, callback: LifecycleCallback) -> None:
        """Register a callback for connection closed."""
        ...

    @abstractmethod
    def on_error(self, callback: LifecycleCallback) -> None:
        """Register a callback for connection errors."""
        ...

    @abstractmethod
    def on_message(self, callback: LifecycleCallback) -> None:
        """Register a callback for every inbound frame."""
        ...


# =============================================================================
# Repository Interfaces
# =============================================================================


@runtime_checkable
class StateMirror(Protocol):
    """Protocol for publishing adapter state to outside observers."""

    async def set_state(self, state: str) -> None:
        """Record the current payment state."""
        ...

    async def set_connected(self, connected: bool) -> None:
        """Record the terminal connection status."""
        ...

    async def set_last_outcome(self, outcome: dict[str, Any]) -> None:
        """Record the outcome of the last payment."""
        ...

    async def reset(self, state: Optional[str] = None) -> None:
        """Clear everything mirrored so far."""
        ...
