"""
Pytest configuration for TPE adapter tests.

Adds the project root to sys.path, points the log file at a temporary
directory and provides an in-memory terminal transport.
"""

import asyncio
import copy
import os
import sys
import tempfile
from pathlib import Path
from typing import Any, Optional

import pytest


project_root = Path(__file__).parent.parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

os.environ.setdefault(
    "TPE_LOG_FILE",
    str(Path(tempfile.gettempdir()) / "tpe_ingenico_tests" / "tpe_ingenico.log"),
)

from tpe_ingenico.core.exceptions import TransportError  # noqa: E402
from tpe_ingenico.core.interfaces import Transport  # noqa: E402
from tpe_ingenico.core.message_stream import MessageStream  # noqa: E402


VALID_PAYMENT: dict[str, Any] = {
    "action": 1,
    "data": {
        "id": 42,
        "number": "A1",
        "total_ttc": 19.90,
        "items": [{"name": "Coffee", "total_ttc": 19.90, "quantity": 1}],
    },
}

PAID_RESPONSE = '{"checkout_state": "paid", "checkout_details": "ok"}'


class FakeTransport(Transport):
    """
    In-memory terminal link.

    Frames queued in ``replies`` are delivered right after each send.
    """

    def __init__(self, connected: bool = True) -> None:
        self.connected = connected
        self.sent: list[str] = []
        self.replies: list[str] = []
        self.stream = MessageStream()
        self.callbacks: dict[str, list] = {"open": [], "close": [], "error": [], "message": []}

    @property
    def is_connected(self) -> bool:
        return self.connected

    async def connect(self) -> bool:
        self.connected = True
        return True

    async def send(self, payload: str) -> None:
        if not self.connected:
            raise TransportError("Terminal is not connected")
        self.sent.append(payload)
        for reply in self.replies:
            self.stream.publish(reply)
        self.replies = []

    async def close(self) -> None:
        self.connected = False

    async def reconnect(self) -> None:
        self.connected = True

    def subscribe(self):
        return self.stream.subscribe()

    def on_open(self, callback) -> None:
        self.callbacks["open"].append(callback)

    def on_close(self, callback) -> None:
        self.callbacks["close"].append(callback)

    def on_error(self, callback) -> None:
        self.callbacks["error"].append(callback)

    def on_message(self, callback) -> None:
        self.callbacks["message"].append(callback)

    def push(self, raw: str) -> None:
        """Deliver an inbound frame."""
        self.stream.publish(raw)

    def drop(self, reason: Optional[str] = None) -> None:
        """Simulate the terminal going away."""
        self.connected = False
        self.stream.connection_lost(reason)


async def wait_until(predicate, timeout: float = 2.0) -> None:
    """Poll predicate until true or fail the test."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            pytest.fail("condition not reached in time")
        await asyncio.sleep(0.01)


@pytest.fixture
def payment() -> dict[str, Any]:
    """A fresh copy of a valid payment request."""
    return copy.deepcopy(VALID_PAYMENT)


@pytest.fixture
def transport() -> FakeTransport:
    """Connected in-memory transport."""
    return FakeTransport()
