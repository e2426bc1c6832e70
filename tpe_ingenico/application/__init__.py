"""
Application layer - Use cases and entry points.

Contains:
- Request/response correlator
- API facade
- Command handler
"""

from .correlator import PaymentCorrelator, PendingPayment
from .api_facade import TpeIngenicoFacade
from .command_handler import CommandHandler, CommandResponse


__all__ = [
    "PaymentCorrelator",
    "PendingPayment",
    "TpeIngenicoFacade",
    "CommandHandler",
    "CommandResponse",
]
