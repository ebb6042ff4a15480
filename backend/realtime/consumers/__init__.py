"""Realtime consumers for WebSocket communication."""

from .base import BaseConsumer
from .customer_consumer import CustomerConsumer
from .technician_consumer import TechnicianConsumer

__all__ = [
    "BaseConsumer",
    "CustomerConsumer",
    "TechnicianConsumer",
]
