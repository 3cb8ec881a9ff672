"""Notification port: abstract interface for telling customers about pickups."""

from abc import ABC, abstractmethod
from enum import Enum


class NotificationChannel(Enum):
    EMAIL = "Email"
    SMS = "SMS"


class NotificationPort(ABC):
    """Abstract interface for notification dispatch adapters."""

    @abstractmethod
    def send(self, channel: str, recipient: str, subject: str, body: str) -> dict:
        """Dispatch one message.

        Returns:
            dict with keys: message_id, status ("sent" or "failed"), error (optional)
        """
        ...
