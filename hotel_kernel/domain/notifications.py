"""
Notification collaborator contracts.

The kernel never delivers messages itself.  Services depend on these
protocols; concrete senders live in ``hotel_services.adapters``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol


class Channel(str, Enum):
    EMAIL = "EMAIL"
    SMS = "SMS"


@dataclass(frozen=True)
class RenderedMessage:
    subject: str
    html: str
    text: str


class EmailSender(Protocol):
    def send_email(
        self,
        to: str,
        subject: str,
        html: str,
        text: str,
        *,
        timeout: float,
    ) -> None: ...


class SmsSender(Protocol):
    def send_sms(self, to: str, message: str, *, timeout: float) -> None: ...


class CredentialHasher(Protocol):
    def hash_credential(self, plaintext: str) -> str: ...
