"""Webhook event models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


ACK_MESSAGE = "Webhook received and processed"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(dt: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision, e.g. 2025-01-01T12:00:00.000Z."""
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class WebhookEvent:
    message: str
    user_info: Any
    full_request: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utc_now)
    id: str | None = None

    def to_document(self) -> dict[str, Any]:
        """Stored layout. The store adds ``_id`` on insert."""
        return {
            "message": self.message,
            "userInfo": self.user_info,
            "timestamp": self.timestamp,
            "fullRequest": self.full_request,
        }

    def to_ack(self) -> dict[str, Any]:
        ack: dict[str, Any] = {
            "success": True,
            "message": ACK_MESSAGE,
            "timestamp": format_timestamp(self.timestamp),
        }
        if self.id is not None:
            ack["id"] = self.id
        return ack


@dataclass
class RecordResult:
    success: bool
    id: str | None = None
    error: str = ""
