"""Webhook ingestion: models, normalization and the HTTP server."""

from nahui.webhooks.models import RecordResult, WebhookEvent

__all__ = ["RecordResult", "WebhookEvent"]
