"""Payload normalization: inbound request -> WebhookEvent."""

from __future__ import annotations

import json
import math
from typing import Any

from aiohttp import web

from nahui.webhooks.models import WebhookEvent


# ---------------------------------------------------------------------------
# Field extraction
# ---------------------------------------------------------------------------

def _present(value: Any) -> bool:
    """Truthiness as webhook senders expect it: empty containers still count."""
    if value is None or value is False:
        return False
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value != 0 and not math.isnan(value)
    if isinstance(value, str):
        return value != ""
    return True


def _first(body: Any, *keys: str) -> Any:
    if not isinstance(body, dict):
        return None
    for key in keys:
        value = body.get(key)
        if _present(value):
            return value
    return None


def to_json(value: Any) -> str:
    """Compact JSON, the same shape a JS client would produce."""
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)


def extract_message(body: Any) -> str:
    """First of ``message``, ``text``, else the whole payload serialized."""
    value = _first(body, "message", "text")
    if value is None:
        return to_json(body)
    return value if isinstance(value, str) else to_json(value)


def extract_user_info(body: Any, ip: str | None, user_agent: str | None) -> Any:
    """First of ``user``, ``userInfo``, else request metadata."""
    value = _first(body, "user", "userInfo")
    if value is None:
        return {"ip": ip, "userAgent": user_agent}
    return value


# ---------------------------------------------------------------------------
# Request metadata
# ---------------------------------------------------------------------------

def client_ip(request: web.BaseRequest, trust_proxy: bool = False) -> str | None:
    if trust_proxy:
        xff = request.headers.get("X-Forwarded-For", "")
        if xff:
            return xff.split(",")[0].strip()
        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip.strip()
    return request.remote


def multi_to_dict(items: Any, join: str | None = None) -> dict[str, Any]:
    """Fold (key, value) pairs; repeats are joined with ``join`` or listed."""
    out: dict[str, Any] = {}
    for key, value in items:
        if key not in out:
            out[key] = value
        elif join is not None:
            out[key] = f"{out[key]}{join}{value}"
        elif isinstance(out[key], list):
            out[key].append(value)
        else:
            out[key] = [out[key], value]
    return out


def snapshot_request(request: web.BaseRequest, body: Any) -> dict[str, Any]:
    """Verbatim copy of the request for audit/debugging."""
    headers = multi_to_dict(((k.lower(), v) for k, v in request.headers.items()), ", ")
    return {
        "headers": headers,
        "body": body,
        "query": query_dict(request),
        "method": request.method,
        "url": request.path_qs,
    }


def query_dict(request: web.BaseRequest) -> dict[str, Any]:
    """Query string as a dict; repeated keys become lists."""
    return multi_to_dict(request.query.items())


def build_event(
    request: web.BaseRequest, body: Any, trust_proxy: bool = False
) -> WebhookEvent:
    return WebhookEvent(
        message=extract_message(body),
        user_info=extract_user_info(
            body,
            client_ip(request, trust_proxy),
            request.headers.get("User-Agent"),
        ),
        full_request=snapshot_request(request, body),
    )
