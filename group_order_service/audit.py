"""Structured audit logging for the group-order service.

Rules:
- Never log session tokens beyond a short preview
- Never log customer details, only counts and flags
- Structured JSON format
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone


logger = logging.getLogger("group_order.audit")


def _emit(event: str, **kwargs) -> None:
    """Emit a structured audit log entry."""
    entry = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": "group-order-service",
        "event": event,
        **kwargs,
    }
    logger.info(json.dumps(entry, default=str))


def log_lookup_received(request_id: str, group_uuid: str | None, trace_id: str) -> None:
    _emit(
        "lookup_received",
        request_id=request_id,
        group_uuid=group_uuid,
        trace_id=trace_id,
    )


def log_lookup_completed(
    request_id: str,
    trace_id: str,
    success: bool,
    item_count: int,
    customer_field_count: int,
    duration_ms: float,
    error: str | None = None,
) -> None:
    _emit(
        "lookup_completed",
        request_id=request_id,
        trace_id=trace_id,
        success=success,
        item_count=item_count,
        customer_field_count=customer_field_count,
        duration_ms=round(duration_ms, 2),
        error=error,
    )


def log_sid_updated(sid_preview: str, expires_at: str | None, source: str) -> None:
    _emit(
        "sid_updated",
        sid_preview=sid_preview,
        expires_at=expires_at,
        source=source,
    )
