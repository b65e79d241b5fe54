"""Group Order Service: FastAPI application.

POST /group-orders/lookup   Extract order, fare and customer data from a share link.
POST /sid                   Replace the provider session token.
GET  /sid                   Show a preview of the current token.
GET  /health                Liveness check.
"""

from __future__ import annotations

import logging
import math
import time
import uuid
from datetime import datetime, timezone

from fastapi import FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from opentelemetry.propagate import extract

from group_order_service.audit import log_lookup_completed, log_lookup_received
from group_order_service.config import config
from group_order_service.credentials import SessionCredentialStore
from group_order_service.models import ExtractedOrder, LookupRequest, SidUpdateRequest
from group_order_service.pipeline import extract_group_uuid, get_order_details
from group_order_service.telemetry import get_tracer, init_telemetry, shutdown_telemetry, trace_id_hex

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=getattr(logging, config.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
)
logger = logging.getLogger("group_order_service")

PLACEHOLDER_LINK = "your-group-order-id"
LEGACY_HOST = "https://eats.uber.com"
# Shorter tokens are treated as typos and ignored.
MIN_CALLER_SID_LENGTH = 20

# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Group Order Service",
    version="0.1.0",
    description="Uber Eats group-order extraction and fare reconciliation",
)
app.state.credentials = None
app.state.transport = None


@app.on_event("startup")
async def _startup() -> None:
    init_telemetry()
    store = _credentials()
    logger.info("Group order service started, sid=%s, otel=%s", store.preview, bool(config.otel_endpoint))


@app.on_event("shutdown")
async def _shutdown() -> None:
    shutdown_telemetry()


def _credentials() -> SessionCredentialStore:
    """The process-wide credential store, created on first use."""
    if app.state.credentials is None:
        app.state.credentials = SessionCredentialStore.from_config(config)
    return app.state.credentials


# ---------------------------------------------------------------------------
# Auth dependency and request rules
# ---------------------------------------------------------------------------


def _verify_api_key(x_api_key: str = Header(default="")) -> None:
    if config.api_key and x_api_key != config.api_key:
        raise HTTPException(status_code=401, detail="Invalid or missing API key")


def _minutes(hhmm: str) -> int:
    hours, minutes = hhmm.split(":")
    return int(hours) * 60 + int(minutes)


def check_service_window(window: tuple[str, str] | None, now: datetime | None = None) -> None:
    """Reject requests outside the configured UTC service hours."""
    if window is None:
        return
    now = now or datetime.now(timezone.utc)
    start, end = window
    current = now.hour * 60 + now.minute
    if current < _minutes(start) or current > _minutes(end):
        raise HTTPException(
            status_code=400,
            detail=f"Service is only available between {start} and {end} UTC. "
            "Please try again during service hours.",
        )


def check_order_rules(order: ExtractedOrder) -> None:
    """Caller-side sanity and subtotal bounds on a successful lookup."""
    if not math.isfinite(order.subtotal):
        raise HTTPException(
            status_code=400,
            detail="Failed to extract order subtotal. Please check the Uber Eats link and try again.",
        )
    if order.subtotal <= 0 and not order.items:
        raise HTTPException(
            status_code=400,
            detail="No items found in the order. Please make sure the Uber Eats group order has items added.",
        )

    minimum, maximum = config.min_order_subtotal, config.max_order_subtotal
    if minimum is not None and order.subtotal < minimum:
        raise HTTPException(
            status_code=400,
            detail=f"Your cart subtotal is ${order.subtotal:.2f}, but the minimum order amount is "
            f"${minimum:g}. Please add ${minimum - order.subtotal:.2f} more to your cart to proceed.",
        )
    if maximum is not None and order.subtotal > maximum:
        raise HTTPException(
            status_code=400,
            detail=f"Your cart subtotal is ${order.subtotal:.2f}, but the maximum order amount is "
            f"${maximum:g}. Please remove ${order.subtotal - maximum:.2f} from your cart to proceed.",
        )


def order_payload(order: ExtractedOrder) -> dict:
    """Group the flat order into the response sections."""
    coords = order.delivery_coordinates
    return {
        "pricing": {
            "subtotal": order.subtotal,
            "fees": order.fees,
            "taxes": order.taxes,
            "delivery_fee": order.delivery_fee,
            "service_fee": order.service_fee,
            "tip": order.tip,
            "small_order_fee": order.small_order_fee,
            "adjustments_fee": order.adjustments_fee,
            "pickup_fee": order.pickup_fee,
            "other_fees": order.other_fees,
            "total": order.total,
            "currency": order.currency,
        },
        "uber_one": {
            "has_uber_one": order.has_uber_one,
            "uber_one_benefit": order.uber_one_benefit,
            "is_uber_one_eligible": order.is_uber_one_eligible,
        },
        "restaurant": {
            "name": order.restaurant_name,
            "address": order.restaurant_address,
            "hours": order.restaurant_hours,
            "image_url": order.restaurant_image_url,
        },
        "delivery": {
            "address": order.delivery_address,
            "instructions": order.delivery_instructions,
            "coordinates": coords.model_dump() if coords else None,
        },
        "items": [item.model_dump() for item in order.items],
        "customer_details": order.customer_details,
    }


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@app.get("/health")
async def health():
    return {"status": "ok", "sid_configured": bool(_credentials().token)}


@app.post("/group-orders/lookup")
async def lookup_group_order(
    body: LookupRequest,
    request: Request,
    x_api_key: str = Header(default=""),
    x_request_id: str = Header(default=""),
):
    """Resolve a group-order share link into order details."""
    _verify_api_key(x_api_key)
    check_service_window(config.service_window)

    url = body.url.strip()
    if not url:
        raise HTTPException(status_code=400, detail="URL is required")
    if PLACEHOLDER_LINK in url:
        raise HTTPException(
            status_code=400,
            detail="Please provide a real Uber Eats group order link, not a placeholder",
        )

    credentials = _credentials()
    if body.sid and len(body.sid) >= MIN_CALLER_SID_LENGTH:
        credentials.update(body.sid, source="lookup_request")
    url = url.replace(LEGACY_HOST, config.uber_base_url)

    await credentials.ensure_valid()
    if await credentials.test_auth():
        logger.info("SID probe passed")
    else:
        logger.warning("SID probe failed, proceeding anyway")

    tracer = get_tracer()
    ctx = extract(carrier=dict(request.headers))

    with tracer.start_as_current_span("order.handle_lookup", context=ctx) as span:
        request_id = x_request_id or str(uuid.uuid4())
        trace_id = trace_id_hex(span)
        span.set_attribute("request.id", request_id)

        log_lookup_received(request_id, extract_group_uuid(url), trace_id)
        t0 = time.perf_counter()

        order = await get_order_details(url, credentials, transport=app.state.transport)

        duration_ms = (time.perf_counter() - t0) * 1000.0
        log_lookup_completed(
            request_id=request_id,
            trace_id=trace_id,
            success=order.success,
            item_count=len(order.items),
            customer_field_count=len(order.customer_details),
            duration_ms=duration_ms,
            error=order.error,
        )

        if not order.success:
            return JSONResponse(
                status_code=400,
                content={
                    "success": False,
                    "message": order.error
                    or "Failed to fetch order details. Please check the link and try again.",
                },
            )

        check_order_rules(order)
        span.set_attribute("response.item_count", len(order.items))

        return {
            "success": True,
            "message": "Order details extracted",
            "request_id": request_id,
            "trace_id": trace_id,
            "data": order_payload(order),
        }


@app.post("/sid")
async def update_sid(body: SidUpdateRequest, x_api_key: str = Header(default="")):
    _verify_api_key(x_api_key)
    if not body.sid.strip():
        raise HTTPException(status_code=400, detail="sid is required")
    credentials = _credentials()
    credentials.update(body.sid.strip(), source="api")
    return {"success": True, "sid_preview": credentials.preview}


@app.get("/sid")
async def current_sid(x_api_key: str = Header(default="")):
    _verify_api_key(x_api_key)
    credentials = _credentials()
    return {
        "success": True,
        "sid_preview": credentials.preview,
        "expires_at": credentials.expires_at.isoformat() if credentials.expires_at else None,
        "is_expired": credentials.is_expired(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


# ---------------------------------------------------------------------------
# Error handler
# ---------------------------------------------------------------------------


@app.exception_handler(Exception)
async def _global_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "error": str(exc)},
    )
