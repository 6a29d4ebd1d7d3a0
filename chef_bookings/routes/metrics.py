"""
Prometheus metrics endpoint.

Example:
    GET /metrics

    Response:
        # HELP chef_bookings_checkouts_total Total checkout handoffs requested from Stripe
        # TYPE chef_bookings_checkouts_total counter
        chef_bookings_checkouts_total{purchase_kind="reservation",status="success"} 12.0
        ...
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter()


@router.get("/metrics", response_class=Response)
async def metrics() -> Any:
    """
    Return metrics in Prometheus text-based exposition format.
    """
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
