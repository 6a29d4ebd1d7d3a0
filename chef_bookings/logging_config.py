from __future__ import annotations

import logging
import sys
from typing import Any, Callable, MutableMapping, cast

import structlog

from chef_bookings.config import LOG_LEVEL

# Type alias for structlog processor
Processor = Callable[[Any, str, MutableMapping[str, Any]], Any]

SERVICE_NAME = "chef-bookings"

# Keys whose string values are masked before rendering
CONTACT_FIELD_SUFFIXES = ("email", "phone")


def add_service_name(_: Any, __: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def mask_contact_fields(_: Any, __: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    """
    Mask any ``*email``/``*phone`` value to its first character and domain.

    ``ada@example.com`` becomes ``a***@example.com``; phone numbers keep
    their last two digits.
    """
    for key, value in event_dict.items():
        if not isinstance(value, str) or not value or not key.endswith(CONTACT_FIELD_SUFFIXES):
            continue
        if "@" in value:
            local, _, domain = value.partition("@")
            event_dict[key] = f"{local[:1]}***@{domain}"
        else:
            event_dict[key] = f"***{value[-2:]}"
    return event_dict


def setup_logging() -> None:
    """
    Configures structured logging globally using structlog.

    In production (LOG_LEVEL=INFO): Outputs JSON for log aggregation
    In development (LOG_LEVEL=DEBUG): Outputs human-readable console format

    Every event carries ``service`` plus whatever the request middleware or
    the reconciler bound to contextvars (``request_id``, ``payment_id``,
    ``purchase_kind``).
    """
    logging.basicConfig(
        format="[%(asctime)s] %(levelname)s in %(name)s:%(lineno)d: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        level=LOG_LEVEL,
    )

    # Stripe and Resend SDKs log every HTTP call at INFO
    for noisy_logger in [
        "urllib3",
        "requests",
        "stripe",
        "httpx",
        "uvicorn.access",
    ]:
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)

    renderer: Processor = cast(
        Processor,
        (
            structlog.processors.JSONRenderer()
            if LOG_LEVEL == "INFO"
            else structlog.dev.ConsoleRenderer(colors=True)
        ),
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_service_name,
            structlog.processors.add_log_level,
            mask_contact_fields,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(LOG_LEVEL)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
