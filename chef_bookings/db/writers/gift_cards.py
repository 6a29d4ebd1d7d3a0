import secrets
from typing import Any, Optional

import structlog
from sqlalchemy import select, update
from sqlalchemy.engine import Connection

from chef_bookings.db.writers._upsert import dialect_insert
from chef_bookings.errors import ConflictError, GiftCardNotFound
from chef_bookings.models.gift_cards import GiftCard, GiftCardStatus
from chef_bookings.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"  # no 0/O/1/I
MAX_CODE_ATTEMPTS = 5


def generate_gift_code() -> str:
    """Return a random redemption code such as ``GIFT-7KQ2-MZ9D``."""
    groups = ["".join(secrets.choice(CODE_ALPHABET) for _ in range(4)) for _ in range(2)]
    return "GIFT-" + "-".join(groups)


def _card_by_payment(conn: Connection, payment_id: str) -> Optional[dict[str, Any]]:
    row = conn.execute(
        select(GiftCard).where(GiftCard.payment_correlation_id == payment_id)
    ).mappings().first()
    return dict(row) if row else None


def issue_gift_card(
    conn: Connection,
    payment_id: str,
    amount_cents: int,
    buyer: dict[str, Optional[str]],
    recipient: dict[str, Optional[str]],
    message: Optional[str] = None,
) -> tuple[dict[str, Any], bool]:
    """
    Mint exactly one gift card per payment.

    The insert is ``ON CONFLICT DO NOTHING``: a conflict on
    ``payment_correlation_id`` means the card already exists (redelivery or a
    concurrent handler), a conflict on ``code`` means a code collision and a new
    code is drawn.

    Args:
        conn: Active connection inside a transaction
        payment_id: Processor correlation id
        amount_cents: Face value in cents
        buyer: ``{"name": ..., "email": ...}``
        recipient: ``{"name": ..., "email": ...}``
        message: Optional gift message

    Returns:
        tuple: (card row, created) where created is False for a replay

    Raises:
        ConflictError: If no unique code could be allocated
    """
    existing = _card_by_payment(conn, payment_id)
    if existing:
        return existing, False

    for attempt in range(MAX_CODE_ATTEMPTS):
        stmt = (
            dialect_insert(conn, GiftCard)
            .values(
                code=generate_gift_code(),
                face_value_original_cents=amount_cents,
                face_value_remaining_cents=amount_cents,
                buyer_name=buyer.get("name"),
                buyer_email=buyer.get("email"),
                recipient_name=recipient.get("name"),
                recipient_email=recipient.get("email"),
                message=message,
                status=GiftCardStatus.ACTIVE.value,
                payment_correlation_id=payment_id,
                created_at=utc_now(),
            )
            .on_conflict_do_nothing()
        )
        inserted = conn.execute(stmt).rowcount == 1

        card = _card_by_payment(conn, payment_id)
        if card:
            if inserted:
                logger.info(
                    "gift_card_issued",
                    gift_card_id=card["id"],
                    payment_id=payment_id,
                    amount_cents=amount_cents,
                )
            return card, inserted

        logger.warning("gift_card_code_collision", payment_id=payment_id, attempt=attempt + 1)

    raise ConflictError("Could not allocate a unique gift card code")


def redeem_gift_card(conn: Connection, gift_card_id: int) -> None:
    """
    Mark an active gift card as fully redeemed.

    Raises:
        GiftCardNotFound: If the card does not exist or is already redeemed
    """
    result = conn.execute(
        update(GiftCard)
        .where(GiftCard.id == gift_card_id)
        .where(GiftCard.status == GiftCardStatus.ACTIVE.value)
        .values(
            status=GiftCardStatus.REDEEMED.value,
            face_value_remaining_cents=0,
            redeemed_at=utc_now(),
        )
    )
    if result.rowcount == 0:
        raise GiftCardNotFound(f"Active gift card {gift_card_id} not found")

    logger.info("gift_card_redeemed", gift_card_id=gift_card_id)
