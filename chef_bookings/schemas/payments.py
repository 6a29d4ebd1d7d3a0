"""
Typed view of the metadata echoed back by Stripe on checkout completion.

Intake writes a ``purchase_kind`` discriminant into every session's metadata;
the reconciler resolves it once through ``parse_purchase``. Sessions created
before the discriminant existed carry only the reservation fields and are read
as reservation purchases.
"""

from datetime import date
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class ReservationPurchase(BaseModel):
    model_config = ConfigDict(extra="ignore")

    purchase_kind: Literal["reservation"] = "reservation"
    reservation_id: Optional[str] = None
    event_date: Optional[date] = None
    start_time: Optional[str] = None
    package: Optional[str] = None
    package_title: Optional[str] = None
    guests: Optional[int] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address_line1: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    diet_notes: Optional[str] = None

    @property
    def full_name(self) -> Optional[str]:
        name = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return name or None


class GiftCardPurchase(BaseModel):
    model_config = ConfigDict(extra="ignore")

    purchase_kind: Literal["gift_card"]
    amount_cents: int = Field(..., gt=0)
    buyer_name: Optional[str] = None
    buyer_email: Optional[str] = None
    recipient_name: Optional[str] = None
    recipient_email: Optional[str] = None
    message: Optional[str] = None


class PopupPurchase(BaseModel):
    model_config = ConfigDict(extra="ignore")

    purchase_kind: Literal["popup_event"]
    event_id: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1)
    name: Optional[str] = None
    email: Optional[str] = None


Purchase = Annotated[
    Union[ReservationPurchase, GiftCardPurchase, PopupPurchase],
    Field(discriminator="purchase_kind"),
]

_purchase_adapter: TypeAdapter[Any] = TypeAdapter(Purchase)


def parse_purchase(metadata: dict[str, Any]) -> Union[ReservationPurchase, GiftCardPurchase, PopupPurchase]:
    """
    Resolve session metadata into one typed purchase.

    Stripe stores every metadata value as a string and intake writes ``""``
    for absent values, so empty strings are treated as missing.

    Raises:
        pydantic.ValidationError: If the metadata does not fit its purchase kind
    """
    cleaned = {key: value for key, value in (metadata or {}).items() if value not in ("", None)}
    cleaned.setdefault("purchase_kind", "reservation")
    return _purchase_adapter.validate_python(cleaned)
