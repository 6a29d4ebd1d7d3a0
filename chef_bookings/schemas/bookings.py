from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class QuotePayload(BaseModel):
    """
    Schema for a price quote request.
    """

    package_id: str = Field("tasting", description="Package key")
    party_size: int = Field(..., description="Number of guests")
    addons: list[str] = Field(default_factory=list, description="Add-on keys")
    access_code: Optional[str] = Field(None, description="Code lowering the party floor")
    event_date: Optional[date] = Field(None, description="Day of the event (weekday rules)")


class BookingPayload(BaseModel):
    """
    Schema for submitting a private-chef booking. Contact and address fields are
    validated by the intake service so failures come back as typed 400 errors.
    """

    model_config = ConfigDict(populate_by_name=True)

    event_date: date = Field(..., alias="date", description="Event day (YYYY-MM-DD)")
    time: str = Field("18:00", pattern=r"^\d{2}:\d{2}$", description="Start time HH:MM")
    package_id: str = Field("tasting", description="Package key")
    party_size: int = Field(..., description="Number of guests")
    addons: list[str] = Field(default_factory=list)
    access_code: Optional[str] = None

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address_line1: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    notes: Optional[str] = Field(None, description="Dietary notes")

    recaptcha_token: Optional[str] = None


class GiftCardCheckoutPayload(BaseModel):
    amount: float = Field(..., description="Face value in whole dollars")
    buyer_name: Optional[str] = None
    buyer_email: Optional[str] = None
    recipient_name: Optional[str] = None
    recipient_email: Optional[str] = None
    message: Optional[str] = Field(None, max_length=500)


class PopupCheckoutPayload(BaseModel):
    quantity: int = Field(1, description="Seats to purchase")
    name: Optional[str] = None
    email: Optional[str] = None
