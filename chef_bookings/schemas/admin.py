from datetime import date
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

EVENT_ID_PATTERN = r"^[a-z0-9][a-z0-9-]{0,63}$"
TIME_PATTERN = r"^\d{2}:\d{2}$"


class BlackoutCreatePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    day: date = Field(..., alias="date")
    reason: Optional[str] = None


class BlackoutBulkPayload(BaseModel):
    """
    Schema for bulk blackouts. Length limits are enforced by the writer so the
    error message matches single-request semantics.
    """

    dates: list[date] = Field(default_factory=list)
    reason: Optional[str] = None


class ManualBookingPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    day: date = Field(..., alias="date")
    name: Optional[str] = None
    email: Optional[str] = None
    notes: Optional[str] = None


class PopupEventCreatePayload(BaseModel):
    """
    Schema for creating a pop-up event. ``id`` is a URL-safe slug.
    """

    id: str = Field(..., pattern=EVENT_ID_PATTERN, description="URL-safe slug")
    title: str = Field(..., min_length=1)
    sku: Optional[str] = None
    location: Optional[str] = None
    event_date: Optional[date] = None
    start_time: Optional[str] = Field(None, pattern=TIME_PATTERN)
    end_time: Optional[str] = Field(None, pattern=TIME_PATTERN)
    price_cents: int = Field(0, ge=0)
    capacity: int = Field(..., ge=0)
    min_per_order: int = Field(1, ge=1)
    max_per_order: int = Field(4, ge=1)
    hidden: bool = False
    details: Optional[dict[str, Any]] = Field(
        None, description="images, notes, what_we_make, includes"
    )


class PopupEventUpdatePayload(BaseModel):
    """
    Schema for patching a pop-up event. All fields are optional; only the
    nullable catalogue fields may be cleared with an explicit null.
    Note: ``sold`` is managed through seat adjustments only.
    """

    title: Optional[str] = Field(None, min_length=1)
    sku: Optional[str] = None
    location: Optional[str] = None
    event_date: Optional[date] = None
    start_time: Optional[str] = Field(None, pattern=TIME_PATTERN)
    end_time: Optional[str] = Field(None, pattern=TIME_PATTERN)
    price_cents: Optional[int] = Field(None, ge=0)
    capacity: Optional[int] = Field(None, ge=0)
    min_per_order: Optional[int] = Field(None, ge=1)
    max_per_order: Optional[int] = Field(None, ge=1)
    hidden: Optional[bool] = None
    details: Optional[dict[str, Any]] = None

    @field_validator("title", "price_cents", "capacity", "min_per_order", "max_per_order", "hidden")
    @classmethod
    def reject_null(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("may be omitted but not null")
        return value


class SeatAdjustmentPayload(BaseModel):
    delta: int = Field(..., description="Seats to add (positive) or release (negative)")
