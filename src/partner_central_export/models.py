from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Iterator, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from .util.dates import DateEncoding, normalize_date


NOT_AVAILABLE = "N/A"


class ReservationStatus(str, Enum):
    ACTIVE = "Active"
    CANCELLED = "Cancelled"


class CardDetails(BaseModel):
    kind: Literal["card"] = "card"
    number: str = Field(repr=False)
    expiry: str = Field(default="", repr=False)
    cvv: str = Field(default="", repr=False)

    @classmethod
    def placeholder(cls) -> "CardDetails":
        return cls(number=NOT_AVAILABLE, expiry=NOT_AVAILABLE, cvv=NOT_AVAILABLE)

    @property
    def is_placeholder(self) -> bool:
        return self.number == NOT_AVAILABLE


class PayoutSummary(BaseModel):
    kind: Literal["payout"] = "payout"
    total_guest_payment: str = ""
    expedia_compensation: str = ""
    total_payout: str = ""


class Adjustment(BaseModel):
    kind: Literal["charge", "refund"]
    amount: str
    reason: str = ""

    @property
    def label(self) -> str:
        return "Amount to charge" if self.kind == "charge" else "Amount to refund"


PaymentDetails = Union[CardDetails, PayoutSummary]


class ReservationRecord(BaseModel):
    reservation_id: str
    guest_name: str = ""
    confirmation_code: str = ""
    check_in_date: str = ""
    check_out_date: str = ""
    room_type: str = ""
    booking_amount: str = ""
    booked_date: str = ""

    payment_details: Optional[PaymentDetails] = Field(default=None, discriminator="kind")
    adjustment: Optional[Adjustment] = None
    status: ReservationStatus = ReservationStatus.ACTIVE

    @property
    def has_card_info(self) -> bool:
        d = self.payment_details
        return isinstance(d, CardDetails) and not d.is_placeholder and bool(d.number)

    @property
    def has_payment_info(self) -> bool:
        return isinstance(self.payment_details, PayoutSummary)

    @property
    def card(self) -> Optional[CardDetails]:
        return self.payment_details if isinstance(self.payment_details, CardDetails) else None

    @property
    def payout(self) -> Optional[PayoutSummary]:
        return self.payment_details if isinstance(self.payment_details, PayoutSummary) else None


class RecordSet:
    """
    Run-wide dedup set + ordered accumulator, shared across pages and chunks.

    An id is only marked as seen when its record is accepted, so a row that was skipped
    (e.g. its dialog never opened) can still be picked up from a later page or overlapping chunk.
    """

    def __init__(self) -> None:
        self._records: list[ReservationRecord] = []
        self._seen: set[str] = set()

    def __contains__(self, reservation_id: object) -> bool:
        return reservation_id in self._seen

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[ReservationRecord]:
        return iter(self._records)

    def add(self, record: ReservationRecord) -> bool:
        if record.reservation_id in self._seen:
            return False
        self._seen.add(record.reservation_id)
        self._records.append(record)
        return True

    @property
    def records(self) -> list[ReservationRecord]:
        return list(self._records)


class ScrapeRequest(BaseModel):
    """
    Inbound trigger: credentials plus a month-first (MM/DD/YYYY) date range.
    """

    email: str
    password: str = Field(repr=False)
    start_date: str
    end_date: str
    property_name: Optional[str] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def _validate_date(cls, v: str) -> str:
        normalize_date(v, DateEncoding.MONTH_FIRST)  # raises FormatError (a ValueError)
        return v.strip()

    @field_validator("property_name")
    @classmethod
    def _blank_property_is_none(cls, v: Optional[str]) -> Optional[str]:
        v = (v or "").strip()
        return v or None

    @model_validator(mode="after")
    def _validate_range(self) -> "ScrapeRequest":
        if not self.email.strip() or not self.password:
            raise ValueError("email and password are required")
        start = normalize_date(self.start_date, DateEncoding.MONTH_FIRST)
        end = normalize_date(self.end_date, DateEncoding.MONTH_FIRST)
        if end.value < start.value:
            raise ValueError(f"end_date {self.end_date} is before start_date {self.start_date}")
        return self


class ChunkFailure(BaseModel):
    start: str
    end: str
    error: str


class RunResult(BaseModel):
    """Success/failure envelope handed back to whoever triggered the run."""

    success: bool
    message: str
    record_count: int = 0
    output_path: Optional[Path] = None
    partial: bool = False
    failed_chunks: list[ChunkFailure] = Field(default_factory=list)
    records: list[ReservationRecord] = Field(default_factory=list, repr=False)

    def envelope(self) -> dict:
        return {
            "success": self.success,
            "message": self.message,
            "record_count": self.record_count,
            "output_path": str(self.output_path) if self.output_path else None,
            "partial": self.partial,
            "failed_chunks": [f.model_dump() for f in self.failed_chunks],
        }
