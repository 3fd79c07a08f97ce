from __future__ import annotations

import pytest
from pydantic import ValidationError

from partner_central_export.models import (
    CardDetails,
    PayoutSummary,
    RecordSet,
    ReservationRecord,
    RunResult,
    ScrapeRequest,
)


def test_record_set_keeps_first_copy() -> None:
    rs = RecordSet()
    assert rs.add(ReservationRecord(reservation_id="R1", guest_name="first"))
    assert not rs.add(ReservationRecord(reservation_id="R1", guest_name="second"))
    assert len(rs) == 1
    assert "R1" in rs
    assert [r.guest_name for r in rs] == ["first"]


def test_record_set_records_is_a_copy() -> None:
    rs = RecordSet()
    rs.add(ReservationRecord(reservation_id="R1"))
    rs.records.clear()
    assert len(rs) == 1


def test_payment_details_discriminator_round_trips() -> None:
    r = ReservationRecord(
        reservation_id="R1",
        payment_details={"kind": "payout", "total_guest_payment": "$1.00", "total_payout": "$0.85"},
    )
    assert isinstance(r.payment_details, PayoutSummary)
    again = ReservationRecord.model_validate(r.model_dump())
    assert again == r


def test_card_fields_are_not_in_repr() -> None:
    r = ReservationRecord(reservation_id="R1", payment_details=CardDetails(number="4111111111111111", cvv="999"))
    assert "4111111111111111" not in repr(r)
    assert "999" not in repr(r)


def test_scrape_request_validates_dates() -> None:
    req = ScrapeRequest(email="a@b.c", password="pw", start_date=" 1/5/2024", end_date="01/06/2024", property_name=" ")
    assert req.start_date == "1/5/2024"
    assert req.property_name is None

    with pytest.raises(ValidationError):
        ScrapeRequest(email="a@b.c", password="pw", start_date="2024-01-05", end_date="01/06/2024")
    with pytest.raises(ValidationError):
        ScrapeRequest(email="a@b.c", password="pw", start_date="01/06/2024", end_date="01/05/2024")
    with pytest.raises(ValidationError):
        ScrapeRequest(email="", password="pw", start_date="01/05/2024", end_date="01/06/2024")


def test_password_not_in_repr() -> None:
    req = ScrapeRequest(email="a@b.c", password="hunter2", start_date="01/05/2024", end_date="01/06/2024")
    assert "hunter2" not in repr(req)


def test_envelope_omits_records() -> None:
    res = RunResult(success=True, message="ok", record_count=1, records=[ReservationRecord(reservation_id="R1")])
    env = res.envelope()
    assert env == {
        "success": True,
        "message": "ok",
        "record_count": 1,
        "output_path": None,
        "partial": False,
        "failed_chunks": [],
    }
