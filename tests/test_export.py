from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from openpyxl import load_workbook

from partner_central_export.export import COLUMNS, SHEET_TITLE, ReportExporter, export_filename
from partner_central_export.models import (
    Adjustment,
    CardDetails,
    PayoutSummary,
    ReservationRecord,
    ReservationStatus,
)


FIXED_NOW = datetime(2024, 3, 14, 10, 30, 15, 123000, tzinfo=timezone.utc)


def test_export_filename_replaces_colons_and_dots() -> None:
    assert export_filename(FIXED_NOW) == "reservations_2024-03-14T10-30-15-123Z.xlsx"


def test_writes_fixed_columns_and_rows(tmp_path: Path) -> None:
    records = [
        ReservationRecord(
            reservation_id="R1",
            guest_name="Ann Lee",
            payment_details=CardDetails(number="4111", expiry="12/27", cvv="123"),
        ),
        ReservationRecord(
            reservation_id="R2",
            guest_name="Bo Kim\x0b",
            payment_details=PayoutSummary(total_guest_payment="$150.00", expedia_compensation="-$22.50", total_payout="$127.50"),
            adjustment=Adjustment(kind="refund", amount="$20.00", reason="Early departure"),
        ),
        ReservationRecord(reservation_id="R3", status=ReservationStatus.CANCELLED),
        ReservationRecord(reservation_id="R4", payment_details=CardDetails.placeholder()),
    ]

    path = ReportExporter(tmp_path / "out", clock=lambda: FIXED_NOW).write(records)

    assert path == tmp_path / "out" / "reservations_2024-03-14T10-30-15-123Z.xlsx"
    wb = load_workbook(path)
    assert wb.sheetnames == [SHEET_TITLE]
    rows = [[c.value for c in row] for row in wb[SHEET_TITLE].iter_rows()]

    assert rows[0] == [h for h, _ in COLUMNS]
    assert rows[0][0] == "Guest Name" and rows[0][-1] == "Status"
    header = rows[0]

    def cell(row: list, name: str):
        return row[header.index(name)]

    r1, r2, r3, r4 = rows[1:]
    assert cell(r1, "Card Number") == "4111"
    assert cell(r1, "Has Card Info") == "Yes"
    assert cell(r1, "Has Payment Info") == "No"

    assert cell(r2, "Guest Name") == "Bo Kim"
    assert cell(r2, "Total Payout") == "$127.50"
    assert cell(r2, "Has Payment Info") == "Yes"
    assert cell(r2, "Amount To Charge/Refund") == "Amount to refund: $20.00"
    assert cell(r2, "Reason") == "Early departure"

    assert cell(r3, "Status") == "Cancelled"
    assert cell(r3, "Card Number") in (None, "")

    assert cell(r4, "CVV") == "N/A"
    assert cell(r4, "Has Card Info") == "No"


def test_writes_header_only_for_no_records(tmp_path: Path) -> None:
    path = ReportExporter(tmp_path, clock=lambda: FIXED_NOW).write([])
    ws = load_workbook(path)[SHEET_TITLE]
    assert ws.max_row == 1
