from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, Optional

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from .models import ReservationRecord


logger = logging.getLogger(__name__)

SHEET_TITLE = "Reservations"

_ILLEGAL_XML_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]")


def _yes_no(flag: bool) -> str:
    return "Yes" if flag else "No"


COLUMNS: tuple[tuple[str, Callable[[ReservationRecord], str]], ...] = (
    ("Guest Name", lambda r: r.guest_name),
    ("Reservation ID", lambda r: r.reservation_id),
    ("Confirmation Code", lambda r: r.confirmation_code),
    ("Check-in Date", lambda r: r.check_in_date),
    ("Check-out Date", lambda r: r.check_out_date),
    ("Room Type", lambda r: r.room_type),
    ("Booking Amount", lambda r: r.booking_amount),
    ("Booked Date", lambda r: r.booked_date),
    ("Card Number", lambda r: r.card.number if r.card else ""),
    ("Expiry Date", lambda r: r.card.expiry if r.card else ""),
    ("CVV", lambda r: r.card.cvv if r.card else ""),
    ("Has Card Info", lambda r: _yes_no(r.has_card_info)),
    ("Has Payment Info", lambda r: _yes_no(r.has_payment_info)),
    ("Total Guest Payment", lambda r: r.payout.total_guest_payment if r.payout else ""),
    ("Expedia Compensation", lambda r: r.payout.expedia_compensation if r.payout else ""),
    ("Total Payout", lambda r: r.payout.total_payout if r.payout else ""),
    ("Amount To Charge/Refund", lambda r: f"{r.adjustment.label}: {r.adjustment.amount}" if r.adjustment else ""),
    ("Reason", lambda r: r.adjustment.reason if r.adjustment else ""),
    ("Status", lambda r: r.status.value),
)


def export_filename(now: datetime) -> str:
    """reservations_2024-03-14T10-30-15-000Z.xlsx"""
    now = now.astimezone(timezone.utc)
    stamp = now.strftime("%Y-%m-%dT%H:%M:%S") + f".{now.microsecond // 1000:03d}Z"
    return f"reservations_{re.sub(r'[:.]', '-', stamp)}.xlsx"


class ReportExporter:
    def __init__(self, out_dir: str | Path, *, clock: Optional[Callable[[], datetime]] = None) -> None:
        self.out_dir = Path(out_dir)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def write(self, records: Iterable[ReservationRecord]) -> Path:
        records = list(records)
        workbook = Workbook()
        sheet = workbook.active
        sheet.title = SHEET_TITLE
        self._populate_sheet(sheet, records)

        self.out_dir.mkdir(parents=True, exist_ok=True)
        path = self.out_dir / export_filename(self._clock())
        workbook.save(path)
        logger.info("Saved %d reservations to %s", len(records), path)
        return path

    def _populate_sheet(self, sheet, records: list[ReservationRecord]) -> None:
        header_font = Font(bold=True, color="FFFFFF")
        header_fill = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
        header_alignment = Alignment(horizontal="center", vertical="center")
        thin_border = Border(
            left=Side(style="thin"),
            right=Side(style="thin"),
            top=Side(style="thin"),
            bottom=Side(style="thin"),
        )

        for col, (header, _) in enumerate(COLUMNS, 1):
            cell = sheet.cell(row=1, column=col, value=header)
            cell.font = header_font
            cell.fill = header_fill
            cell.alignment = header_alignment
            cell.border = thin_border

        for row, record in enumerate(records, 2):
            for col, (_, extractor) in enumerate(COLUMNS, 1):
                value = _ILLEGAL_XML_RE.sub("", extractor(record) or "")
                cell = sheet.cell(row=row, column=col, value=value)
                cell.border = thin_border

        sheet.freeze_panes = "A2"

        # Auto-adjust column widths from the first 100 rows.
        for col in range(1, len(COLUMNS) + 1):
            max_length = len(COLUMNS[col - 1][0])
            for row in range(2, min(len(records) + 2, 100)):
                cell_value = sheet.cell(row=row, column=col).value
                if cell_value:
                    max_length = max(max_length, len(str(cell_value)))
            sheet.column_dimensions[get_column_letter(col)].width = min(max_length + 2, 60)
