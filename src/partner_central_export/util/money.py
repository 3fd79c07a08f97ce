from __future__ import annotations

import re
from typing import Optional


# "$1,234.56", "-$18.00", "USD 120.00", "€99", "120.00"
_MONEY_RE = re.compile(r"[-+]?\s?(?:[A-Z]{3}\s?|[$€£¥]\s?)?\d[\d,]*(?:\.\d{1,2})?")


def find_first_money(text: str) -> Optional[str]:
    m = _MONEY_RE.search(text or "")
    return m.group(0).strip() if m else None


def money_after(label_pattern: str, text: str, *, window: int = 40) -> Optional[str]:
    """
    First money value within `window` characters after a label, e.g. money_after(r"Total\\s+payout", body).

    Dialog text is often read with element boundaries collapsed ("Total payout$102.00Reason..."),
    so this searches a short window instead of relying on line breaks.
    """
    m = re.search(label_pattern, text or "", re.I)
    if not m:
        return None
    tail = text[m.end() : m.end() + window].lstrip(" :\t\r\n")
    return find_first_money(tail)
