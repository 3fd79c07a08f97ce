#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path


def _ensure_src_on_path() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    src = repo_root / "src"
    if str(src) not in sys.path:
        sys.path.insert(0, str(src))


def _read_text(path: str) -> str:
    p = Path(path)
    if not p.exists():
        raise SystemExit(f"File not found: {p}")
    return p.read_text(encoding="utf-8", errors="replace")


def _emit(payload: dict, out: str) -> None:
    out_json = json.dumps(payload, indent=2, sort_keys=False)
    if out:
        Path(out).write_text(out_json, encoding="utf-8")
    else:
        print(out_json)


def main(argv: list[str] | None = None) -> int:
    _ensure_src_on_path()

    from partner_central_export.portal.reservations import (
        parse_adjustment,
        parse_payout_summary,
        parse_total_results,
    )

    p = argparse.ArgumentParser(
        prog="parse_portal_text_snapshot",
        description=(
            "Parse Playwright-saved portal text snapshots (from data/debug/*.txt) into structured JSON.\n"
            "This is intended for debugging parsing regressions offline (no Playwright, no secrets)."
        ),
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    dialog = sub.add_parser("dialog", help="Parse a reservation detail dialog snapshot (payout + adjustment)")
    dialog.add_argument("--file", required=True, help="Path to a debug .txt file captured with the dialog open")
    dialog.add_argument("--out", default="", help="Optional output JSON path (otherwise prints to stdout)")

    results = sub.add_parser("results", help="Read the 'of N Results' count from a reservations page snapshot")
    results.add_argument("--file", required=True, help="Path to a debug .txt file captured from the reservations page")
    results.add_argument("--out", default="", help="Optional output JSON path (otherwise prints to stdout)")

    args = p.parse_args(argv)
    body_text = _read_text(args.file)

    if args.cmd == "dialog":
        payout = parse_payout_summary(body_text)
        adjustment = parse_adjustment(body_text)
        _emit(
            {
                "payout": payout.model_dump() if payout else None,
                "adjustment": adjustment.model_dump() if adjustment else None,
            },
            args.out,
        )
        return 0

    if args.cmd == "results":
        _emit({"total_results": parse_total_results(body_text)}, args.out)
        return 0

    raise AssertionError("Unhandled command")


if __name__ == "__main__":
    raise SystemExit(main())
