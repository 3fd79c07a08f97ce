from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import ValidationError

from .config import AppConfig, ScrapeConfig, load_config
from .logging_config import configure_logging
from .models import ScrapeRequest
from .portal.mfa import check_imap_connection
from .service import plan_chunks, run_export
from .util.dates import display_variants
from .util.debug_bundle import create_debug_bundle


logger = logging.getLogger("partner_central_export")

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_PARTIAL = 2


def _positive_int(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a whole number, got {raw!r}")
    if value < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {value}")
    return value


def _add_range_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--config", default="config.yaml", help="Path to YAML config (default: config.yaml)")
    p.add_argument("--start-date", required=True, help="First day to export, MM/DD/YYYY")
    p.add_argument("--end-date", required=True, help="Last day to export (inclusive), MM/DD/YYYY")
    p.add_argument(
        "--span-days",
        type=_positive_int,
        default=None,
        help="Days per date-picker window (default: scrape.chunk_span_days, 2). Larger windows risk portal timeouts.",
    )


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="partner_central_export")
    p.add_argument(
        "--env-file",
        default=".env",
        help="Path to a dotenv file (default: .env). If missing, env vars must already be set.",
    )

    sub = p.add_subparsers(dest="cmd", required=True)

    scrape = sub.add_parser("scrape", help="Export Partner Central reservations for a date range to a spreadsheet")
    _add_range_args(scrape)
    scrape.add_argument("--property", default="", help="Property name to open first (default: the landing property)")
    scrape.add_argument("--email", default="", help="Partner Central login (default: PORTAL_EMAIL)")
    scrape.add_argument("--password", default="", help="Partner Central password (default: PORTAL_PASSWORD)")
    scrape.add_argument("--headful", action="store_true", help="Run browser headful (debug)")
    scrape.add_argument("--slowmo-ms", type=int, default=0, help="Playwright slow motion in milliseconds (debug).")
    scrape.add_argument("--step-debug", action="store_true", help="Save step-by-step screenshots under data/debug/.")
    scrape.add_argument("--out-dir", default="", help="Where to write the spreadsheet (default: export.out_dir)")

    plan = sub.add_parser("plan-chunks", help="Print the date-picker windows a scrape would use, then exit")
    _add_range_args(plan)

    preflight = sub.add_parser("preflight", help="Check IMAP access for passcode emails (no browser)")
    preflight.add_argument("--config", default="config.yaml", help="Path to YAML config (default: config.yaml)")

    return p


def _configure_from(cfg: AppConfig) -> None:
    configure_logging(
        level=cfg.logging.level,
        file_path=cfg.logging.file_path,
        error_file_path=cfg.logging.error_file_path or None,
    )


def _apply_overrides(cfg: AppConfig, args: argparse.Namespace) -> AppConfig:
    scrape = cfg.scrape
    if args.span_days is not None:
        scrape = ScrapeConfig.model_validate({**scrape.model_dump(), "chunk_span_days": args.span_days})
    updates: dict = {"scrape": scrape}

    if args.cmd == "scrape":
        portal_updates: dict = {}
        if args.headful:
            portal_updates["headless"] = False
        if args.slowmo_ms:
            portal_updates["slow_mo_ms"] = args.slowmo_ms
        if args.step_debug:
            portal_updates["step_debug"] = True
        updates["portal"] = cfg.portal.model_copy(update=portal_updates)
        if args.out_dir:
            updates["export"] = cfg.export.model_copy(update={"out_dir": args.out_dir})

    return cfg.model_copy(update=updates)


def _build_request(cfg: AppConfig, args: argparse.Namespace) -> ScrapeRequest:
    return ScrapeRequest(
        email=getattr(args, "email", "") or cfg.portal.email,
        password=getattr(args, "password", "") or cfg.portal.password,
        start_date=args.start_date,
        end_date=args.end_date,
        property_name=getattr(args, "property", "") or None,
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    env_path = Path(args.env_file)
    if env_path.exists():
        load_dotenv(env_path)

    # Default logging: can be overridden once config is loaded.
    configure_logging(level=os.getenv("LOG_LEVEL", "INFO"))

    if args.cmd == "preflight":
        cfg = load_config(args.config)
        _configure_from(cfg)
        if not cfg.gmail_imap.configured:
            raise SystemExit("IMAP is not configured. Set GMAIL_IMAP_USER and GMAIL_IMAP_APP_PASSWORD in your .env.")
        try:
            n = check_imap_connection(cfg.gmail_imap)
        except Exception as e:
            raise RuntimeError(
                "IMAP preflight failed. Check GMAIL_IMAP_USER/GMAIL_IMAP_APP_PASSWORD and the folder setting."
            ) from e
        logger.info("IMAP preflight OK (user=%r folder=%r messages=%d)", cfg.gmail_imap.user, cfg.gmail_imap.folder, n)
        return EXIT_OK

    if args.cmd == "plan-chunks":
        cfg = _apply_overrides(load_config(args.config), args)
        _configure_from(cfg)
        try:
            request = ScrapeRequest(email="-", password="-", start_date=args.start_date, end_date=args.end_date)
        except ValidationError as e:
            raise SystemExit(f"Invalid date range: {e}")
        for chunk in plan_chunks(request, cfg):
            enc = cfg.scrape.ui_date_encoding
            print(
                f"{chunk.start} - {chunk.end}  "
                f"(portal: {display_variants(chunk.start, enc)[0]} - {display_variants(chunk.end, enc)[0]}, "
                f"{chunk.days} day(s))"
            )
        return EXIT_OK

    if args.cmd == "scrape":
        cfg = _apply_overrides(load_config(args.config), args)
        _configure_from(cfg)
        try:
            request = _build_request(cfg, args)
        except ValidationError as e:
            raise SystemExit(f"Invalid scrape request: {e}")
        logger.info("Starting export %s - %s (property=%r)", request.start_date, request.end_date, request.property_name)

        try:
            result = run_export(request, cfg)
        except Exception:
            logger.exception("Export crashed")
            result = None

        if result is not None:
            print(json.dumps(result.envelope(), indent=2))
        if result is not None and result.success:
            return EXIT_OK

        # Auto-bundle debug artifacts + logs for easy sharing.
        try:
            bundle = create_debug_bundle(
                debug_dir=cfg.portal.debug_dir,
                log_files=(cfg.logging.file_path, cfg.logging.error_file_path),
                out_dir="data",
                label="partial" if result is not None and result.partial else "failed",
            )
            logger.error("Wrote debug bundle: %s", bundle)
        except OSError:
            logger.debug("Failed to create debug bundle.", exc_info=True)

        if result is not None and result.partial:
            return EXIT_PARTIAL
        return EXIT_FAILED

    raise AssertionError("Unhandled command")


if __name__ == "__main__":
    sys.exit(main())
