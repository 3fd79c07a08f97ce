from __future__ import annotations

import html as _html
import imaplib
import logging
import re
import time
from datetime import datetime, timedelta, timezone
from email import message_from_bytes
from email.message import Message
from email.utils import parsedate_to_datetime
from typing import Callable, Optional

from ..config import GmailImapConfig


logger = logging.getLogger(__name__)

PasscodeProvider = Callable[[], Optional[str]]

# Partner Central passcode emails phrase the code a few different ways.
_PREFERRED_RES: tuple[re.Pattern[str], ...] = (
    re.compile(r"verification\s+code[^0-9]{0,40}(\d{6,10})", re.I),
    re.compile(r"pass\s?code[^0-9]{0,40}(\d{6,10})", re.I),
    re.compile(r"one[-\s]?time[^0-9]{0,40}(\d{6,10})", re.I),
    re.compile(r"security\s+code[^0-9]{0,40}(\d{6,10})", re.I),
)


def mask_code(code: str) -> str:
    return f"{code[:2]}****{code[-2:]}" if len(code) >= 4 else "***"


def _safe_imap_logout(mail: Optional[imaplib.IMAP4_SSL]) -> None:
    if mail is None:
        return
    try:
        mail.close()
    except Exception:
        pass
    try:
        mail.logout()
    except Exception:
        pass


def _imap_connect_and_select(cfg: GmailImapConfig) -> imaplib.IMAP4_SSL:
    mail = imaplib.IMAP4_SSL(cfg.host, 993)
    mail.login(cfg.user, cfg.app_password)
    sel_status, _ = mail.select(cfg.folder)
    if sel_status != "OK":
        raise RuntimeError(f"IMAP select failed for folder={cfg.folder!r}: {sel_status}")
    return mail


def check_imap_connection(cfg: GmailImapConfig) -> int:
    """
    Log in, select the folder and return its message count. Raises on failure (used by `preflight`).
    """
    mail = _imap_connect_and_select(cfg)
    try:
        status, data = mail.search(None, "ALL")
        if status != "OK":
            raise RuntimeError(f"IMAP search failed: {status} {data}")
        return len(data[0].split()) if data and data[0] else 0
    finally:
        _safe_imap_logout(mail)


def poll_imap_for_passcode(
    cfg: GmailImapConfig,
    *,
    timeout_seconds: int = 120,
    poll_interval_seconds: int = 5,
    not_before: Optional[datetime] = None,
) -> Optional[str]:
    """
    Poll the inbox for a fresh Partner Central passcode email and return the 6-10 digit code.

    Only the newest `cfg.max_messages` messages are looked at, and only ones received after `not_before`
    (default: 2 minutes before polling started). Returns None when nothing turns up within the budget.
    """
    deadline = time.time() + timeout_seconds
    code_re = re.compile(cfg.code_regex)
    min_received_at = not_before or (datetime.now(timezone.utc) - timedelta(minutes=2))

    checked_msg_ids: set[bytes] = set()

    mail: Optional[imaplib.IMAP4_SSL] = None
    try:
        while True:
            try:
                # Reuse one IMAP session across polls (repeated logins can trip Gmail throttles).
                if mail is None:
                    mail = _imap_connect_and_select(cfg)
                else:
                    try:
                        mail.noop()
                    except Exception:
                        _safe_imap_logout(mail)
                        mail = _imap_connect_and_select(cfg)

                code = _try_fetch_code_once(
                    cfg,
                    mail=mail,
                    code_re=code_re,
                    min_received_at=min_received_at,
                    checked_msg_ids=checked_msg_ids,
                )
                if code:
                    return code
            except Exception:
                logger.debug("IMAP poll attempt failed; reconnecting.", exc_info=True)
                _safe_imap_logout(mail)
                mail = None

            if time.time() + poll_interval_seconds > deadline:
                break
            time.sleep(poll_interval_seconds)
    finally:
        _safe_imap_logout(mail)

    logger.warning("No passcode email found within %ss", timeout_seconds)
    return None


def make_passcode_provider(cfg: GmailImapConfig, *, timeout_seconds: int = 120) -> PasscodeProvider:
    """Bind IMAP settings into the zero-arg callable the authenticator expects."""

    def _provider() -> Optional[str]:
        return poll_imap_for_passcode(cfg, timeout_seconds=timeout_seconds)

    return _provider


def _try_fetch_code_once(
    cfg: GmailImapConfig,
    *,
    mail: imaplib.IMAP4_SSL,
    code_re: re.Pattern[str],
    min_received_at: datetime,
    checked_msg_ids: set[bytes],
) -> Optional[str]:
    sel_status, _ = mail.select(cfg.folder)
    if sel_status != "OK":
        raise RuntimeError(f"IMAP select failed for folder={cfg.folder!r}: {sel_status}")

    search_parts: list[str] = ["ALL"]
    if cfg.sender_hint:
        search_parts += ["FROM", f"\"{cfg.sender_hint}\""]
    if cfg.subject_hint:
        search_parts += ["SUBJECT", f"\"{cfg.subject_hint}\""]

    status, data = mail.search(None, *search_parts)
    if status != "OK":
        raise RuntimeError(f"IMAP search failed: {status} {data}")

    ids = data[0].split() if data and data[0] else []
    # Newest first, small window only.
    for msg_id in reversed(ids[-cfg.max_messages:]):
        if msg_id in checked_msg_ids:
            continue
        status, msg_data = mail.fetch(msg_id, "(RFC822)")
        if status != "OK" or not msg_data or not msg_data[0]:
            continue
        checked_msg_ids.add(msg_id)

        msg = message_from_bytes(msg_data[0][1])
        received_at = _best_effort_msg_datetime_utc(msg)
        if received_at is not None and received_at < min_received_at:
            continue

        code = _extract_code(_extract_best_effort_body(msg), preferred_res=_PREFERRED_RES, fallback_re=code_re)
        if not code:
            continue

        logger.info(
            "Fetched passcode from email (received_at=%s subject=%r code=%s)",
            received_at.isoformat() if received_at else "?",
            (msg.get("Subject") or "").strip(),
            mask_code(code),
        )
        return code

    return None


def _extract_best_effort_body(msg: Message) -> str:
    if msg.is_multipart():
        parts = []
        for part in msg.walk():
            if "attachment" in (part.get("Content-Disposition") or "").lower():
                continue
            if part.get_content_type() in ("text/plain", "text/html"):
                payload = part.get_payload(decode=True) or b""
                charset = part.get_content_charset() or "utf-8"
                try:
                    parts.append(payload.decode(charset, errors="replace"))
                except LookupError:
                    parts.append(payload.decode("utf-8", errors="replace"))
        return "\n".join(parts)

    payload = msg.get_payload(decode=True) or b""
    charset = msg.get_content_charset() or "utf-8"
    try:
        return payload.decode(charset, errors="replace")
    except LookupError:
        return payload.decode("utf-8", errors="replace")


def _best_effort_msg_datetime_utc(msg: Message) -> Optional[datetime]:
    raw_date = (msg.get("Date") or "").strip()
    if not raw_date:
        return None
    try:
        dt = parsedate_to_datetime(raw_date)
    except (TypeError, ValueError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _extract_code(
    body: str, *, preferred_res: tuple[re.Pattern[str], ...], fallback_re: re.Pattern[str]
) -> Optional[str]:
    # Strip HTML/CSS first so "#265179"-style colours and markup can't masquerade as a code.
    text = _strip_html_to_text(body)

    for r in preferred_res:
        m = r.search(text)
        if m:
            return m.group(1)

    for m in fallback_re.finditer(text):
        start = m.start(1)
        if start > 0 and text[start - 1] == "#":
            continue
        return m.group(1)

    return None


def _strip_html_to_text(s: str) -> str:
    s = re.sub(r"(?is)<style[^>]*>.*?</style>", " ", s)
    s = re.sub(r"(?is)<script[^>]*>.*?</script>", " ", s)
    s = re.sub(r"(?is)<!--.*?-->", " ", s)
    s = re.sub(r"(?is)<[^>]+>", " ", s)
    s = _html.unescape(s)
    s = re.sub(r"\s+", " ", s).strip()
    return s
