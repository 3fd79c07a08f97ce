from __future__ import annotations

import os
import subprocess
import sys
from datetime import date, timedelta
from pathlib import Path
from typing import Optional

import pytest
from dotenv import dotenv_values

ROOT = Path(__file__).resolve().parents[1]


def _get_env_file() -> Optional[Path]:
    env_path = os.getenv("PORTAL_ENV_FILE")
    if env_path:
        return Path(env_path)

    default = ROOT / "portal.env"
    if default.exists():
        return default

    return None


def _skip_or_fail(reason: str) -> None:
    # Live portal tests need real credentials and should not fail local unit test runs by default.
    # To force failures (e.g. in a dedicated integration run), set REQUIRE_PORTAL_TESTS=1.
    if os.getenv("REQUIRE_PORTAL_TESTS") == "1":
        pytest.fail(reason)
    pytest.skip(reason)


def _load_env() -> tuple[dict[str, str], Optional[Path]]:
    env_file = _get_env_file()
    env = os.environ.copy()
    if env_file is not None and not env_file.exists():
        _skip_or_fail(f"Env file not found: {env_file}")
    if env_file is not None:
        for key, value in dotenv_values(env_file).items():
            if value is None or key in env:
                continue
            env[key] = value

    if not env.get("PORTAL_EMAIL") or not env.get("PORTAL_PASSWORD"):
        _skip_or_fail("Missing PORTAL_EMAIL/PORTAL_PASSWORD.")
    if not env.get("GMAIL_IMAP_USER") or not env.get("GMAIL_IMAP_APP_PASSWORD"):
        _skip_or_fail("Missing Gmail IMAP creds (set GMAIL_IMAP_USER + GMAIL_IMAP_APP_PASSWORD).")
    return env, env_file


def _run_cmd(args: list[str], *, env: dict[str, str]) -> subprocess.CompletedProcess:
    timeout = int(os.getenv("PORTAL_SMOKE_TIMEOUT", "1800"))
    return subprocess.run(args, cwd=ROOT, env=env, timeout=timeout)


@pytest.mark.portal
def test_preflight_and_short_scrape(tmp_path: Path) -> None:
    env, env_file = _load_env()

    cmd_base = [sys.executable, "-m", "partner_central_export"]
    if env_file:
        cmd_base += ["--env-file", str(env_file)]

    assert _run_cmd(cmd_base + ["preflight"], env=env).returncode == 0

    end = date.today() - timedelta(days=1)
    start = end - timedelta(days=int(os.getenv("PORTAL_SMOKE_DAYS", "2")) - 1)
    range_args = ["--start-date", start.strftime("%m/%d/%Y"), "--end-date", end.strftime("%m/%d/%Y")]

    assert _run_cmd(cmd_base + ["plan-chunks"] + range_args, env=env).returncode == 0

    scrape_cmd = cmd_base + ["scrape", *range_args, "--out-dir", str(tmp_path)]
    prop = env.get("PORTAL_SMOKE_PROPERTY")
    if prop:
        scrape_cmd += ["--property", prop]
    result = _run_cmd(scrape_cmd, env=env)

    assert result.returncode == 0
    assert list(tmp_path.glob("reservations_*.xlsx"))
