import logging
import os
from pathlib import Path
from typing import Optional


def configure_logging(
    level: str = "INFO",
    file_path: Optional[str] = None,
    error_file_path: Optional[str] = None,
) -> None:
    numeric_level = getattr(logging, (level or "INFO").upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler()]

    if file_path:
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))

    # Errors-only log next to the combined one, so failed runs are easy to scan.
    if error_file_path:
        err_path = Path(error_file_path)
        err_path.parent.mkdir(parents=True, exist_ok=True)
        err_handler = logging.FileHandler(err_path, encoding="utf-8")
        err_handler.setLevel(logging.ERROR)
        handlers.append(err_handler)

    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
        handlers=handlers,
        force=True,  # allow configure_logging() to be called multiple times (CLI does this)
    )

    # Reduce noise from chatty libraries
    for noisy in ("playwright", "urllib3"):
        logging.getLogger(noisy).setLevel(os.getenv("NOISY_LOG_LEVEL", "WARNING"))
