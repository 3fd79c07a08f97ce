from __future__ import annotations

import logging
import time
import zipfile
from pathlib import Path
from typing import Iterable, Optional


logger = logging.getLogger(__name__)


def create_debug_bundle(
    *,
    debug_dir: str,
    log_files: Iterable[str],
    out_dir: str = "data",
    label: str = "",
    extra_paths: Optional[Iterable[str]] = None,
) -> Path:
    """
    Zip the page snapshots and logs of a failed run into one shareable file.

    Never includes .env, config.yaml or exported spreadsheets (they carry credentials and card data).
    """
    out_root = Path(out_dir)
    out_root.mkdir(parents=True, exist_ok=True)

    stamp = time.strftime("%Y%m%d_%H%M%S")
    tag = (label or "").strip().lower().replace(" ", "_")
    tag_part = f"_{tag}" if tag else ""
    out_path = out_root / f"debug_bundle{tag_part}_{stamp}.zip"

    dbg = Path(debug_dir)

    def _add_file(z: zipfile.ZipFile, file_path: Path, arcname: str) -> None:
        try:
            if file_path.exists() and file_path.is_file():
                z.write(file_path, arcname=arcname)
        except OSError:
            logger.debug("Skipping %s in debug bundle.", file_path, exc_info=True)

    with zipfile.ZipFile(out_path, "w", compression=zipfile.ZIP_DEFLATED) as z:
        for raw in log_files:
            if raw:
                log = Path(raw)
                _add_file(z, log, arcname=log.name)

        if dbg.exists() and dbg.is_dir():
            for p in sorted(dbg.rglob("*")):
                if not p.is_file():
                    continue
                _add_file(z, p, arcname=str(Path("debug") / p.relative_to(dbg)))

        for raw in extra_paths or ():
            p = Path(raw)
            if p.is_file():
                _add_file(z, p, arcname=str(Path("extra") / p.name))
            elif p.is_dir():
                for f in sorted(p.rglob("*")):
                    if f.is_file():
                        _add_file(z, f, arcname=str(Path("extra") / p.name / f.relative_to(p)))

    return out_path
