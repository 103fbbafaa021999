# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

#src/komodoctl/logging/log.py

from __future__ import annotations

import logging
import os
from pathlib import Path
from datetime import datetime, timezone
import uuid

DEFAULT_LOG_DIR = Path.home() / ".komodoctl" / "logs"


def log_dir() -> Path:
    """KOMODOCTL_LOG_DIR when set, else ~/.komodoctl/logs."""
    env = os.environ.get("KOMODOCTL_LOG_DIR")
    return Path(env) if env else DEFAULT_LOG_DIR


def init_logging(
    *,
    base_dir: Path | None = None,
    name: str = "komodoctl",
    verbose: bool = False,
) -> tuple[logging.Logger, str, Path]:
    """
    Initializes:
      - a trace file per run, <name>-<utc ts>-<run_id>.log
      - returns run_id so observers can reuse it, and the log path so the
        event stream can be written next to it
    """
    run_id = str(uuid.uuid4())

    if base_dir is None:
        base_dir = log_dir()
    base_dir.mkdir(parents=True, exist_ok=True)

    ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    log_path = base_dir / f"{name}-{ts}-{run_id}.log"

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    # close handlers left by an earlier run in this process
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
    logger.propagate = False

    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)-7s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # File = FULL TRACE
    fh = logging.FileHandler(log_path, encoding="utf-8")
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(formatter)

    # Console = INFO by default, DEBUG when --verbose is passed
    ch = logging.StreamHandler()
    ch.setLevel(logging.DEBUG if verbose else logging.INFO)
    ch.setFormatter(formatter)

    logger.addHandler(fh)
    logger.addHandler(ch)

    logger.info("=== komodoctl run started ===")
    logger.debug("run_id=%s log_file=%s", run_id, log_path)

    return logger, run_id, log_path
