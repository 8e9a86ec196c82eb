"""Run logging for clinical-applicability evaluations.

Each run gets `<log_dir>/ndi_risk_eval_<run_id>.log` at DEBUG (bootstrap
and fit details) and a console stream at INFO (AUCs, odds ratios, skipped
analyses). Modules such as `ndi_risk_eval.tertiles` log to children of the
`ndi_risk_eval` logger and reach both handlers.
"""

from __future__ import annotations

import logging
from pathlib import Path

LOG_FORMAT = "%(asctime)s.%(msecs)03d | %(levelname)s | %(name)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def configure_logging(*, log_dir: Path, run_id: str, name: str = "ndi_risk_eval") -> logging.Logger:
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / f"{name}_{run_id}.log"

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    # drop handlers left by an earlier run in this process
    if logger.handlers:
        for h in list(logger.handlers):
            logger.removeHandler(h)
            h.close()

    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)

    ch = logging.StreamHandler()
    ch.setLevel(logging.INFO)
    ch.setFormatter(fmt)
    logger.addHandler(ch)

    fh = logging.FileHandler(log_path, mode="a", encoding="utf-8")
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(fmt)
    logger.addHandler(fh)

    logger.debug("Run %s logging to %s", run_id, log_path)
    return logger
