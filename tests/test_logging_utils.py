from __future__ import annotations

import logging
from pathlib import Path

from ndi_risk_eval.logging_utils import configure_logging


def test_configure_logging_writes_run_file_and_reaches_module_loggers(tmp_path: Path):
    logger = configure_logging(log_dir=tmp_path / "logs", run_id="r1", name="ndi_risk_eval")
    logging.getLogger("ndi_risk_eval.tertiles").debug("fit detail")
    for h in logger.handlers:
        h.flush()

    text = (tmp_path / "logs" / "ndi_risk_eval_r1.log").read_text(encoding="utf-8")
    assert "Run r1 logging to" in text
    assert "ndi_risk_eval.tertiles | fit detail" in text


def test_configure_logging_replaces_handlers_on_rerun(tmp_path: Path):
    configure_logging(log_dir=tmp_path, run_id="a", name="ndi_risk_eval_rerun")
    logger = configure_logging(log_dir=tmp_path, run_id="b", name="ndi_risk_eval_rerun")
    assert len(logger.handlers) == 2
    assert logger.propagate is False
    levels = sorted(h.level for h in logger.handlers)
    assert levels == [logging.DEBUG, logging.INFO]
