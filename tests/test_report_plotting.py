from __future__ import annotations

import json
import math
from pathlib import Path

import numpy as np
import pandas as pd

from ndi_risk_eval.discrimination import evaluate_score
from ndi_risk_eval.plotting import plot_roc_curves, plot_tertile_odds_ratios
from ndi_risk_eval.report import (
    _json_safe,
    format_report,
    odds_ratio_table,
    performance_table,
    write_outputs,
)
from ndi_risk_eval.tertiles import tertile_odds_ratios


def _toy_result(cfg):
    rng = np.random.default_rng(3)
    y = rng.integers(0, 2, 60)
    df = pd.DataFrame({"score": y + rng.normal(0, 1, 60), "ndi": y})
    return evaluate_score(df, name="toy", score_col="score", outcome_col="ndi", cfg=cfg)


def test_plots_are_written(tmp_path: Path, cfg, tertile_frame):
    res = _toy_result(cfg)
    roc_png = plot_roc_curves([res], tmp_path / "roc.png", dpi=60)
    assert roc_png.exists() and roc_png.stat().st_size > 0

    cells = {"Low Risk": (20, 2), "Moderate Risk": (20, 5), "High Risk": (20, 10)}
    ors = tertile_odds_ratios(tertile_frame(cells), tertile_col="tertile", outcome_col="ndi")
    or_png = plot_tertile_odds_ratios(odds_ratio_table({"toy": ors}), tmp_path / "sub" / "or.png", dpi=60)
    assert or_png.exists()


def test_forest_plot_without_estimates_still_writes(tmp_path: Path):
    tbl = pd.DataFrame(
        {
            "composite": ["a"],
            "tertile": ["Low Risk"],
            "odds_ratio": [float("nan")],
            "or_ci_lo": [float("nan")],
            "or_ci_hi": [float("nan")],
            "is_reference": [True],
        }
    )
    out = plot_tertile_odds_ratios(tbl, tmp_path / "or.png", dpi=60)
    assert out.exists()


def test_performance_table_columns(cfg):
    tbl = performance_table([_toy_result(cfg)])
    assert len(tbl) == 1
    assert {"auc", "auc_ci_lo", "auc_ci_hi", "cutpoint", "sensitivity", "specificity"} <= set(tbl.columns)
    assert performance_table([]).empty


def test_json_safe_replaces_non_finite_and_numpy_types():
    payload = {"a": float("nan"), "b": np.int64(3), "c": [np.float64(1.5), np.inf], "d": np.bool_(True), "e": pd.NA}
    out = _json_safe(payload)
    assert out == {"a": None, "b": 3, "c": [1.5, None], "d": True, "e": None}
    json.dumps(out, allow_nan=False)


def test_format_report_sections():
    summary = {
        "run": {"run_id": "r1", "input": "x.csv"},
        "cohort": {
            "n_rows": 10,
            "ndi_threshold": 85.0,
            "domains": ["cognitive", "language", "motor"],
            "prevalence": [{"outcome": "ndi", "n_evaluable": 10, "n_impaired": 4, "prevalence": 0.4}],
        },
        "discrimination": [],
        "skipped": [{"composite": "unsupervised", "reason": "need both outcome classes"}],
        "tertiles": {
            "supervised": {
                "odds_ratios": [
                    {"tertile": "Low Risk", "n": 3, "events": 1, "event_rate": 1 / 3, "status": "PASS", "is_reference": True},
                    {
                        "tertile": "High Risk",
                        "n": 4,
                        "events": 3,
                        "event_rate": 0.75,
                        "status": "PASS",
                        "is_reference": False,
                        "odds_ratio": 6.0,
                        "or_ci_lo": 0.3,
                        "or_ci_hi": 120.0,
                        "p_value": 0.0004,
                    },
                    {"tertile": "Moderate Risk", "n": 0, "events": 0, "event_rate": float("nan"), "status": "EMPTY", "is_reference": False, "reason": "no participants"},
                ],
                "trend": {"status": "SKIP"},
                "alignment": {"consistent": False},
            }
        },
    }
    text = format_report(summary)
    assert "any domain score < 85.0" in text
    assert "unsupervised: SKIPPED" in text
    assert "OR = 1 (reference)" in text
    assert "OR = 6.00 (0.30-120.00), p = <0.001" in text
    assert "NDI=3    (75.0%)" in text
    assert "EMPTY: no participants" in text
    assert "WARNING: tertile labels" in text


def test_write_outputs_creates_every_file(tmp_path: Path, cfg):
    res = _toy_result(cfg)
    paths = write_outputs(
        tmp_path,
        results=[res],
        or_tables={},
        domain_rows=[],
        summary={"x": math.nan},
        report_text="hello\n",
    )
    for p in paths.values():
        assert p.exists()
    payload = json.loads(paths["summary_json"].read_text(encoding="utf-8"))
    assert payload["x"] is None
    assert "performance_csv" in payload["outputs"]
