"""Report text and tabular exports."""

from __future__ import annotations

import json
import math
from pathlib import Path
from typing import Any, Dict, List, Mapping, Sequence

import numpy as np
import pandas as pd

from .discrimination import DiscriminationResult

PERFORMANCE_CSV = "performance_summary.csv"
ODDS_RATIO_CSV = "tertile_odds_ratios.csv"
REPORT_TXT = "clinical_applicability_report.txt"
SUMMARY_JSON = "clinical_applicability_summary.json"
DOMAIN_CSV = "domain_discrimination.csv"
ROC_CSV = "roc_coordinates.csv"


def _fmt(x: Any, digits: int = 3) -> str:
    try:
        v = float(x)
    except (TypeError, ValueError):
        return str(x)
    if not math.isfinite(v):
        return "NA"
    return f"{v:.{digits}f}"


def _fmt_p(p: Any) -> str:
    try:
        v = float(p)
    except (TypeError, ValueError):
        return "NA"
    if not math.isfinite(v):
        return "NA"
    return "<0.001" if v < 0.001 else f"{v:.3f}"


def _json_safe(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {str(k): _json_safe(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_json_safe(v) for v in obj]
    if isinstance(obj, (np.integer,)):
        return int(obj)
    if isinstance(obj, (float, np.floating)):
        v = float(obj)
        return v if math.isfinite(v) else None
    if isinstance(obj, (np.bool_,)):
        return bool(obj)
    if obj is pd.NA:
        return None
    return obj


def performance_table(results: Sequence[DiscriminationResult]) -> pd.DataFrame:
    """Table 1: one row per composite."""
    cols = [
        "composite",
        "score_column",
        "outcome",
        "direction",
        "n",
        "n_events",
        "prevalence",
        "auc",
        "auc_ci_lo",
        "auc_ci_hi",
        "ci_level",
        "n_boot",
        "n_boot_used",
        "cutpoint",
        "sensitivity",
        "specificity",
        "ppv",
        "npv",
        "accuracy",
        "youden_j",
        "tp",
        "fp",
        "tn",
        "fn",
    ]
    if not results:
        return pd.DataFrame(columns=cols)
    return pd.DataFrame([r.to_row() for r in results])[cols]


def odds_ratio_table(tables: Mapping[str, pd.DataFrame]) -> pd.DataFrame:
    """Table 2: one row per composite x tertile."""
    frames = []
    for name, tbl in tables.items():
        t = tbl.copy()
        t.insert(0, "composite", name)
        frames.append(t)
    if not frames:
        return pd.DataFrame(columns=["composite", "tertile"])
    return pd.concat(frames, axis=0, ignore_index=True)


def roc_coordinates(results: Sequence[DiscriminationResult]) -> pd.DataFrame:
    frames = []
    for r in results:
        t = r.roc.copy()
        t.insert(0, "composite", r.name)
        frames.append(t)
    if not frames:
        return pd.DataFrame(columns=["composite", "threshold", "fpr", "tpr"])
    return pd.concat(frames, axis=0, ignore_index=True)


def format_report(summary: Dict[str, Any]) -> str:
    cohort = summary.get("cohort", {})
    lines: List[str] = []
    bar = "=" * 72

    lines += [bar, "CLINICAL APPLICABILITY OF COMPOSITE RISK SCORES FOR NDI", bar]
    run = summary.get("run", {})
    if run:
        lines.append(f"Run: {run.get('run_id', '')}   input: {run.get('input', '')}")
    lines.append(
        f"NDI definition: any domain score < {_fmt(cohort.get('ndi_threshold'), 1)} "
        f"({', '.join(cohort.get('domains', []))})"
    )
    lines.append(f"Participants in table: {cohort.get('n_rows', 0)}")
    lines.append("")
    lines.append("Outcome prevalence (complete cases per outcome)")
    for row in cohort.get("prevalence", []):
        lines.append(
            f"  {row['outcome']:<24} {row['n_impaired']:>5}/{row['n_evaluable']:<5} "
            f"({_fmt(100.0 * row['prevalence'], 1)}%)"
        )

    lines += ["", bar, "DISCRIMINATION (ROC / AUC)", bar]
    for row in summary.get("discrimination", []):
        pct = int(round(100 * float(row["ci_level"])))
        lines.append(f"{row['composite']} ({row['score_column']})")
        lines.append(f"  n={row['n']}  NDI events={row['n_events']}  prevalence={_fmt(row['prevalence'])}")
        lines.append(
            f"  AUC = {_fmt(row['auc'])}  ({pct}% bootstrap CI {_fmt(row['auc_ci_lo'])}-{_fmt(row['auc_ci_hi'])}; "
            f"{row['n_boot_used']}/{row['n_boot']} replicates)"
        )
        lines.append(
            f"  Optimal cutpoint (Youden) = {_fmt(row['cutpoint'], 4)}: "
            f"sensitivity {_fmt(row['sensitivity'])}, specificity {_fmt(row['specificity'])}, "
            f"PPV {_fmt(row['ppv'])}, NPV {_fmt(row['npv'])}, J {_fmt(row['youden_j'])}"
        )
        lines.append(f"  Confusion at cutpoint: TP={row['tp']} FP={row['fp']} TN={row['tn']} FN={row['fn']}")
    for row in summary.get("skipped", []):
        lines.append(f"{row['composite']}: SKIPPED ({row['reason']})")

    comp = summary.get("comparison")
    if comp:
        pct = int(round(100 * float(comp["ci_level"])))
        lines.append("")
        lines.append(
            f"Paired comparison {comp['score_a']} - {comp['score_b']} (n={comp['n']}): "
            f"dAUC = {_fmt(comp['auc_diff'])} ({pct}% CI {_fmt(comp['ci_lo'])} to {_fmt(comp['ci_hi'])}), "
            f"bootstrap p = {_fmt_p(comp['p_boot'])}"
        )

    lines += ["", bar, "RISK TERTILES (logistic regression odds ratios for NDI)", bar]
    for name, block in summary.get("tertiles", {}).items():
        lines.append(name)
        for row in block.get("odds_ratios", []):
            rate = row["event_rate"]
            head = f"  {row['tertile']:<14} n={row['n']:<5} NDI={row['events']:<4} ({_fmt(100 * rate, 1)}%)"
            if row["status"] == "PASS" and row["is_reference"]:
                lines.append(f"{head}  OR = 1 (reference)")
            elif row["status"] == "PASS":
                lines.append(
                    f"{head}  OR = {_fmt(row['odds_ratio'], 2)} "
                    f"({_fmt(row['or_ci_lo'], 2)}-{_fmt(row['or_ci_hi'], 2)}), p = {_fmt_p(row['p_value'])}"
                )
            else:
                lines.append(f"{head}  {row['status']}: {row['reason']}")
        trend = block.get("trend") or {}
        if trend.get("status") == "PASS":
            lines.append(
                f"  Chi-square({trend['chi2_dof']}) = {_fmt(trend['chi2'], 2)}, p = {_fmt_p(trend['chi2_p'])}; "
                f"OR per tertile step = {_fmt(trend['trend_or_per_tertile'], 2)}, p-trend = {_fmt_p(trend['trend_p'])}"
            )
        alignment = block.get("alignment") or {}
        if alignment and not alignment.get("consistent", True):
            lines.append("  WARNING: tertile labels are not ordered by composite score")

    domain_rows = summary.get("domain_discrimination", [])
    if domain_rows:
        lines += ["", bar, "DOMAIN-SPECIFIC DISCRIMINATION", bar]
        for row in domain_rows:
            if row["status"] == "PASS":
                lines.append(
                    f"  {row['composite']:<14} {row['outcome']:<28} AUC {_fmt(row['auc'])} "
                    f"({_fmt(row['auc_ci_lo'])}-{_fmt(row['auc_ci_hi'])}) n={row['n']} events={row['n_events']}"
                )
            else:
                lines.append(f"  {row['composite']:<14} {row['outcome']:<28} SKIPPED ({row['reason']})")

    lines.append("")
    return "\n".join(lines)


def _write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def _write_json(path: Path, payload: Dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(".json.tmp")
    tmp.write_text(json.dumps(_json_safe(payload), indent=2), encoding="utf-8")
    tmp.replace(path)


def write_outputs(
    out_dir: Path,
    *,
    results: Sequence[DiscriminationResult],
    or_tables: Mapping[str, pd.DataFrame],
    domain_rows: Sequence[Dict[str, Any]],
    summary: Dict[str, Any],
    report_text: str,
) -> Dict[str, Path]:
    out_dir.mkdir(parents=True, exist_ok=True)
    paths = {
        "performance_csv": out_dir / PERFORMANCE_CSV,
        "odds_ratio_csv": out_dir / ODDS_RATIO_CSV,
        "report_txt": out_dir / REPORT_TXT,
        "summary_json": out_dir / SUMMARY_JSON,
        "domain_csv": out_dir / DOMAIN_CSV,
        "roc_csv": out_dir / ROC_CSV,
    }
    performance_table(results).to_csv(paths["performance_csv"], index=False)
    odds_ratio_table(or_tables).to_csv(paths["odds_ratio_csv"], index=False)
    pd.DataFrame(list(domain_rows)).to_csv(paths["domain_csv"], index=False)
    roc_coordinates(results).to_csv(paths["roc_csv"], index=False)
    _write_text(paths["report_txt"], report_text)
    _write_json(paths["summary_json"], {**summary, "outputs": {k: str(v) for k, v in paths.items()}})
    return paths
