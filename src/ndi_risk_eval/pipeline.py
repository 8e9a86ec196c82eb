"""End-to-end clinical-applicability analysis over one participant table."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from .cohort import check_tertile_alignment
from .config import AnalysisConfig
from .discrimination import (
    DiscriminationResult,
    InsufficientDataError,
    domain_discrimination,
    evaluate_score,
    paired_auc_difference,
)
from .outcomes import derive_outcomes, outcome_prevalence
from .plotting import plot_roc_curves, plot_tertile_odds_ratios
from .report import format_report, odds_ratio_table, write_outputs
from .tertiles import tertile_odds_ratios, tertile_trend_test

logger = logging.getLogger(__name__)

ROC_PNG = "FIG_roc_curves.png"
OR_PNG = "FIG_tertile_odds_ratios.png"


def run_analysis(
    df: pd.DataFrame,
    cfg: AnalysisConfig,
    out_dir: Path,
    *,
    run_info: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Derive NDI, evaluate every composite, write tables/plots/report.

    `df` must already be prepared by `cohort.prepare_cohort` (numeric scores,
    canonical tertile labels). Returns the JSON-able summary.
    """
    out_dir.mkdir(parents=True, exist_ok=True)
    data = derive_outcomes(df, cfg.domain_columns, cfg.ndi_threshold)
    prevalence = outcome_prevalence(data, cfg.domain_columns)
    ndi_row = prevalence[0]
    logger.info(
        "NDI (any domain < %g): %d/%d evaluable participants",
        cfg.ndi_threshold,
        ndi_row["n_impaired"],
        ndi_row["n_evaluable"],
    )

    results: List[DiscriminationResult] = []
    skipped: List[Dict[str, str]] = []
    for comp in cfg.composites:
        try:
            results.append(evaluate_score(data, name=comp.name, score_col=comp.score, outcome_col="ndi", cfg=cfg))
        except InsufficientDataError as exc:
            logger.warning("Skipping discrimination for %s: %s", comp.name, exc)
            skipped.append({"composite": comp.name, "reason": str(exc)})

    comparison: Optional[Dict[str, Any]] = None
    if len(results) >= 2:
        a, b = results[0], results[1]
        try:
            comparison = paired_auc_difference(
                data, score_a=a.score_col, score_b=b.score_col, outcome_col="ndi", cfg=cfg
            )
            logger.info(
                "Paired AUC difference %s - %s: %.3f (p_boot=%.3f)",
                a.name,
                b.name,
                comparison["auc_diff"],
                comparison["p_boot"],
            )
        except InsufficientDataError as exc:
            logger.warning("Skipping paired AUC comparison: %s", exc)

    domain_rows = domain_discrimination(
        data,
        composites=[(c.name, c.score) for c in cfg.composites],
        domain_cols=cfg.domain_columns,
        cfg=cfg,
    )

    or_tables: Dict[str, pd.DataFrame] = {}
    tertile_blocks: Dict[str, Any] = {}
    for comp in cfg.composites:
        alignment = check_tertile_alignment(data, comp.score, comp.tertile, cfg.score_direction)
        table = tertile_odds_ratios(
            data,
            tertile_col=comp.tertile,
            outcome_col="ndi",
            reference=cfg.reference_tertile,
            ci_level=cfg.ci_level,
            min_group_size=cfg.min_group_size,
        )
        trend = tertile_trend_test(data, tertile_col=comp.tertile, outcome_col="ndi")
        or_tables[comp.name] = table
        tertile_blocks[comp.name] = {
            "tertile_column": comp.tertile,
            "reference": cfg.reference_tertile,
            "odds_ratios": table.to_dict(orient="records"),
            "trend": trend,
            "alignment": alignment,
        }
        for row in table.itertuples(index=False):
            if row.status == "PASS" and not row.is_reference:
                logger.info(
                    "%s %s vs %s: OR=%.2f (%.2f-%.2f) p=%.4f",
                    comp.name,
                    row.tertile,
                    cfg.reference_tertile,
                    row.odds_ratio,
                    row.or_ci_lo,
                    row.or_ci_hi,
                    row.p_value,
                )

    roc_png = plot_roc_curves(results, out_dir / ROC_PNG, dpi=cfg.dpi)
    or_png = plot_tertile_odds_ratios(odds_ratio_table(or_tables), out_dir / OR_PNG, dpi=cfg.dpi)

    summary: Dict[str, Any] = {
        "run": dict(run_info or {}),
        "cohort": {
            "n_rows": int(len(data)),
            "ndi_threshold": cfg.ndi_threshold,
            "domains": [label for label, _ in cfg.domains],
            "domain_columns": list(cfg.domain_columns),
            "prevalence": prevalence,
        },
        "settings": {
            "score_direction": cfg.score_direction,
            "n_boot": cfg.n_boot,
            "ci_level": cfg.ci_level,
            "stratified_bootstrap": cfg.stratified_bootstrap,
            "seed": cfg.seed,
            "reference_tertile": cfg.reference_tertile,
        },
        "discrimination": [r.to_row() for r in results],
        "skipped": skipped,
        "comparison": comparison,
        "domain_discrimination": domain_rows,
        "tertiles": tertile_blocks,
        "figures": {"roc": str(roc_png), "tertile_odds_ratios": str(or_png)},
    }

    report_text = format_report(summary)
    paths = write_outputs(
        out_dir,
        results=results,
        or_tables=or_tables,
        domain_rows=domain_rows,
        summary=summary,
        report_text=report_text,
    )
    summary["outputs"] = {k: str(v) for k, v in paths.items()}
    summary["report_text"] = report_text
    logger.info("Wrote %s", ", ".join(str(p) for p in paths.values()))
    return summary
