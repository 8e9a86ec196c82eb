#!/usr/bin/env python3
"""evaluate_clinical_applicability.py

Clinical applicability of composite developmental-risk scores against NDI.

- NDI = any of cognitive/language/motor score below the configured threshold
- per composite: ROC, AUC with bootstrap CI, Youden-optimal cutpoint
- per composite: risk-tertile odds ratios (logistic regression, Low Risk reference)
- exports: performance_summary.csv, tertile_odds_ratios.csv, report text,
  JSON summary, ROC and forest plots
"""

from __future__ import annotations

from pathlib import Path
import argparse
import sys
import time

from ndi_risk_eval.cohort import CohortError, load_cohort
from ndi_risk_eval.config import load_config
from ndi_risk_eval.logging_utils import configure_logging
from ndi_risk_eval.manifest import file_sha256, write_manifest
from ndi_risk_eval.pipeline import run_analysis

ENTRYPOINT = "evaluate_clinical_applicability"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description=__doc__.splitlines()[2])
    ap.add_argument("--input_csv", type=Path, required=True, help="Participant-level table (CSV or TSV)")
    ap.add_argument("--out_root", type=Path, required=True)
    ap.add_argument("--config", type=Path, default=Path("configs/default.yaml"))
    ap.add_argument("--run_id", type=str, default=None)
    ap.add_argument("--seed", type=int, default=None)
    ap.add_argument("--n_boot", type=int, default=None)
    ap.add_argument("--ndi_threshold", type=float, default=None, help="Override ndi.threshold from config")
    return ap.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    run_id = args.run_id or time.strftime("%Y%m%d_%H%M%S")

    log_dir = args.out_root / "logs"
    # package-level logger so module loggers (ndi_risk_eval.*) land in the same files
    logger = configure_logging(log_dir=log_dir, run_id=run_id, name="ndi_risk_eval")

    try:
        if args.config.exists():
            cfg = load_config(args.config)
            logger.info("Loaded config: %s", args.config)
        else:
            logger.warning("Config %s not found; using built-in defaults", args.config)
            cfg = load_config(None)
        cfg = cfg.with_overrides(seed=args.seed, n_boot=args.n_boot, ndi_threshold=args.ndi_threshold)

        manifest_path = write_manifest(
            out_dir=log_dir,
            run_id=run_id,
            entrypoint=ENTRYPOINT,
            args={k: str(v) for k, v in vars(args).items()},
            extra={
                "input_sha256": file_sha256(args.input_csv) if args.input_csv.exists() else None,
                "ndi_threshold": cfg.ndi_threshold,
                "n_boot": cfg.n_boot,
                "seed": cfg.seed,
            },
        )
        logger.info("Wrote manifest: %s", manifest_path)

        df = load_cohort(args.input_csv, cfg)
    except (FileNotFoundError, CohortError, ValueError) as exc:
        logger.error("Input validation failed: %s", exc)
        return 1

    report_dir = args.out_root / "reports" / "clinical_applicability" / run_id
    summary = run_analysis(
        df,
        cfg,
        report_dir,
        run_info={"run_id": run_id, "input": str(args.input_csv), "entrypoint": ENTRYPOINT},
    )

    print(summary["report_text"])
    logger.info("Clinical applicability analysis complete. Outputs in %s", report_dir)
    return 0


if __name__ == "__main__":
    sys.exit(main())
