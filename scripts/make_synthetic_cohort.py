#!/usr/bin/env python3
"""Write a synthetic participant table for demo and smoke runs."""

from __future__ import annotations

import argparse
from pathlib import Path

from ndi_risk_eval.synthetic import make_synthetic_cohort


def parse_args() -> argparse.Namespace:
    ap = argparse.ArgumentParser()
    ap.add_argument("--out_csv", type=Path, required=True)
    ap.add_argument("--n", type=int, default=300)
    ap.add_argument("--seed", type=int, default=123)
    ap.add_argument("--missing_frac", type=float, default=0.03)
    return ap.parse_args()


def main() -> None:
    args = parse_args()
    df = make_synthetic_cohort(args.n, seed=args.seed, missing_frac=args.missing_frac)
    args.out_csv.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(args.out_csv, index=False)
    print(f"Wrote {args.out_csv} ({len(df)} participants)")


if __name__ == "__main__":
    main()
