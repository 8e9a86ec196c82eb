"""Outcome derivation: NDI and per-domain impairment from assessment thresholds."""

from __future__ import annotations

from typing import Any, Dict, List, Sequence

import pandas as pd


def impairment_indicator(scores: pd.Series, threshold: float) -> pd.Series:
    """1 where score < threshold, 0 where score >= threshold, <NA> where missing."""
    s = pd.to_numeric(scores, errors="coerce")
    out = (s < float(threshold)).astype("Int64")
    out[s.isna()] = pd.NA
    return out


def derive_outcomes(df: pd.DataFrame, domain_cols: Sequence[str], threshold: float) -> pd.DataFrame:
    """Add `<domain>_impaired` columns and the composite `ndi` column.

    NDI uses three-valued "any": one observed impaired domain is enough for a
    positive row; a row is negative only when every domain is observed and none
    is impaired; everything else is missing.
    """
    missing = [c for c in domain_cols if c not in df.columns]
    if missing:
        raise ValueError(f"Missing domain columns: {missing}")

    out = df.copy()
    flags = []
    for col in domain_cols:
        flag_col = f"{col}_impaired"
        out[flag_col] = impairment_indicator(out[col], threshold)
        flags.append(flag_col)

    mat = out[flags]
    any_pos = mat.eq(1).fillna(False).astype(bool).any(axis=1)
    all_obs = mat.notna().all(axis=1)
    ndi = pd.Series(pd.NA, index=out.index, dtype="Int64")
    ndi[any_pos] = 1
    ndi[~any_pos & all_obs] = 0
    out["ndi"] = ndi
    return out


def outcome_prevalence(df: pd.DataFrame, domain_cols: Sequence[str]) -> List[Dict[str, Any]]:
    rows = []
    for label, col in [("ndi", "ndi")] + [(c, f"{c}_impaired") for c in domain_cols]:
        v = df[col].dropna()
        n = int(len(v))
        k = int((v == 1).sum())
        rows.append(
            {
                "outcome": label,
                "n_evaluable": n,
                "n_impaired": k,
                "prevalence": float(k / n) if n else float("nan"),
            }
        )
    return rows
