"""Participant table loading and validation.

One row per participant: identifier, three domain scores, two composite risk
scores and their tertile labels. Missing values are kept as NaN and removed
per-computation with `complete_cases`.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Sequence

import numpy as np
import pandas as pd

from .config import AnalysisConfig

logger = logging.getLogger(__name__)

TERTILE_LABELS: List[str] = ["Low Risk", "Moderate Risk", "High Risk"]

_TERTILE_ALIASES: Dict[str, str] = {
    "low": "Low Risk",
    "lowrisk": "Low Risk",
    "moderate": "Moderate Risk",
    "moderaterisk": "Moderate Risk",
    "medium": "Moderate Risk",
    "mediumrisk": "Moderate Risk",
    "high": "High Risk",
    "highrisk": "High Risk",
}


class CohortError(ValueError):
    """Participant table does not match the expected layout."""


def _read_table(path: Path) -> pd.DataFrame:
    if not path.exists():
        raise FileNotFoundError(f"Participant table not found: {path}")
    if path.suffix.lower() in {".tsv", ".txt"}:
        return pd.read_csv(path, sep="\t")
    return pd.read_csv(path)


def normalize_tertile_labels(values: pd.Series) -> pd.Series:
    """Map label variants ('low', 'HIGH RISK', ...) onto ordered canonical labels."""
    def _one(v: Any) -> Any:
        if pd.isna(v):
            return np.nan
        key = re.sub(r"[\s_\-]+", "", str(v)).lower()
        if not key or key in {"na", "nan", "none"}:
            return np.nan
        if key not in _TERTILE_ALIASES:
            raise CohortError(f"Unrecognized tertile label {v!r}; expected one of {TERTILE_LABELS}")
        return _TERTILE_ALIASES[key]

    mapped = values.astype(object).map(_one)
    return pd.Series(
        pd.Categorical(mapped, categories=TERTILE_LABELS, ordered=True),
        index=values.index,
        name=values.name,
    )


def derive_tertiles(scores: pd.Series, direction: str = "higher_is_riskier") -> pd.Series:
    """Equal-frequency tertiles of a composite score; NaN scores stay unlabeled.

    With `lower_is_riskier` the lowest third of scores is labelled High Risk.
    """
    s = pd.to_numeric(scores, errors="coerce")
    ok = s.notna()
    if ok.sum() < 3:
        raise CohortError(f"Need at least 3 scored participants to derive tertiles for {scores.name!r}")
    risk = s[ok] if direction == "higher_is_riskier" else -s[ok]
    binned = pd.qcut(risk.rank(method="first"), q=3, labels=TERTILE_LABELS).astype(object)
    return pd.Series(
        pd.Categorical(binned.reindex(s.index), categories=TERTILE_LABELS, ordered=True),
        index=s.index,
        name=f"{scores.name}_tertile" if scores.name else None,
    )


def validate_cohort(df: pd.DataFrame, cfg: AnalysisConfig) -> None:
    required = [cfg.participant_id, *cfg.domain_columns, *[c.score for c in cfg.composites]]
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise CohortError(f"Missing required columns: {missing}. Present columns: {list(df.columns)}")

    ids = df[cfg.participant_id]
    if ids.isna().any():
        logger.warning("%d rows have no participant id", int(ids.isna().sum()))
    dup = ids.dropna()[ids.dropna().duplicated()]
    if not dup.empty:
        raise CohortError(f"Duplicate participant ids: {sorted(map(str, dup.unique()))[:10]}")


def check_tertile_alignment(
    df: pd.DataFrame, score_col: str, tertile_col: str, direction: str = "higher_is_riskier"
) -> Dict[str, Any]:
    """Per-tertile score range; medians must move toward higher risk from Low to High.

    That is non-decreasing for `higher_is_riskier` and non-increasing for
    `lower_is_riskier`.
    """
    sub = df[[score_col, tertile_col]].dropna()
    rows = []
    for label in TERTILE_LABELS:
        vals = sub.loc[sub[tertile_col] == label, score_col].astype(float)
        rows.append(
            {
                "tertile": label,
                "n": int(len(vals)),
                "min": float(vals.min()) if len(vals) else float("nan"),
                "median": float(vals.median()) if len(vals) else float("nan"),
                "max": float(vals.max()) if len(vals) else float("nan"),
            }
        )
    medians = [r["median"] for r in rows if r["n"] > 0]
    if direction == "higher_is_riskier":
        consistent = all(a <= b for a, b in zip(medians, medians[1:]))
    else:
        consistent = all(a >= b for a, b in zip(medians, medians[1:]))
    if not consistent:
        logger.warning(
            "Tertile labels in %s are not ordered by %s medians (%s): %s",
            tertile_col,
            score_col,
            direction,
            {r["tertile"]: r["median"] for r in rows},
        )
    return {"score": score_col, "tertile": tertile_col, "consistent": bool(consistent), "by_tertile": rows}


def complete_cases(df: pd.DataFrame, cols: Sequence[str]) -> pd.DataFrame:
    return df.dropna(subset=list(cols)).copy()


def prepare_cohort(df: pd.DataFrame, cfg: AnalysisConfig) -> pd.DataFrame:
    """Coerce types and fill in tertile labels; returns a new frame."""
    validate_cohort(df, cfg)
    out = df.copy()
    for col in [*cfg.domain_columns, *[c.score for c in cfg.composites]]:
        before = out[col].notna().sum()
        out[col] = pd.to_numeric(out[col], errors="coerce")
        lost = int(before - out[col].notna().sum())
        if lost:
            logger.warning("Column %s: %d non-numeric values set to missing", col, lost)

    for comp in cfg.composites:
        if comp.tertile in out.columns:
            out[comp.tertile] = normalize_tertile_labels(out[comp.tertile])
        else:
            logger.warning(
                "Tertile column %s absent; deriving equal-frequency tertiles from %s",
                comp.tertile,
                comp.score,
            )
            out[comp.tertile] = derive_tertiles(out[comp.score], cfg.score_direction)

        unlabeled = out[comp.score].notna() & out[comp.tertile].isna()
        if unlabeled.any():
            logger.warning("%s: %d scored rows have no tertile label", comp.name, int(unlabeled.sum()))
    return out


def load_cohort(path: Path, cfg: AnalysisConfig) -> pd.DataFrame:
    df = _read_table(path)
    logger.info("Loaded %d rows x %d columns from %s", len(df), df.shape[1], path)
    return prepare_cohort(df, cfg)
