"""Discriminative performance of a composite risk score against a binary outcome.

ROC construction and AUC use scikit-learn; confidence intervals are
percentile bootstrap over participants. By default the bootstrap is stratified
by outcome (cases and controls resampled separately), so every replicate keeps
both classes and the case/control ratio of the sample.

Score direction: with `higher_is_riskier` a participant is test-positive when
score >= cutpoint; with `lower_is_riskier` when score <= cutpoint. Reported
thresholds are always in the score's own units.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Sequence, Tuple

import numpy as np
import pandas as pd
from sklearn.metrics import roc_auc_score, roc_curve

from .cohort import complete_cases
from .config import AnalysisConfig

logger = logging.getLogger(__name__)


class InsufficientDataError(ValueError):
    """Outcome has fewer than two classes after complete-case filtering."""


@dataclass(frozen=True)
class Cutpoint:
    threshold: float
    sensitivity: float
    specificity: float
    ppv: float
    npv: float
    accuracy: float
    youden_j: float
    tp: int
    fp: int
    tn: int
    fn: int


@dataclass
class DiscriminationResult:
    name: str
    score_col: str
    outcome_col: str
    n: int
    n_events: int
    auc: float
    ci_lo: float
    ci_hi: float
    ci_level: float
    n_boot: int
    n_boot_used: int
    cutpoint: Cutpoint
    direction: str
    roc: pd.DataFrame = field(repr=False)

    @property
    def prevalence(self) -> float:
        return float(self.n_events / self.n) if self.n else float("nan")

    def to_row(self) -> Dict[str, Any]:
        row: Dict[str, Any] = {
            "composite": self.name,
            "score_column": self.score_col,
            "outcome": self.outcome_col,
            "direction": self.direction,
            "n": self.n,
            "n_events": self.n_events,
            "prevalence": self.prevalence,
            "auc": self.auc,
            "auc_ci_lo": self.ci_lo,
            "auc_ci_hi": self.ci_hi,
            "ci_level": self.ci_level,
            "n_boot": self.n_boot,
            "n_boot_used": self.n_boot_used,
        }
        for k, v in asdict(self.cutpoint).items():
            row["cutpoint" if k == "threshold" else k] = v
        return row


def _oriented(score: np.ndarray, direction: str) -> np.ndarray:
    return score if direction == "higher_is_riskier" else -score


def _as_arrays(y: Sequence[Any], score: Sequence[Any]) -> Tuple[np.ndarray, np.ndarray]:
    yy = np.asarray(pd.to_numeric(pd.Series(y), errors="coerce"), dtype=float)
    ss = np.asarray(pd.to_numeric(pd.Series(score), errors="coerce"), dtype=float)
    if yy.shape != ss.shape:
        raise ValueError(f"Outcome and score lengths differ: {yy.shape} vs {ss.shape}")
    m = np.isfinite(yy) & np.isfinite(ss)
    yy = yy[m].astype(int)
    ss = ss[m]
    if yy.size and not set(np.unique(yy)).issubset({0, 1}):
        raise ValueError(f"Outcome must be binary 0/1. Got values: {sorted(np.unique(yy).tolist())}")
    return yy, ss


def _require_two_classes(y: np.ndarray, context: str) -> None:
    if y.size == 0 or np.unique(y).size < 2:
        n_pos = int((y == 1).sum())
        raise InsufficientDataError(
            f"{context}: need both outcome classes (n={int(y.size)}, events={n_pos})"
        )


def roc_table(y: Sequence[Any], score: Sequence[Any], direction: str = "higher_is_riskier") -> pd.DataFrame:
    """Full ROC curve with thresholds in score units (no intermediate points dropped)."""
    yy, ss = _as_arrays(y, score)
    _require_two_classes(yy, "roc_table")
    fpr, tpr, thr = roc_curve(yy, _oriented(ss, direction), drop_intermediate=False)
    thr = np.asarray(thr, dtype=float)
    if direction != "higher_is_riskier":
        thr = -thr
    return pd.DataFrame(
        {
            "threshold": thr,
            "fpr": fpr,
            "tpr": tpr,
            "sensitivity": tpr,
            "specificity": 1.0 - fpr,
            "youden_j": tpr - fpr,
        }
    )


def classification_metrics(y: Sequence[Any], predicted: Sequence[Any]) -> Dict[str, Any]:
    yy = np.asarray(y, dtype=int)
    pp = np.asarray(predicted, dtype=bool)
    tp = int(np.sum(pp & (yy == 1)))
    fp = int(np.sum(pp & (yy == 0)))
    tn = int(np.sum(~pp & (yy == 0)))
    fn = int(np.sum(~pp & (yy == 1)))

    def _ratio(a: int, b: int) -> float:
        return float(a / b) if b > 0 else float("nan")

    sens = _ratio(tp, tp + fn)
    spec = _ratio(tn, tn + fp)
    return {
        "sensitivity": sens,
        "specificity": spec,
        "ppv": _ratio(tp, tp + fp),
        "npv": _ratio(tn, tn + fn),
        "accuracy": _ratio(tp + tn, tp + tn + fp + fn),
        "youden_j": float(sens + spec - 1.0),
        "tp": tp,
        "fp": fp,
        "tn": tn,
        "fn": fn,
    }


def predict_positive(score: np.ndarray, threshold: float, direction: str) -> np.ndarray:
    if direction == "higher_is_riskier":
        return score >= threshold
    return score <= threshold


def optimal_cutpoint(y: Sequence[Any], score: Sequence[Any], direction: str = "higher_is_riskier") -> Cutpoint:
    """Youden's J maximum over the observed score thresholds.

    Ties go to the threshold with the highest specificity.
    """
    yy, ss = _as_arrays(y, score)
    roc = roc_table(yy, ss, direction)
    roc = roc[np.isfinite(roc["threshold"].to_numpy())].reset_index(drop=True)
    j = roc["youden_j"].to_numpy()
    # roc_curve orders by increasing fpr, so the first maximum is the most specific
    best = int(np.flatnonzero(j >= j.max() - 1e-12)[0])
    thr = float(roc.loc[best, "threshold"])
    metrics = classification_metrics(yy, predict_positive(ss, thr, direction))
    return Cutpoint(threshold=thr, **metrics)


def _resample(rng: np.random.Generator, pos: np.ndarray, neg: np.ndarray, stratified: bool) -> np.ndarray:
    if stratified:
        return np.concatenate(
            [rng.choice(pos, size=pos.size, replace=True), rng.choice(neg, size=neg.size, replace=True)]
        )
    n = pos.size + neg.size
    return rng.integers(0, n, n)


def bootstrap_auc_ci(
    y: Sequence[Any],
    score: Sequence[Any],
    *,
    n_boot: int = 2000,
    ci_level: float = 0.95,
    seed: int = 2024,
    stratified: bool = True,
    direction: str = "higher_is_riskier",
) -> Tuple[float, float, float, int]:
    """Point AUC plus percentile bootstrap CI.

    Returns (auc, ci_lo, ci_hi, n_boot_used). Unstratified replicates that
    draw a single class are skipped.
    """
    yy, ss = _as_arrays(y, score)
    _require_two_classes(yy, "bootstrap_auc_ci")
    s = _oriented(ss, direction)
    auc = float(roc_auc_score(yy, s))

    rng = np.random.default_rng(int(seed))
    pos = np.flatnonzero(yy == 1)
    neg = np.flatnonzero(yy == 0)
    vals: List[float] = []
    for _ in range(int(n_boot)):
        idx = _resample(rng, pos, neg, stratified)
        yb = yy[idx]
        if np.unique(yb).size < 2:
            continue
        vals.append(float(roc_auc_score(yb, s[idx])))

    if not vals:
        return auc, float("nan"), float("nan"), 0
    arr = np.asarray(vals, dtype=float)
    alpha = (1.0 - float(ci_level)) / 2.0
    return auc, float(np.quantile(arr, alpha)), float(np.quantile(arr, 1.0 - alpha)), int(arr.size)


def evaluate_score(
    df: pd.DataFrame,
    *,
    name: str,
    score_col: str,
    outcome_col: str,
    cfg: AnalysisConfig,
) -> DiscriminationResult:
    sub = complete_cases(df, [score_col, outcome_col])
    y = sub[outcome_col].astype(int).to_numpy()
    s = sub[score_col].astype(float).to_numpy()
    _require_two_classes(y, f"{name} vs {outcome_col}")

    auc, lo, hi, used = bootstrap_auc_ci(
        y,
        s,
        n_boot=cfg.n_boot,
        ci_level=cfg.ci_level,
        seed=cfg.seed,
        stratified=cfg.stratified_bootstrap,
        direction=cfg.score_direction,
    )
    if used < cfg.n_boot:
        logger.warning("%s: %d/%d bootstrap replicates usable", name, used, cfg.n_boot)

    cut = optimal_cutpoint(y, s, cfg.score_direction)
    logger.info(
        "%s: n=%d events=%d AUC=%.3f (%.0f%% CI %.3f-%.3f) cutpoint=%.4g sens=%.3f spec=%.3f",
        name,
        len(y),
        int(y.sum()),
        auc,
        cfg.ci_level * 100,
        lo,
        hi,
        cut.threshold,
        cut.sensitivity,
        cut.specificity,
    )
    return DiscriminationResult(
        name=name,
        score_col=score_col,
        outcome_col=outcome_col,
        n=int(len(y)),
        n_events=int(y.sum()),
        auc=auc,
        ci_lo=lo,
        ci_hi=hi,
        ci_level=cfg.ci_level,
        n_boot=cfg.n_boot,
        n_boot_used=used,
        cutpoint=cut,
        direction=cfg.score_direction,
        roc=roc_table(y, s, cfg.score_direction),
    )


def paired_auc_difference(
    df: pd.DataFrame,
    *,
    score_a: str,
    score_b: str,
    outcome_col: str,
    cfg: AnalysisConfig,
) -> Dict[str, Any]:
    """AUC(a) - AUC(b) on participants scored by both, with a paired bootstrap CI.

    The p-value is the two-sided bootstrap tail probability of the difference
    crossing zero.
    """
    sub = complete_cases(df, [score_a, score_b, outcome_col])
    y = sub[outcome_col].astype(int).to_numpy()
    _require_two_classes(y, f"{score_a} vs {score_b}")
    a = _oriented(sub[score_a].astype(float).to_numpy(), cfg.score_direction)
    b = _oriented(sub[score_b].astype(float).to_numpy(), cfg.score_direction)

    auc_a = float(roc_auc_score(y, a))
    auc_b = float(roc_auc_score(y, b))

    rng = np.random.default_rng(int(cfg.seed))
    pos = np.flatnonzero(y == 1)
    neg = np.flatnonzero(y == 0)
    diffs: List[float] = []
    for _ in range(int(cfg.n_boot)):
        idx = _resample(rng, pos, neg, cfg.stratified_bootstrap)
        yb = y[idx]
        if np.unique(yb).size < 2:
            continue
        diffs.append(float(roc_auc_score(yb, a[idx]) - roc_auc_score(yb, b[idx])))

    out: Dict[str, Any] = {
        "score_a": score_a,
        "score_b": score_b,
        "n": int(y.size),
        "n_events": int(y.sum()),
        "auc_a": auc_a,
        "auc_b": auc_b,
        "auc_diff": auc_a - auc_b,
        "ci_level": cfg.ci_level,
        "n_boot_used": len(diffs),
    }
    if not diffs:
        out.update({"ci_lo": float("nan"), "ci_hi": float("nan"), "p_boot": float("nan")})
        return out
    arr = np.asarray(diffs, dtype=float)
    alpha = (1.0 - float(cfg.ci_level)) / 2.0
    p = 2.0 * min(float(np.mean(arr <= 0.0)), float(np.mean(arr >= 0.0)))
    out.update(
        {
            "ci_lo": float(np.quantile(arr, alpha)),
            "ci_hi": float(np.quantile(arr, 1.0 - alpha)),
            "p_boot": float(min(1.0, p)),
        }
    )
    return out


def domain_discrimination(
    df: pd.DataFrame,
    *,
    composites: Sequence[Tuple[str, str]],
    domain_cols: Sequence[str],
    cfg: AnalysisConfig,
) -> List[Dict[str, Any]]:
    """AUC of each composite against each per-domain impairment indicator."""
    rows: List[Dict[str, Any]] = []
    for name, score_col in composites:
        for dom in domain_cols:
            outcome = f"{dom}_impaired"
            sub = complete_cases(df, [score_col, outcome])
            y = sub[outcome].astype(int).to_numpy()
            row: Dict[str, Any] = {
                "composite": name,
                "outcome": outcome,
                "n": int(y.size),
                "n_events": int(y.sum()) if y.size else 0,
            }
            try:
                auc, lo, hi, used = bootstrap_auc_ci(
                    y,
                    sub[score_col].astype(float).to_numpy(),
                    n_boot=cfg.n_boot,
                    ci_level=cfg.ci_level,
                    seed=cfg.seed,
                    stratified=cfg.stratified_bootstrap,
                    direction=cfg.score_direction,
                )
            except InsufficientDataError as exc:
                logger.warning("Skipping %s vs %s: %s", name, outcome, exc)
                row.update(
                    {
                        "status": "SKIP",
                        "reason": str(exc),
                        "auc": float("nan"),
                        "auc_ci_lo": float("nan"),
                        "auc_ci_hi": float("nan"),
                        "n_boot_used": 0,
                    }
                )
                rows.append(row)
                continue
            row.update({"status": "PASS", "reason": "", "auc": auc, "auc_ci_lo": lo, "auc_ci_hi": hi, "n_boot_used": used})
            rows.append(row)
    return rows

