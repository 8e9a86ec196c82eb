"""Risk-tertile association with the outcome: event rates and logistic-regression odds ratios.

Odds ratios come from a statsmodels `Logit` of the outcome on an intercept plus
dummy indicators for every non-reference tertile. exp(coef) is the OR versus
the reference tertile; exp of the Wald interval bounds gives its CI.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd
from scipy.stats import chi2_contingency

from .cohort import TERTILE_LABELS, complete_cases

logger = logging.getLogger(__name__)


def tertile_event_table(df: pd.DataFrame, *, tertile_col: str, outcome_col: str) -> pd.DataFrame:
    sub = complete_cases(df, [tertile_col, outcome_col])
    labels = sub[tertile_col].astype(str)
    y = sub[outcome_col].astype(int)
    rows = []
    for label in TERTILE_LABELS:
        m = labels == label
        n = int(m.sum())
        k = int(y[m].sum())
        rows.append(
            {
                "tertile": label,
                "n": n,
                "events": k,
                "event_rate": float(k / n) if n else float("nan"),
            }
        )
    return pd.DataFrame(rows)


def _failed_rows(levels: List[str], reference: str, reason: str) -> List[Dict[str, Any]]:
    return [
        {
            "tertile": label,
            "is_reference": label == reference,
            "coef": float("nan"),
            "se": float("nan"),
            "odds_ratio": float("nan"),
            "or_ci_lo": float("nan"),
            "or_ci_hi": float("nan"),
            "p_value": float("nan"),
            "status": "FAILED",
            "reason": reason,
        }
        for label in levels
    ]


def tertile_odds_ratios(
    df: pd.DataFrame,
    *,
    tertile_col: str,
    outcome_col: str,
    reference: str = "Low Risk",
    ci_level: float = 0.95,
    min_group_size: int = 1,
) -> pd.DataFrame:
    """Odds ratio of the outcome for each tertile versus `reference`.

    Tertiles with no participants are reported with status EMPTY and left out
    of the design matrix. Fits that do not converge or raise (perfect
    separation, singular design) give FAILED rows instead of an exception.
    """
    import statsmodels.api as sm
    from statsmodels.tools.sm_exceptions import PerfectSeparationError

    if reference not in TERTILE_LABELS:
        raise ValueError(f"reference must be one of {TERTILE_LABELS}. Got: {reference!r}")

    sub = complete_cases(df, [tertile_col, outcome_col])
    labels = sub[tertile_col].astype(str).to_numpy()
    y = sub[outcome_col].astype(int).to_numpy()

    events = tertile_event_table(sub, tertile_col=tertile_col, outcome_col=outcome_col).set_index("tertile")
    counts = events["n"].to_dict()
    present = [label for label in TERTILE_LABELS if counts[label] > 0]
    empty = [label for label in TERTILE_LABELS if counts[label] == 0]
    for label in empty:
        logger.warning("%s: tertile %r has no complete-case rows; dropped from model", tertile_col, label)
    for label in present:
        if counts[label] < min_group_size:
            logger.warning("%s: tertile %r has only %d rows", tertile_col, label, counts[label])
    # a dummy-coded tertile with no events (or only events) is quasi-separated
    separated = [label for label in present if events.loc[label, "events"] in (0, counts[label])]

    rows: List[Dict[str, Any]] = []
    if reference not in present:
        rows = _failed_rows(present, reference, f"reference tertile {reference!r} is empty")
    elif len(present) < 2:
        rows = _failed_rows(present, reference, "fewer than two non-empty tertiles")
    elif np.unique(y).size < 2:
        rows = _failed_rows(present, reference, "outcome has a single class")
    elif separated:
        reason = f"quasi-complete separation: no outcome variation within {separated}"
        logger.warning("%s: %s", tertile_col, reason)
        rows = _failed_rows(present, reference, reason)
    else:
        levels = [label for label in present if label != reference]
        X = pd.DataFrame({"const": np.ones(len(y))})
        for label in levels:
            X[label] = (labels == label).astype(float)

        fit_error: Optional[str] = None
        res = None
        try:
            res = sm.Logit(y, X).fit(disp=0, maxiter=200)
        except (PerfectSeparationError, np.linalg.LinAlgError) as exc:
            fit_error = f"{type(exc).__name__}: {exc}"

        if res is not None:
            converged = bool(res.mle_retvals.get("converged", True))
            bse = np.asarray(res.bse, dtype=float)
            if not converged:
                fit_error = "maximum likelihood did not converge (possible separation)"
            elif not np.all(np.isfinite(bse)):
                fit_error = "non-finite standard errors"

        if fit_error is not None:
            logger.warning("%s: logistic fit failed: %s", tertile_col, fit_error)
            rows = _failed_rows(present, reference, fit_error)
        else:
            conf = res.conf_int(alpha=1.0 - ci_level)
            rows.append(
                {
                    "tertile": reference,
                    "is_reference": True,
                    "coef": 0.0,
                    "se": float("nan"),
                    "odds_ratio": 1.0,
                    "or_ci_lo": float("nan"),
                    "or_ci_hi": float("nan"),
                    "p_value": float("nan"),
                    "status": "PASS",
                    "reason": "",
                }
            )
            for label in levels:
                coef = float(res.params[label])
                rows.append(
                    {
                        "tertile": label,
                        "is_reference": False,
                        "coef": coef,
                        "se": float(res.bse[label]),
                        "odds_ratio": math.exp(coef),
                        "or_ci_lo": math.exp(float(conf.loc[label, 0])),
                        "or_ci_hi": math.exp(float(conf.loc[label, 1])),
                        "p_value": float(res.pvalues[label]),
                        "status": "PASS",
                        "reason": "",
                    }
                )

    for label in empty:
        rows.append({**_failed_rows([label], reference, "no participants")[0], "status": "EMPTY"})

    out = pd.DataFrame(rows)
    out = out.join(events[["n", "events", "event_rate"]], on="tertile")
    out["ci_level"] = float(ci_level)
    order = {label: i for i, label in enumerate(TERTILE_LABELS)}
    out = out.sort_values("tertile", key=lambda s: s.map(order)).reset_index(drop=True)
    return out[
        [
            "tertile",
            "is_reference",
            "n",
            "events",
            "event_rate",
            "coef",
            "se",
            "odds_ratio",
            "or_ci_lo",
            "or_ci_hi",
            "ci_level",
            "p_value",
            "status",
            "reason",
        ]
    ]


def tertile_trend_test(df: pd.DataFrame, *, tertile_col: str, outcome_col: str) -> Dict[str, Any]:
    """Chi-square test of tertile x outcome independence plus logistic p-for-trend (0/1/2 coding)."""
    import statsmodels.api as sm
    from statsmodels.tools.sm_exceptions import PerfectSeparationError

    sub = complete_cases(df, [tertile_col, outcome_col])
    labels = sub[tertile_col].astype(str)
    y = sub[outcome_col].astype(int)
    table = pd.crosstab(labels, y).reindex(index=[t for t in TERTILE_LABELS if (labels == t).any()])

    out: Dict[str, Any] = {"tertile": tertile_col, "n": int(len(sub))}
    if table.shape[0] < 2 or table.shape[1] < 2:
        out.update({"status": "SKIP", "reason": "need >=2 tertiles and both outcome classes"})
        return out

    chi2, p_chi2, dof, _ = chi2_contingency(table.to_numpy())
    out.update({"chi2": float(chi2), "chi2_dof": int(dof), "chi2_p": float(p_chi2)})

    ordinal = labels.map({t: i for i, t in enumerate(TERTILE_LABELS)}).astype(float)
    x_pos, x_neg = ordinal[y == 1], ordinal[y == 0]
    if x_neg.max() <= x_pos.min() or x_pos.max() <= x_neg.min():
        out.update({"status": "PARTIAL", "reason": "trend fit skipped: outcome separated by tertile order"})
        logger.warning("%s: %s", tertile_col, out["reason"])
        return out

    X = sm.add_constant(pd.DataFrame({"tertile_ordinal": ordinal.to_numpy()}), has_constant="add")
    try:
        res = sm.Logit(y.to_numpy(), X).fit(disp=0, maxiter=200)
    except (PerfectSeparationError, np.linalg.LinAlgError) as exc:
        out.update({"status": "PARTIAL", "reason": f"trend fit failed: {exc}"})
        return out

    if not bool(res.mle_retvals.get("converged", True)):
        out.update({"status": "PARTIAL", "reason": "trend fit did not converge (possible separation)"})
        return out
    if not np.all(np.isfinite(np.asarray(res.bse, dtype=float))):
        out.update({"status": "PARTIAL", "reason": "trend fit has non-finite standard errors"})
        return out

    coef = float(res.params["tertile_ordinal"])
    out.update(
        {
            "status": "PASS",
            "reason": "",
            "trend_or_per_tertile": math.exp(coef),
            "trend_p": float(res.pvalues["tertile_ordinal"]),
        }
    )
    return out
