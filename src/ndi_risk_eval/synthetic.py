"""Synthetic participant tables with the default column layout (demos, smoke runs, tests)."""

from __future__ import annotations

import numpy as np
import pandas as pd

from .cohort import TERTILE_LABELS


def make_synthetic_cohort(n: int = 300, *, seed: int = 123, missing_frac: float = 0.03) -> pd.DataFrame:
    """Latent developmental risk drives both the domain scores and the two composites.

    The supervised composite tracks the latent risk more closely than the
    unsupervised one. Tertile labels are cut on each composite within the
    generated sample. `missing_frac` of each domain/composite column is blanked.
    """
    nn = int(max(30, n))
    rng = np.random.default_rng(int(seed))
    latent = rng.normal(0.0, 1.0, nn)

    def _domain(weight: float) -> np.ndarray:
        # centred below the normative 100 so every risk tertile has some NDI cases
        return np.round(96.0 - 12.0 * weight * latent + rng.normal(0.0, 12.0, nn), 0)

    df = pd.DataFrame(
        {
            "participant_id": [f"P{i + 1:04d}" for i in range(nn)],
            "cognitive_score": _domain(1.0),
            "language_score": _domain(0.9),
            "motor_score": _domain(0.7),
            "supervised_risk_score": 1.0 / (1.0 + np.exp(-(1.4 * latent + rng.normal(0.0, 0.6, nn)))),
            "unsupervised_risk_score": 0.8 * latent + rng.normal(0.0, 1.0, nn),
        }
    )
    for col in ["supervised_risk_score", "unsupervised_risk_score"]:
        tert_col = col.replace("_score", "_tertile")
        df[tert_col] = pd.qcut(df[col].rank(method="first"), q=3, labels=TERTILE_LABELS).astype(str)

    if missing_frac > 0:
        for col in ["cognitive_score", "language_score", "motor_score", "supervised_risk_score", "unsupervised_risk_score"]:
            k = int(round(missing_frac * nn))
            if k:
                idx = rng.choice(nn, size=k, replace=False)
                df.loc[idx, col] = np.nan
                tert_col = col.replace("_score", "_tertile")
                if tert_col in df.columns:
                    df.loc[idx, tert_col] = np.nan
    return df
