from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from ndi_risk_eval.outcomes import derive_outcomes, impairment_indicator, outcome_prevalence

DOMAINS = ["cog", "lang", "motor"]


@pytest.fixture
def scores() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "cog": [100, 80, np.nan, 100, 85, np.nan],
            "lang": [95, 100, 70, 90, 85, np.nan],
            "motor": [90, 100, 100, np.nan, 85, np.nan],
        },
        dtype=float,
    )


def test_impairment_indicator_is_strictly_below_threshold():
    out = impairment_indicator(pd.Series([84.9, 85.0, 120.0, np.nan]), 85)
    assert out.tolist()[:3] == [1, 0, 0]
    assert pd.isna(out.iloc[3])
    assert str(out.dtype) == "Int64"


def test_ndi_three_valued_any(scores):
    out = derive_outcomes(scores, DOMAINS, 85)
    ndi = out["ndi"]
    assert ndi.iloc[0] == 0  # all observed, none impaired
    assert ndi.iloc[1] == 1  # cognitive impaired
    assert ndi.iloc[2] == 1  # language impaired, cognitive missing
    assert pd.isna(ndi.iloc[3])  # no impairment seen, motor missing
    assert ndi.iloc[4] == 0  # exactly at threshold
    assert pd.isna(ndi.iloc[5])


def test_per_domain_flags_and_input_untouched(scores):
    out = derive_outcomes(scores, DOMAINS, 85)
    assert out["cog_impaired"].tolist()[:2] == [0, 1]
    assert pd.isna(out.loc[2, "cog_impaired"])
    assert out.loc[2, "lang_impaired"] == 1
    assert "ndi" not in scores.columns


def test_threshold_changes_ndi(scores):
    out = derive_outcomes(scores, DOMAINS, 71)
    assert out["ndi"].iloc[1] == 0
    assert out["ndi"].iloc[2] == 1


def test_missing_domain_column_raises(scores):
    with pytest.raises(ValueError, match="Missing domain columns"):
        derive_outcomes(scores.drop(columns=["motor"]), DOMAINS, 85)


def test_outcome_prevalence_counts_evaluable_rows(scores):
    rows = outcome_prevalence(derive_outcomes(scores, DOMAINS, 85), DOMAINS)
    by = {r["outcome"]: r for r in rows}
    assert by["ndi"]["n_evaluable"] == 4
    assert by["ndi"]["n_impaired"] == 2
    assert by["ndi"]["prevalence"] == pytest.approx(0.5)
    assert by["cog"]["n_evaluable"] == 4
    assert by["cog"]["n_impaired"] == 1
