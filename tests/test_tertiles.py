from __future__ import annotations

import math

import pytest

from ndi_risk_eval.tertiles import tertile_event_table, tertile_odds_ratios, tertile_trend_test

CELLS = {"Low Risk": (20, 2), "Moderate Risk": (20, 5), "High Risk": (20, 10)}


def _wald_or(a: int, b: int, c: int, d: int) -> tuple[float, float, float]:
    """OR of (a events / b non-events) vs (c events / d non-events) with 95% Wald CI."""
    log_or = math.log((a / b) / (c / d))
    se = math.sqrt(1 / a + 1 / b + 1 / c + 1 / d)
    z = 1.959963984540054
    return math.exp(log_or), math.exp(log_or - z * se), math.exp(log_or + z * se)


def test_event_table(tertile_frame):
    tbl = tertile_event_table(tertile_frame(CELLS), tertile_col="tertile", outcome_col="ndi")
    assert tbl["tertile"].tolist() == ["Low Risk", "Moderate Risk", "High Risk"]
    assert tbl["n"].tolist() == [20, 20, 20]
    assert tbl["events"].tolist() == [2, 5, 10]
    assert tbl["event_rate"].tolist() == pytest.approx([0.1, 0.25, 0.5])


def test_odds_ratios_match_closed_form(tertile_frame):
    out = tertile_odds_ratios(tertile_frame(CELLS), tertile_col="tertile", outcome_col="ndi")
    by = out.set_index("tertile")
    assert (out["status"] == "PASS").all()

    ref = by.loc["Low Risk"]
    assert bool(ref["is_reference"])
    assert ref["odds_ratio"] == 1.0
    assert math.isnan(ref["or_ci_lo"])

    for label, (n, k) in [("Moderate Risk", CELLS["Moderate Risk"]), ("High Risk", CELLS["High Risk"])]:
        or_, lo, hi = _wald_or(k, n - k, 2, 18)
        row = by.loc[label]
        assert row["odds_ratio"] == pytest.approx(or_, rel=1e-4)
        assert row["or_ci_lo"] == pytest.approx(lo, rel=1e-3)
        assert row["or_ci_hi"] == pytest.approx(hi, rel=1e-3)
        assert 0.0 < row["p_value"] < 1.0
        assert row["n"] == n and row["events"] == k

    assert by.loc["Moderate Risk", "odds_ratio"] == pytest.approx(3.0, rel=1e-4)
    assert by.loc["High Risk", "odds_ratio"] == pytest.approx(9.0, rel=1e-4)


def test_empty_tertile_is_reported_and_dropped(tertile_frame):
    cells = {"Low Risk": (20, 2), "Moderate Risk": (20, 5)}
    out = tertile_odds_ratios(tertile_frame(cells), tertile_col="tertile", outcome_col="ndi")
    by = out.set_index("tertile")
    assert by.loc["High Risk", "status"] == "EMPTY"
    assert by.loc["High Risk", "n"] == 0
    assert by.loc["Moderate Risk", "status"] == "PASS"
    assert by.loc["Moderate Risk", "odds_ratio"] == pytest.approx(3.0, rel=1e-4)


def test_missing_reference_gives_failed_rows(tertile_frame):
    cells = {"Moderate Risk": (20, 5), "High Risk": (20, 10)}
    out = tertile_odds_ratios(tertile_frame(cells), tertile_col="tertile", outcome_col="ndi")
    present = out[out["n"] > 0]
    assert (present["status"] == "FAILED").all()
    assert present["reason"].str.contains("reference").all()


def test_single_class_outcome_gives_failed_rows(tertile_frame):
    cells = {"Low Risk": (10, 0), "Moderate Risk": (10, 0), "High Risk": (10, 0)}
    out = tertile_odds_ratios(tertile_frame(cells), tertile_col="tertile", outcome_col="ndi")
    assert (out["status"] == "FAILED").all()


def test_alternative_reference(tertile_frame):
    out = tertile_odds_ratios(
        tertile_frame(CELLS), tertile_col="tertile", outcome_col="ndi", reference="High Risk"
    )
    by = out.set_index("tertile")
    assert bool(by.loc["High Risk", "is_reference"])
    assert by.loc["Low Risk", "odds_ratio"] == pytest.approx(1 / 9.0, rel=1e-4)


def test_unknown_reference_rejected(tertile_frame):
    with pytest.raises(ValueError):
        tertile_odds_ratios(tertile_frame(CELLS), tertile_col="tertile", outcome_col="ndi", reference="Top")


def test_trend_test_detects_gradient(tertile_frame):
    out = tertile_trend_test(tertile_frame(CELLS), tertile_col="tertile", outcome_col="ndi")
    assert out["status"] == "PASS"
    assert out["chi2_dof"] == 2
    assert out["chi2_p"] < 0.05
    assert out["trend_or_per_tertile"] > 1.0
    assert out["trend_p"] < 0.05


def test_trend_test_skips_single_tertile(tertile_frame):
    out = tertile_trend_test(tertile_frame({"Low Risk": (10, 3)}), tertile_col="tertile", outcome_col="ndi")
    assert out["status"] == "SKIP"


def test_odds_ratio_table_carries_event_rates(tertile_frame):
    out = tertile_odds_ratios(tertile_frame(CELLS), tertile_col="tertile", outcome_col="ndi")
    assert out["event_rate"].tolist() == pytest.approx([0.1, 0.25, 0.5])


def test_tertile_without_events_gives_failed_rows(tertile_frame):
    cells = {"Low Risk": (20, 0), "Moderate Risk": (20, 5), "High Risk": (20, 10)}
    out = tertile_odds_ratios(tertile_frame(cells), tertile_col="tertile", outcome_col="ndi")
    assert (out["status"] == "FAILED").all()
    assert out["reason"].str.contains("separation").all()
    assert out["odds_ratio"].isna().all()
    assert out["events"].tolist() == [0, 5, 10]


def test_trend_test_reports_separated_outcome(tertile_frame):
    cells = {"Low Risk": (20, 0), "Moderate Risk": (20, 0), "High Risk": (20, 20)}
    out = tertile_trend_test(tertile_frame(cells), tertile_col="tertile", outcome_col="ndi")
    assert out["status"] == "PARTIAL"
    assert "separated" in out["reason"]
    assert "trend_or_per_tertile" not in out
    assert out["chi2_p"] < 0.05


def test_trend_test_with_quasi_separation_in_one_tertile_still_fits(tertile_frame):
    cells = {"Low Risk": (20, 0), "Moderate Risk": (20, 5), "High Risk": (20, 10)}
    out = tertile_trend_test(tertile_frame(cells), tertile_col="tertile", outcome_col="ndi")
    assert out["status"] == "PASS"
    assert out["trend_or_per_tertile"] > 1.0
