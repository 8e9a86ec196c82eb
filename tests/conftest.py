from __future__ import annotations

import pandas as pd
import pytest

from ndi_risk_eval.cohort import prepare_cohort
from ndi_risk_eval.config import AnalysisConfig
from ndi_risk_eval.synthetic import make_synthetic_cohort


@pytest.fixture
def cfg() -> AnalysisConfig:
    return AnalysisConfig.from_mapping({"discrimination": {"n_boot": 100, "seed": 7}})


@pytest.fixture
def raw_cohort() -> pd.DataFrame:
    return make_synthetic_cohort(240, seed=11, missing_frac=0.03)


@pytest.fixture
def cohort(raw_cohort: pd.DataFrame, cfg: AnalysisConfig) -> pd.DataFrame:
    return prepare_cohort(raw_cohort, cfg)


@pytest.fixture
def tertile_frame():
    """Builds rows per tertile from {label: (n, events)}."""

    def _build(cells: dict[str, tuple[int, int]]) -> pd.DataFrame:
        rows = []
        for label, (n, k) in cells.items():
            rows += [{"tertile": label, "ndi": 1}] * k + [{"tertile": label, "ndi": 0}] * (n - k)
        return pd.DataFrame(rows)

    return _build
