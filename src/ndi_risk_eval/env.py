"""Runtime environment snapshot for run manifests."""

from __future__ import annotations

import os
import platform
from importlib import metadata
from typing import Any, Dict, Optional

# distribution name on the index, not import name
TRACKED_DISTRIBUTIONS = (
    "numpy",
    "pandas",
    "scipy",
    "scikit-learn",
    "statsmodels",
    "matplotlib",
    "PyYAML",
)


def env_snapshot() -> Dict[str, Any]:
    keys = [
        "OMP_NUM_THREADS",
        "MKL_NUM_THREADS",
        "OPENBLAS_NUM_THREADS",
        "MPLBACKEND",
    ]
    return {
        "platform": platform.platform(),
        "python": platform.python_version(),
        **{k: os.environ.get(k) for k in keys},
    }


def library_versions() -> Dict[str, Optional[str]]:
    out: Dict[str, Optional[str]] = {}
    for dist in TRACKED_DISTRIBUTIONS:
        try:
            out[dist] = metadata.version(dist)
        except metadata.PackageNotFoundError:
            out[dist] = None
    return out
