"""NDI clinical-applicability evaluation utilities.

The top-level executable is:

- evaluate_clinical_applicability.py
"""

__all__ = [
    "config",
    "env",
    "logging_utils",
    "manifest",
    "cohort",
    "outcomes",
    "discrimination",
    "tertiles",
    "plotting",
    "report",
    "pipeline",
    "synthetic",
]

__version__ = "0.1.0"
