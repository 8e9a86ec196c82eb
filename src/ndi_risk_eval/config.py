"""YAML configuration loader with minimal validation."""

from __future__ import annotations

import copy
import math
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

SCORE_DIRECTIONS = ("higher_is_riskier", "lower_is_riskier")

DEFAULT_CONFIG: Dict[str, Any] = {
    "columns": {
        "participant_id": "participant_id",
        "domains": {
            "cognitive": "cognitive_score",
            "language": "language_score",
            "motor": "motor_score",
        },
        "composites": {
            "supervised": {
                "score": "supervised_risk_score",
                "tertile": "supervised_risk_tertile",
            },
            "unsupervised": {
                "score": "unsupervised_risk_score",
                "tertile": "unsupervised_risk_tertile",
            },
        },
    },
    "ndi": {"threshold": 85.0},
    "discrimination": {
        "score_direction": "higher_is_riskier",
        "n_boot": 2000,
        "ci_level": 0.95,
        "stratified_bootstrap": True,
        "seed": 2024,
    },
    "tertiles": {"reference": "Low Risk", "min_group_size": 5},
    "plots": {"dpi": 160},
}


def load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Config not found: {path}")
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"Config root must be a mapping/dict. Got: {type(data)}")
    return data


def cfg_get(cfg: Dict[str, Any], key_path: str, default: Any = None) -> Any:
    """Fetch a nested key like 'discrimination.n_boot' with a default."""
    cur: Any = cfg
    for part in key_path.split("."):
        if not isinstance(cur, dict) or part not in cur:
            return default
        cur = cur[part]
    return cur


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = _deep_merge(out[key], value)
        else:
            out[key] = copy.deepcopy(value)
    return out


@dataclass(frozen=True)
class CompositeColumns:
    name: str
    score: str
    tertile: str


@dataclass(frozen=True)
class AnalysisConfig:
    """Resolved analysis settings.

    `domains` maps a domain label (cognitive/language/motor) to its score
    column; `composites` keeps the YAML order, which is also the order used in
    tables and plots.
    """

    participant_id: str
    domains: Tuple[Tuple[str, str], ...]
    composites: Tuple[CompositeColumns, ...]
    ndi_threshold: float = 85.0
    score_direction: str = "higher_is_riskier"
    n_boot: int = 2000
    ci_level: float = 0.95
    stratified_bootstrap: bool = True
    seed: int = 2024
    reference_tertile: str = "Low Risk"
    min_group_size: int = 5
    dpi: int = 160

    @property
    def domain_columns(self) -> Tuple[str, ...]:
        return tuple(col for _, col in self.domains)

    def composite(self, name: str) -> CompositeColumns:
        for comp in self.composites:
            if comp.name == name:
                return comp
        raise KeyError(f"Unknown composite: {name}")

    @classmethod
    def from_mapping(cls, cfg: Dict[str, Any]) -> "AnalysisConfig":
        merged = _deep_merge(DEFAULT_CONFIG, cfg or {})
        # column maps replace the defaults instead of merging into them
        for key in ("domains", "composites"):
            user_value = cfg_get(cfg or {}, f"columns.{key}")
            if user_value is not None:
                merged["columns"][key] = copy.deepcopy(user_value)

        domains_raw = cfg_get(merged, "columns.domains", {})
        if not isinstance(domains_raw, dict) or not domains_raw:
            raise ValueError("columns.domains must be a non-empty mapping of domain -> column")
        domains = tuple((str(k), str(v)) for k, v in domains_raw.items())

        comps_raw = cfg_get(merged, "columns.composites", {})
        if not isinstance(comps_raw, dict) or not comps_raw:
            raise ValueError("columns.composites must be a non-empty mapping")
        composites = []
        for name, spec in comps_raw.items():
            if not isinstance(spec, dict) or "score" not in spec:
                raise ValueError(f"columns.composites.{name} must define at least 'score'")
            composites.append(
                CompositeColumns(
                    name=str(name),
                    score=str(spec["score"]),
                    tertile=str(spec.get("tertile") or f"{spec['score']}_tertile"),
                )
            )

        out = cls(
            participant_id=str(cfg_get(merged, "columns.participant_id")),
            domains=domains,
            composites=tuple(composites),
            ndi_threshold=float(cfg_get(merged, "ndi.threshold")),
            score_direction=str(cfg_get(merged, "discrimination.score_direction")),
            n_boot=int(cfg_get(merged, "discrimination.n_boot")),
            ci_level=float(cfg_get(merged, "discrimination.ci_level")),
            stratified_bootstrap=bool(cfg_get(merged, "discrimination.stratified_bootstrap")),
            seed=int(cfg_get(merged, "discrimination.seed")),
            reference_tertile=str(cfg_get(merged, "tertiles.reference")),
            min_group_size=int(cfg_get(merged, "tertiles.min_group_size")),
            dpi=int(cfg_get(merged, "plots.dpi")),
        )
        out.validate()
        return out

    def validate(self) -> None:
        if not math.isfinite(self.ndi_threshold):
            raise ValueError(f"ndi.threshold must be finite. Got: {self.ndi_threshold}")
        if self.score_direction not in SCORE_DIRECTIONS:
            raise ValueError(f"Unknown score_direction {self.score_direction!r}; expected one of {SCORE_DIRECTIONS}")
        if self.n_boot < 1:
            raise ValueError(f"discrimination.n_boot must be >= 1. Got: {self.n_boot}")
        if not 0.0 < self.ci_level < 1.0:
            raise ValueError(f"discrimination.ci_level must be in (0, 1). Got: {self.ci_level}")
        if self.min_group_size < 1:
            raise ValueError(f"tertiles.min_group_size must be >= 1. Got: {self.min_group_size}")

    def with_overrides(self, **kwargs: Any) -> "AnalysisConfig":
        values = {k: v for k, v in kwargs.items() if v is not None}
        if not values:
            return self
        out = replace(self, **values)
        out.validate()
        return out


def load_config(path: Optional[Path] = None) -> AnalysisConfig:
    """Load a YAML config merged over the built-in defaults."""
    if path is None:
        return AnalysisConfig.from_mapping({})
    return AnalysisConfig.from_mapping(load_yaml(path))
