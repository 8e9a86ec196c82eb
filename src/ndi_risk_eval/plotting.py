"""Static figures: ROC curves and tertile odds-ratio forest plot."""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from .discrimination import DiscriminationResult

_COLORS = ["#1f5b7a", "#c13a24", "#2e7d32", "#6a3d9a"]


def plot_roc_curves(results: Sequence[DiscriminationResult], out_path: Path, *, dpi: int = 160) -> Path:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    fig, ax = plt.subplots(figsize=(6.4, 6.0))
    ax.plot([0.0, 1.0], [0.0, 1.0], color="#888888", linestyle="--", linewidth=1.0, label="Chance")

    if not results:
        ax.text(0.5, 0.5, "No evaluable composites", ha="center", va="center")

    for i, res in enumerate(results):
        color = _COLORS[i % len(_COLORS)]
        roc = res.roc
        pct = int(round(res.ci_level * 100))
        ax.plot(
            roc["fpr"],
            roc["tpr"],
            color=color,
            linewidth=2.0,
            label=f"{res.name}: AUC {res.auc:.3f} ({pct}% CI {res.ci_lo:.3f}-{res.ci_hi:.3f})",
        )
        cut = res.cutpoint
        ax.scatter(
            [1.0 - cut.specificity],
            [cut.sensitivity],
            color=color,
            edgecolor="black",
            s=55,
            zorder=3,
        )
        ax.annotate(
            f"cut={cut.threshold:.3g}",
            xy=(1.0 - cut.specificity, cut.sensitivity),
            xytext=(8, -14),
            textcoords="offset points",
            fontsize=8,
            color=color,
        )

    ax.set_xlim(0.0, 1.0)
    ax.set_ylim(0.0, 1.02)
    ax.set_xlabel("1 - Specificity")
    ax.set_ylabel("Sensitivity")
    ax.set_title("Composite risk scores vs NDI")
    ax.legend(loc="lower right", fontsize=8)
    ax.grid(alpha=0.2)
    fig.tight_layout()
    fig.savefig(out_path, dpi=dpi)
    plt.close(fig)
    return out_path


def plot_tertile_odds_ratios(or_table: pd.DataFrame, out_path: Path, *, dpi: int = 160) -> Path:
    """Forest plot; expects columns composite, tertile, odds_ratio, or_ci_lo, or_ci_hi, is_reference."""
    out_path.parent.mkdir(parents=True, exist_ok=True)
    fig, ax = plt.subplots(figsize=(7.2, 4.8))

    use = or_table[np.isfinite(pd.to_numeric(or_table["odds_ratio"], errors="coerce"))].copy()
    if use.empty:
        ax.text(0.5, 0.5, "No estimable odds ratios", ha="center", va="center")
        ax.set_axis_off()
        fig.savefig(out_path, dpi=dpi)
        plt.close(fig)
        return out_path

    composites = list(dict.fromkeys(use["composite"].tolist()))
    ylabels = []
    y = 0
    for i, comp in enumerate(composites):
        color = _COLORS[i % len(_COLORS)]
        for _, row in use[use["composite"] == comp].iterrows():
            ylabels.append((y, f"{comp}: {row['tertile']}"))
            if bool(row["is_reference"]):
                ax.scatter([1.0], [y], marker="D", color="white", edgecolor=color, s=40, zorder=3)
            else:
                lo, hi = float(row["or_ci_lo"]), float(row["or_ci_hi"])
                if np.isfinite(lo) and np.isfinite(hi):
                    ax.hlines(y, lo, hi, color=color, linewidth=2.0)
                ax.scatter([float(row["odds_ratio"])], [y], marker="s", color=color, s=45, zorder=3)
            y -= 1
        y -= 1

    ax.axvline(1.0, color="black", linestyle="--", linewidth=1.0)
    ax.set_xscale("log")
    ax.set_yticks([p for p, _ in ylabels])
    ax.set_yticklabels([t for _, t in ylabels], fontsize=8)
    refs = use.loc[use["is_reference"].astype(bool), "tertile"]
    ref_label = f"; reference = {refs.iloc[0]}" if not refs.empty else ""
    ax.set_xlabel(f"Odds ratio for NDI (log scale{ref_label})")
    ax.set_title("NDI odds by risk tertile")
    ax.grid(alpha=0.2, axis="x")
    fig.tight_layout()
    fig.savefig(out_path, dpi=dpi)
    plt.close(fig)
    return out_path
