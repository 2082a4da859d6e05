from __future__ import annotations
import os, textwrap
from typing import Optional, Tuple
import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
from matplotlib.ticker import PercentFormatter

from .metrics import FREQ_COLUMNS

def _ensure_dir(p: Optional[str]) -> None:
    if p:
        d = os.path.dirname(p)
        if d and not os.path.exists(d):
            os.makedirs(d, exist_ok=True)

def _wrap(s: str, width: int) -> str:
    s = (s or "").strip()
    return "\n".join(textwrap.wrap(s, width=width)) if s else ""


def plot_frequency(
    table: pd.DataFrame,
    out_path: Optional[str] = None,
    show: bool = False,
    *,
    title: str = "",
    wrap: int = 28,
) -> Tuple[plt.Figure, plt.Axes, Optional[str]]:
    """
    Bar chart of `proportion` per category with ±margin_of_error error bars
    and a percentage label on each bar.

    Tables with a `question` (multi-select) or `group` (by-demographic) column
    are drawn as grouped bars: one group per level, one bar per category.
    """
    miss = set(FREQ_COLUMNS) - set(table.columns)
    if miss:
        raise ValueError(f"table is missing columns: {sorted(miss)}")
    if table.empty:
        raise ValueError("Nothing to plot: table is empty.")

    # multi-select tables group by question, by-demographic tables by group
    key = next((c for c in ("question", "group") if c in table.columns), None)
    grouped = key is not None
    if grouped:
        groups = list(dict.fromkeys(table[key]))
        cats = list(dict.fromkeys(table["category"]))
    else:
        groups = [None]
        cats = list(table["category"])

    n_bars = len(groups) * len(cats) if grouped else len(cats)
    fig, ax = plt.subplots(figsize=(max(6.0, 0.9 * n_bars + 2), 4.5))

    width = 0.8 / len(cats) if grouped else 0.7
    x = np.arange(len(groups) if grouped else len(cats))
    for i, cat in enumerate(cats if grouped else [None]):
        if grouped:
            sub = (table[table["category"] == cat]
                   .set_index(key)
                   .reindex(groups))
            pos = x - 0.4 + width * (i + 0.5)
            label = str(cat)
        else:
            sub = table
            pos = x
            label = None
        p = sub["proportion"].to_numpy(dtype=float)
        moe = sub["margin_of_error"].to_numpy(dtype=float)
        bars = ax.bar(pos, np.nan_to_num(p), width=width, yerr=np.nan_to_num(moe),
                      capsize=4, label=label, alpha=0.85)
        for rect, val in zip(bars, p):
            if np.isnan(val):
                continue
            ax.annotate(f"{val:.0%}", (rect.get_x() + rect.get_width() / 2, rect.get_height()),
                        xytext=(0, 3), textcoords="offset points",
                        ha="center", va="bottom", fontsize=8)

    ticks = groups if grouped else cats
    ax.set_xticks(x)
    ax.set_xticklabels([_wrap(str(t), wrap) for t in ticks], fontsize=9)
    ax.set_ylabel("Share of responses")
    ax.set_ylim(0, min(1.0, float(np.nanmax(table["upper"]))) + 0.1)
    ax.yaxis.set_major_formatter(PercentFormatter(1.0, decimals=0))
    n = int(table["total"].max())
    ax.set_title(f"{_wrap(title, 70)}\n(n = {n}, 95% CI)" if title else f"n = {n}, 95% CI")
    if grouped:
        ax.legend(fontsize=8, ncols=min(4, len(cats)))
    fig.tight_layout()

    saved = None
    if out_path:
        _ensure_dir(out_path)
        fig.savefig(out_path, dpi=150, bbox_inches="tight")
        saved = out_path

    if show:
        plt.show()
    else:
        plt.close(fig)
    return fig, ax, saved


def save_table(table: pd.DataFrame, out_csv_path: str) -> str:
    """Write a frequency table to CSV (parent dirs are created)."""
    _ensure_dir(out_csv_path)
    table.to_csv(out_csv_path, index=False)
    return out_csv_path
