from __future__ import annotations
import logging
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

Z_95 = 1.96  # two-tailed 95% critical value

FREQ_COLUMNS = ["category", "count", "total", "proportion", "margin_of_error", "lower", "upper"]


class InsufficientSampleError(ValueError):
    """Raised when a frequency table would have a zero denominator."""


def margin_of_error(p, n, z: float = Z_95):
    """
    Normal-approximation half-width of the confidence interval for a proportion:
      z * sqrt(p * (1 - p) / n)
    Accepts scalars or array-likes (elementwise).
    """
    p_arr = np.asarray(p, dtype=float)
    n_arr = np.asarray(n, dtype=float)
    if np.any(n_arr <= 0):
        raise InsufficientSampleError("margin_of_error needs n > 0")
    if np.any((p_arr < 0) | (p_arr > 1)):
        raise ValueError(f"proportion must be within [0, 1], got {p}")
    moe = z * np.sqrt(p_arr * (1 - p_arr) / n_arr)
    if np.ndim(moe) == 0:
        return float(moe)
    if isinstance(p, pd.Series):
        return pd.Series(moe, index=p.index)
    return moe


def _with_bounds(tbl: pd.DataFrame, z: float) -> pd.DataFrame:
    # proportion, moe and (unclamped) bounds from count/total
    tbl["proportion"] = tbl["count"] / tbl["total"]
    tbl["margin_of_error"] = margin_of_error(tbl["proportion"], tbl["total"], z=z)
    tbl["lower"] = tbl["proportion"] - tbl["margin_of_error"]
    tbl["upper"] = tbl["proportion"] + tbl["margin_of_error"]
    return tbl


def frequency_table(
    responses: Iterable,
    *,
    include_missing: bool = False,
    missing_label: str = "No response",
    order: Optional[Sequence[str]] = None,
    z: float = Z_95,
) -> pd.DataFrame:
    """
    Single-select frequency table.

    include_missing=False drops missing answers before counting (they are not in
    the denominator); True keeps them as an explicit `missing_label` category.
    Rows come out in first-seen order unless `order` is given.
    """
    s = pd.Series(responses if isinstance(responses, pd.Series) else list(responses), dtype=object)
    blank = s.map(_is_blank).astype(bool)
    if include_missing:
        s = s.where(~blank, missing_label)
    else:
        s = s[~blank]

    if s.empty:
        raise InsufficientSampleError("No responses left to count (total = 0).")

    counts = s.groupby(s, sort=False).size()
    tbl = pd.DataFrame({"category": counts.index.astype(object), "count": counts.values.astype(int)})
    tbl["total"] = int(tbl["count"].sum())
    tbl = _with_bounds(tbl, z)[FREQ_COLUMNS]

    if order is not None:
        tbl = apply_order(tbl, order)
    return tbl.reset_index(drop=True)


def _is_blank(v) -> bool:
    if v is None:
        return True
    if isinstance(v, str):
        return v.strip() == ""
    try:
        return bool(pd.isna(v))
    except (TypeError, ValueError):
        return False


def apply_order(table: pd.DataFrame, order: Sequence[str], *, column: str = "category") -> pd.DataFrame:
    """
    Reorder rows to a caller-supplied ranking (e.g. a fixed Likert order).
    Labels not in `order` are kept, after the ranked ones, in their current order.
    """
    if column not in table.columns:
        raise ValueError(f"table is missing column: {column!r}")
    rank: Dict[str, int] = {label: i for i, label in enumerate(order)}
    key = table[column].map(lambda c: rank.get(c, len(rank)))
    return table.assign(_rank=key).sort_values("_rank", kind="stable").drop(columns="_rank").reset_index(drop=True)


def collapse_categories(responses: pd.Series, mapping: Dict[str, str]) -> pd.Series:
    """
    Top-2-box style recode: merge adjacent scale levels into coarser labels.
    Unmapped labels pass through; missing stays missing.
    """
    s = pd.Series(responses, dtype=object)
    return s.map(lambda v: mapping.get(v, v) if not _is_blank(v) else np.nan)


def multiselect_long(
    df: pd.DataFrame,
    columns: Sequence[str],
    *,
    id_col: Optional[str] = None,
    question_col: str = "question",
    response_col: str = "response",
    selected_label: str = "Selected",
) -> pd.DataFrame:
    """
    Wide -> long reshape for grouped indicator columns.

    One output row per non-missing (respondent, column) cell:
      question = indicator column name, response = cell label
    False / 0 / empty / NaN cells are not selections and are dropped;
    True and numeric 1 become `selected_label`.
    """
    columns = list(columns)
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise ValueError(f"DataFrame is missing indicator columns: {missing}")
    if id_col is not None and id_col not in df.columns:
        raise ValueError(f"DataFrame is missing id column: {id_col!r}")

    id_vars = [id_col] if id_col else []
    wide = df[id_vars + columns].copy()
    if not id_col:
        wide = wide.reset_index(drop=True).rename_axis("respondent").reset_index()
        id_vars = ["respondent"]

    long = wide.melt(id_vars=id_vars, value_vars=columns, var_name=question_col, value_name=response_col)

    def _label(v):
        if v is True or (isinstance(v, np.bool_) and bool(v)):
            return selected_label
        if v is False or (isinstance(v, np.bool_) and not bool(v)) or _is_blank(v):
            return np.nan
        # numeric 0/1 indicator encoding
        if isinstance(v, (int, float, np.integer, np.floating)):
            if v == 0:
                return np.nan
            if v == 1:
                return selected_label
        return v

    long[response_col] = long[response_col].map(_label)
    # melt is column-major: respondents stay in input order within each question
    return long.dropna(subset=[response_col]).reset_index(drop=True)


def multiselect_table(
    long_df: pd.DataFrame,
    *,
    question_col: str = "question",
    response_col: str = "response",
    order: Optional[Sequence[str]] = None,
    base: Optional[int] = None,
    z: float = Z_95,
) -> pd.DataFrame:
    """
    Frequency table per (question, response) from long-form selections.

    By default total = selections within the question group, so proportions are
    shares of that question's indicator set. Pass `base` (e.g. number of survey
    respondents) to use a fixed denominator instead.
    """
    need = {question_col, response_col}
    miss = need - set(long_df.columns)
    if miss:
        raise ValueError(f"long_df is missing columns: {sorted(miss)}")
    if base is not None and base <= 0:
        raise InsufficientSampleError(f"base must be > 0, got {base}")

    sel = long_df[[question_col, response_col]].copy()
    sel = sel[~sel[response_col].map(_is_blank).astype(bool)]
    if sel.empty:
        raise InsufficientSampleError("No selections to count (total = 0).")

    counts = sel.groupby([question_col, response_col], sort=False).size().rename("count").reset_index()
    if base is None:
        counts["total"] = counts.groupby(question_col)["count"].transform("sum").astype(int)
    else:
        counts["total"] = int(base)
    if (counts["count"] > counts["total"]).any():
        raise ValueError("base is smaller than the number of selections for some question")

    tbl = counts.rename(columns={response_col: "category", question_col: "question"})
    tbl["count"] = tbl["count"].astype(int)
    tbl = _with_bounds(tbl, z)[["question"] + FREQ_COLUMNS]

    if order is not None:
        parts: List[pd.DataFrame] = [apply_order(g, order) for _, g in tbl.groupby("question", sort=False)]
        tbl = pd.concat(parts, ignore_index=True)
    return tbl.reset_index(drop=True)


def frequency_by_group(df: pd.DataFrame, column: str, group_col: str, **kwargs) -> pd.DataFrame:
    """Single-select table within each level of a (demographic) grouping column."""
    miss = {column, group_col} - set(df.columns)
    if miss:
        raise ValueError(f"DataFrame is missing columns: {sorted(miss)}")

    parts = []
    for level, sub in df.groupby(group_col, sort=False, dropna=True):
        try:
            tbl = frequency_table(sub[column], **kwargs)
        except InsufficientSampleError:
            logger.warning("Skipping %s=%r for %s: no responses", group_col, level, column)
            continue
        tbl.insert(0, "group", level)
        parts.append(tbl)

    if not parts:
        raise InsufficientSampleError(f"No group of {group_col!r} has responses for {column!r}.")
    return pd.concat(parts, ignore_index=True)
