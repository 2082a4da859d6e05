import logging
import os
import re
from typing import Dict, Optional

import pandas as pd

from .config import QuestionSpec, Settings, SurveyConfig
from .data_prep import dedupe_respondents, join_demographics, load_demographics, load_responses
from .metrics import (
    collapse_categories,
    frequency_by_group,
    frequency_table,
    multiselect_long,
    multiselect_table,
)
from .viz import plot_frequency, save_table

logger = logging.getLogger(__name__)


def _single(df: pd.DataFrame, q: QuestionSpec, z: float) -> pd.DataFrame:
    answers = df[q.column]
    if q.collapse:
        answers = collapse_categories(answers, q.collapse)
    return frequency_table(answers, include_missing=q.include_missing,
                           missing_label=q.missing_label, order=q.order, z=z)


def _multi(df: pd.DataFrame, q: QuestionSpec, z: float) -> pd.DataFrame:
    long = multiselect_long(df, q.indicator_columns(df))
    if q.collapse:
        long["response"] = collapse_categories(long["response"], q.collapse)
    return multiselect_table(long, order=q.order, z=z)


def analyze(df: pd.DataFrame, config: SurveyConfig) -> Dict[str, pd.DataFrame]:
    """One frequency table per configured question (plus any by-group breakdowns)."""
    tables: Dict[str, pd.DataFrame] = {}
    for q in config.questions:
        if q.kind == "single":
            if q.column not in df.columns:
                raise ValueError(f"{q.code}: column {q.column!r} not in responses")
            tables[q.code] = _single(df, q, config.z)
            for g in q.group_by:
                if g not in df.columns:
                    raise ValueError(f"{q.code}: group_by column {g!r} not in responses (missing demographics?)")
                answers = df[[q.column, g]].copy()
                if q.collapse:
                    answers[q.column] = collapse_categories(answers[q.column], q.collapse)
                name = f"{q.code}_by_{g}"
                if name in tables or any(other.code == name for other in config.questions):
                    raise ValueError(f"{q.code}: breakdown table {name!r} clashes with another table name")
                tables[name] = frequency_by_group(
                    answers, q.column, g, include_missing=q.include_missing,
                    missing_label=q.missing_label, order=q.order, z=config.z)
        else:
            tables[q.code] = _multi(df, q, config.z)
        logger.debug("%s: %d rows", q.code, len(tables[q.code]))
    return tables


def output_names(codes) -> Dict[str, str]:
    """
    File stem per table code. Raises ValueError when two codes reduce to the
    same stem, compared case-insensitively.
    """
    names: Dict[str, str] = {}
    seen: Dict[str, str] = {}
    for code in codes:
        stem = re.sub(r"[^A-Za-z0-9_.-]+", "_", code)
        clash = seen.get(stem.lower())
        if clash is not None:
            raise ValueError(f"Tables {clash!r} and {code!r} would both be written as {stem!r}")
        seen[stem.lower()] = code
        names[code] = stem
    return names


def run(
    config: SurveyConfig,
    responses_path: str,
    demographics_path: Optional[str] = None,
    out_dir: Optional[str] = None,
    charts: bool = True,
) -> Dict[str, pd.DataFrame]:
    """
    load -> dedupe -> join -> analyze -> write
    Writes <out_dir>/<code>.csv and, with charts=True, <out_dir>/<code>.png.
    """
    out_dir = out_dir or Settings.OUTPUT_DIR
    df = load_responses(responses_path, skip_rows=config.skip_rows, rename=config.rename)
    df = dedupe_respondents(df, email_col=config.email_col, ts_col=config.ts_col)
    if demographics_path:
        df = join_demographics(df, load_demographics(demographics_path), key=config.join_key)

    tables = analyze(df, config)
    names = output_names(tables)
    titles = {q.code: q.title for q in config.questions}
    for code, tbl in tables.items():
        base = os.path.join(out_dir, names[code])
        save_table(tbl, base + ".csv")
        if charts:
            title = titles.get(code) or titles.get(code.split("_by_")[0], code)
            plot_frequency(tbl, base + ".png", title=title)
    logger.info("Wrote %d tables to %s", len(tables), out_dir)
    return tables
