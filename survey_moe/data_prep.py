import logging
from typing import Dict, Optional

import pandas as pd

logger = logging.getLogger(__name__)


class SurveyLoadError(ValueError):
    """Input file is missing, unreadable, or lacks required columns."""


class JoinKeyError(ValueError):
    """Two datasets share no usable join key."""


def _read_csv(path: str, **kwargs) -> pd.DataFrame:
    try:
        df = pd.read_csv(path, encoding="utf-8-sig", **kwargs)
    except FileNotFoundError as e:
        raise SurveyLoadError(f"File not found: {path}") from e
    except (pd.errors.EmptyDataError, pd.errors.ParserError, UnicodeDecodeError) as e:
        raise SurveyLoadError(f"Could not parse {path}: {e}") from e
    except OSError as e:
        raise SurveyLoadError(f"Could not read {path}: {e}") from e
    df.columns = [str(c).strip() for c in df.columns]
    return df


def load_responses(path: str, *, skip_rows: int = 2, rename: Optional[Dict[str, str]] = None) -> pd.DataFrame:
    """
    Load a survey-platform CSV export.
      - the first `skip_rows` lines are export metadata and are skipped
      - the next line is the header (platform column ids)
      - `rename` maps platform ids -> question codes
    """
    df = _read_csv(path, skiprows=skip_rows)
    if df.empty:
        raise SurveyLoadError(f"No response rows in {path}")
    if rename:
        absent = [c for c in rename if c not in df.columns]
        if absent:
            logger.warning("rename: columns not in %s: %s", path, absent)
        df = df.rename(columns=rename)
    logger.info("Loaded %d responses x %d columns from %s", len(df), len(df.columns), path)
    return df


def load_demographics(path: str) -> pd.DataFrame:
    df = _read_csv(path)
    logger.info("Loaded %d demographic rows from %s", len(df), path)
    return df


def normalize_email(s: pd.Series) -> pd.Series:
    s = s.astype("string").str.strip().str.lower()
    return s.replace("", pd.NA)


def dedupe_respondents(df: pd.DataFrame, *, email_col: str = "email", ts_col: str = "submitted_at") -> pd.DataFrame:
    """
    Keep one row per email: the earliest submission.
    Equal timestamps keep the first row in input order; unparseable timestamps
    sort after every valid one. Rows without an email are dropped.
    """
    missing = [c for c in (email_col, ts_col) if c not in df.columns]
    if missing:
        raise SurveyLoadError(f"Responses are missing required columns: {missing}. Found: {list(df.columns)}")

    out = df.reset_index(drop=True)
    out[email_col] = normalize_email(out[email_col])
    no_email = out[email_col].isna()
    if no_email.any():
        logger.warning("Dropping %d responses without an email", int(no_email.sum()))
        out = out.loc[~no_email]

    ts = pd.to_datetime(out[ts_col], errors="coerce")
    if ts.isna().any():
        logger.warning("%d responses have an unparseable %s", int(ts.isna().sum()), ts_col)

    # mergesort is stable -> ties resolve to input order
    order = ts.sort_values(kind="mergesort", na_position="last").index
    out = out.loc[order]
    kept = out.loc[~out[email_col].duplicated(keep="first")]
    kept = kept.sort_index()  # back to input order

    dropped = len(out) - len(kept)
    if dropped:
        logger.info("Removed %d duplicate responses (%d unique respondents)", dropped, len(kept))
    return kept.reset_index(drop=True)


def join_demographics(df: pd.DataFrame, demo: pd.DataFrame, *, key: str = "email", how: str = "left") -> pd.DataFrame:
    """
    Left-join demographic attributes onto responses by `key`.
    Raises JoinKeyError instead of silently producing all-null columns.
    """
    for name, frame in (("responses", df), ("demographics", demo)):
        if key not in frame.columns:
            raise JoinKeyError(f"Join key {key!r} not in {name} columns: {list(frame.columns)}")

    left = df.copy()
    right = demo.copy()
    left["_key"] = normalize_email(left[key]) if key == "email" else left[key]
    right["_key"] = normalize_email(right[key]) if key == "email" else right[key]

    matched = left["_key"].isin(set(right["_key"].dropna()))
    if not matched.any():
        raise JoinKeyError(f"No {key!r} values of the responses appear in the demographics data")

    right = right.loc[right["_key"].notna()]
    dup = right["_key"].duplicated(keep="first")
    if dup.any():
        logger.warning("Demographics has %d duplicate %s rows; keeping the first", int(dup.sum()), key)
        right = right.loc[~dup]

    right = right.drop(columns=[key])
    overlap = [c for c in right.columns if c in left.columns and c != "_key"]
    if overlap:
        logger.warning("Demographic columns already in responses, suffixed _demo: %s", overlap)

    out = left.merge(right, on="_key", how=how, suffixes=("", "_demo"), validate="many_to_one")
    n_unmatched = int((~matched).sum())
    if n_unmatched:
        logger.info("%d of %d responses have no demographic match", n_unmatched, len(left))
    return out.drop(columns="_key")
