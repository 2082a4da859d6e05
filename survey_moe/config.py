import json
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import pandas as pd
from dotenv import load_dotenv

from .metrics import Z_95

load_dotenv()

KINDS = {"single", "multi"}


class ConfigError(ValueError):
    """Invalid question configuration."""


class Settings:
    OUTPUT_DIR = os.getenv("SURVEY_OUTPUT_DIR", "out")
    LOG_LEVEL = os.getenv("SURVEY_LOG_LEVEL", "INFO")

    @staticmethod
    def z() -> float:
        # read on use
        raw = os.getenv("SURVEY_Z")
        if raw is None or raw.strip() == "":
            return Z_95
        try:
            z = float(raw)
        except ValueError as e:
            raise ConfigError(f"SURVEY_Z must be a number, got {raw!r}") from e
        if not z > 0:
            raise ConfigError(f"SURVEY_Z must be > 0, got {raw!r}")
        return z


@dataclass
class QuestionSpec:
    """
    How one question is tabulated.

    include_missing is the per-question missing-value policy: True keeps blanks
    as a `missing_label` category (and in the denominator), False drops them.
    """
    code: str
    kind: str = "single"
    title: str = ""
    column: Optional[str] = None
    columns: List[str] = field(default_factory=list)
    prefix: Optional[str] = None
    include_missing: bool = False
    missing_label: str = "No response"
    order: Optional[List[str]] = None
    collapse: Optional[Dict[str, str]] = None
    group_by: List[str] = field(default_factory=list)

    def __post_init__(self):
        if self.kind not in KINDS:
            raise ConfigError(f"{self.code}: kind must be one of {sorted(KINDS)}, got {self.kind!r}")
        if self.kind == "single" and self.column is None:
            self.column = self.code
        if self.kind == "multi" and not (self.columns or self.prefix):
            raise ConfigError(f"{self.code}: multi-select question needs 'columns' or 'prefix'")
        if isinstance(self.group_by, str):
            self.group_by = [self.group_by]
        if self.kind == "multi" and (self.group_by or self.include_missing):
            raise ConfigError(f"{self.code}: group_by and include_missing apply to single-select questions only")
        self.title = self.title or self.code

    def indicator_columns(self, df: pd.DataFrame) -> List[str]:
        if self.columns:
            return list(self.columns)
        cols = [c for c in df.columns if str(c).startswith(self.prefix)]
        if not cols:
            raise ConfigError(f"{self.code}: no columns start with {self.prefix!r}")
        return cols


@dataclass
class SurveyConfig:
    questions: List[QuestionSpec]
    skip_rows: int = 2
    email_col: str = "email"
    ts_col: str = "submitted_at"
    join_key: str = "email"
    rename: Dict[str, str] = field(default_factory=dict)
    z: float = field(default_factory=Settings.z)

    def __post_init__(self):
        seen = set()
        for q in self.questions:
            if q.code in seen:
                raise ConfigError(f"Duplicate question code: {q.code!r}")
            seen.add(q.code)


def load_config(path: str) -> SurveyConfig:
    """Read a JSON question file: {"questions": [...], "skip_rows": 2, ...}."""
    try:
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"Config not found: {path}") from e
    except OSError as e:
        raise ConfigError(f"Could not read config {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Config {path} is not valid JSON: {e}") from e

    if not isinstance(raw, dict) or not raw.get("questions"):
        raise ConfigError(f"Config {path} must be an object with a non-empty 'questions' list")

    try:
        questions = [QuestionSpec(**q) for q in raw.pop("questions")]
        return SurveyConfig(questions=questions, **raw)
    except TypeError as e:
        raise ConfigError(f"Config {path}: {e}") from e
