"""Shared pytest fixtures for survey_moe tests."""

import json

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest


EXPORT = """\
"Survey export: City Rider Survey"
"Generated 2024-03-01 09:00"
CityID,RecipientEmail,EndDate,Q1,Q2,Q7_1,Q7_2,Q7_3
SEA,a@x.com,2024-02-01 10:00,Daily,Very satisfied,Cost,,Safety
SEA,b@x.com,2024-02-01 11:00,Weekly,Somewhat dissatisfied,,Time,
PDX,A@x.com ,2024-02-03 08:00,Monthly,Very dissatisfied,Cost,Time,Safety
PDX,c@x.com,2024-02-02 12:00,Weekly,,,,
SEA,d@x.com,2024-02-02 13:00,Daily,Somewhat satisfied,,,Safety
"""

DEMOGRAPHICS = """\
email,age_group,gender
a@x.com,18-34,F
b@x.com,35-54,M
c@x.com,35-54,F
"""


@pytest.fixture
def responses() -> pd.DataFrame:
    """Already-cleaned responses: one row per respondent."""
    return pd.DataFrame({
        "email": ["a@x.com", "b@x.com", "c@x.com", "d@x.com", "e@x.com"],
        "freq": ["Daily", "Weekly", "Weekly", np.nan, "Monthly"],
        "age_group": ["18-34", "35-54", "35-54", "18-34", np.nan],
        "Q7_1": [True, False, True, False, False],
        "Q7_2": [False, False, True, False, True],
        "Q7_3": [True, False, False, False, False],
    })


@pytest.fixture
def export_csv(tmp_path):
    path = tmp_path / "responses.csv"
    path.write_text(EXPORT, encoding="utf-8")
    return path


@pytest.fixture
def demographics_csv(tmp_path):
    path = tmp_path / "demographics.csv"
    path.write_text(DEMOGRAPHICS, encoding="utf-8")
    return path


@pytest.fixture
def config_json(tmp_path):
    cfg = {
        "skip_rows": 2,
        "rename": {
            "CityID": "city",
            "RecipientEmail": "email",
            "EndDate": "submitted_at",
            "Q1": "freq",
            "Q2": "satisfaction",
        },
        "questions": [
            {"code": "freq", "title": "How often do you ride?",
             "order": ["Daily", "Weekly", "Monthly"], "group_by": ["age_group"]},
            {"code": "satisfaction", "include_missing": True,
             "collapse": {
                 "Very satisfied": "Satisfied",
                 "Somewhat satisfied": "Satisfied",
                 "Somewhat dissatisfied": "Dissatisfied",
                 "Very dissatisfied": "Dissatisfied",
             }},
            {"code": "barriers", "kind": "multi", "prefix": "Q7_"},
        ],
    }
    path = tmp_path / "questions.json"
    path.write_text(json.dumps(cfg), encoding="utf-8")
    return path
