"""Tests for the question configuration."""

import json

import pandas as pd
import pytest

from survey_moe.config import ConfigError, QuestionSpec, Settings, SurveyConfig, load_config


def test_load_config(config_json):
    cfg = load_config(config_json)
    assert cfg.skip_rows == 2
    assert cfg.rename["Q1"] == "freq"
    assert [q.code for q in cfg.questions] == ["freq", "satisfaction", "barriers"]

    freq, sat, barriers = cfg.questions
    assert freq.column == "freq"
    assert freq.group_by == ["age_group"]
    assert freq.include_missing is False
    assert sat.include_missing is True
    assert sat.title == "satisfaction"
    assert barriers.kind == "multi"
    assert cfg.z == pytest.approx(Settings.z())


def test_group_by_accepts_string():
    q = QuestionSpec(code="q1", group_by="gender")
    assert q.group_by == ["gender"]


def test_unknown_kind():
    with pytest.raises(ConfigError, match="kind"):
        QuestionSpec(code="q1", kind="ranking")


def test_multi_needs_columns():
    with pytest.raises(ConfigError, match="columns"):
        QuestionSpec(code="q7", kind="multi")


def test_duplicate_codes():
    with pytest.raises(ConfigError, match="Duplicate"):
        SurveyConfig(questions=[QuestionSpec(code="q1"), QuestionSpec(code="q1")])


def test_indicator_columns_by_prefix():
    df = pd.DataFrame(columns=["email", "Q7_1", "Q7_2", "Q8"])
    q = QuestionSpec(code="q7", kind="multi", prefix="Q7_")
    assert q.indicator_columns(df) == ["Q7_1", "Q7_2"]

    explicit = QuestionSpec(code="q7", kind="multi", columns=["Q7_2"])
    assert explicit.indicator_columns(df) == ["Q7_2"]

    with pytest.raises(ConfigError):
        QuestionSpec(code="q9", kind="multi", prefix="Q9_").indicator_columns(df)


@pytest.mark.parametrize("content", ["{not json", "[]", json.dumps({"questions": []})])
def test_bad_config_files(tmp_path, content):
    path = tmp_path / "bad.json"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(path)


def test_unknown_field(tmp_path):
    path = tmp_path / "extra.json"
    path.write_text(json.dumps({"questions": [{"code": "q1", "colour": "red"}]}), encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(path)


def test_missing_config(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_config(tmp_path / "missing.json")


def test_config_path_is_directory(tmp_path):
    with pytest.raises(ConfigError, match="Could not read"):
        load_config(tmp_path)


def test_multi_rejects_single_only_options():
    with pytest.raises(ConfigError, match="single-select"):
        QuestionSpec(code="q7", kind="multi", prefix="Q7_", group_by=["gender"])
    with pytest.raises(ConfigError, match="single-select"):
        QuestionSpec(code="q7", kind="multi", prefix="Q7_", include_missing=True)


class TestSettingsZ:
    def test_default(self, monkeypatch):
        monkeypatch.delenv("SURVEY_Z", raising=False)
        assert Settings.z() == pytest.approx(1.96)

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("SURVEY_Z", "2.576")
        cfg = SurveyConfig(questions=[QuestionSpec(code="q1")])
        assert cfg.z == pytest.approx(2.576)

    @pytest.mark.parametrize("value", ["abc", "0", "-1.5"])
    def test_invalid_value(self, monkeypatch, value):
        monkeypatch.setenv("SURVEY_Z", value)
        with pytest.raises(ConfigError, match="SURVEY_Z"):
            SurveyConfig(questions=[QuestionSpec(code="q1")])

    def test_invalid_value_fails_config_load(self, monkeypatch, config_json):
        monkeypatch.setenv("SURVEY_Z", "abc")
        with pytest.raises(ConfigError, match="SURVEY_Z"):
            load_config(config_json)
