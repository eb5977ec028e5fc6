"""Tests for pipeline configuration loading and validation."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from neutralturf.config import PipelineConfig, load_config, load_config_dict
from neutralturf.core.metric_type import DistanceMetric


def _make_config_dict() -> dict:
    return {
        "name": "bayes_traits",
        "field": {
            "cover": "data/cover.csv",
            "metadata": "data/cover_meta.csv",
            "traits": "data/traits.csv",
        },
        "parameters": "data/pars.csv",
        "corpus": {"directory": "sims"},
        "traits": ["veg", "height"],
        "output": {"summary": "results/summary.csv", "report": "results/report.json"},
    }


class TestPipelineConfig:
    def test_defaults(self, tmp_path):
        config = load_config_dict(_make_config_dict(), tmp_path)

        assert config.corpus.pattern == "*.csv"
        assert config.corpus.seed_summary is None
        assert config.aggregation.flush_every == 50
        assert config.aggregation.significant_digits == 3
        assert config.aggregation.control_treatments == ["TTC", "TT1"]
        assert config.aggregation.baseline_year is None

    def test_trait_specs(self, tmp_path):
        config = load_config_dict(_make_config_dict(), tmp_path)
        specs = config.trait_specs()

        assert [s.metric for s in specs] == [DistanceMetric.COMPOSITION, DistanceMetric.CWM]
        assert config.needs_trait_table

    def test_composition_only_needs_no_traits(self, tmp_path):
        data = _make_config_dict()
        data["traits"] = ["veg"]
        del data["field"]["traits"]
        config = load_config_dict(data, tmp_path)
        assert not config.needs_trait_table
        assert config.field.traits is None

    def test_duplicate_traits(self, tmp_path):
        data = _make_config_dict()
        data["traits"] = ["veg", "veg"]
        with pytest.raises(ValidationError, match="unique"):
            load_config_dict(data, tmp_path)

    def test_no_traits(self, tmp_path):
        data = _make_config_dict()
        data["traits"] = []
        with pytest.raises(ValidationError):
            load_config_dict(data, tmp_path)

    def test_invalid_flush_every(self, tmp_path):
        data = _make_config_dict()
        data["aggregation"] = {"flush_every": 0}
        with pytest.raises(ValidationError):
            load_config_dict(data, tmp_path)

    def test_empty_control_treatments(self, tmp_path):
        data = _make_config_dict()
        data["aggregation"] = {"control_treatments": []}
        with pytest.raises(ValidationError):
            load_config_dict(data, tmp_path)

    def test_missing_required_section(self, tmp_path):
        data = _make_config_dict()
        del data["corpus"]
        with pytest.raises(ValidationError):
            load_config_dict(data, tmp_path)


class TestYamlLoading:
    def test_relative_paths_resolved(self, tmp_path):
        path = tmp_path / "pipeline.yaml"
        path.write_text(yaml.safe_dump(_make_config_dict()))

        config = load_config(path)

        assert config.field.cover == tmp_path / "data" / "cover.csv"
        assert config.corpus.directory == tmp_path / "sims"
        assert config.output.report == tmp_path / "results" / "report.json"
        # trait names are not paths
        assert config.traits == ["veg", "height"]

    def test_environment_variables(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TURF_DATA", str(tmp_path / "shared"))
        data = _make_config_dict()
        data["field"]["cover"] = "$TURF_DATA/cover.csv"
        config = load_config_dict(data, tmp_path)
        assert config.field.cover == tmp_path / "shared" / "cover.csv"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "missing.yaml")

    def test_round_trip(self, tmp_path):
        path = tmp_path / "pipeline.yaml"
        path.write_text(yaml.safe_dump(_make_config_dict()))
        config = PipelineConfig.from_yaml(path)

        copy_path = tmp_path / "copy.yaml"
        config.to_yaml(copy_path)
        saved = yaml.safe_load(copy_path.read_text())
        reloaded = PipelineConfig.from_yaml(copy_path)

        assert saved["field"]["cover"] == str(Path("data") / "cover.csv")
        assert reloaded == config
