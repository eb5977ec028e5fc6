"""End-to-end tests of the streaming aggregation and the command line interface.

A four-turf field data set is written to ``tmp_path`` together with a small
corpus:

- ``sim_0.1_d_5_rep_1.csv``  matches the target pair and contributes
- ``sim_0.1_d_5_rep_2.csv``  matches but lacks a species column (unreadable)
- ``sim_0.9_d_50_rep_1.csv`` is excluded by the file-level filter
- ``readme.csv``             has no parameters in its name (malformed)
"""

from __future__ import annotations

import json

import numpy as np
import pandas as pd
import pytest
import yaml
from click.testing import CliRunner

from neutralturf.aggregation.streaming import StreamingAggregator
from neutralturf.aggregation.summary import read_summary
from neutralturf.cli.main import cli
from neutralturf.core.metric_type import resolve_traits
from neutralturf.corpus.filters import load_targets
from neutralturf.corpus.reader import discover_corpus
from neutralturf.field import load_field_data
from neutralturf.results import RunReport

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_COVER = {
    "c1_2009": [1.0, 0.0, 0.0],
    "c2_2009": [0.0, 1.0, 0.0],
    "t1_2009": [0.0, 0.0, 1.0],
    "c3_2009": [1.0, 1.0, 1.0],
    "c1_2011": [1.0, 0.0, 0.0],
    "c2_2011": [0.0, 1.0, 0.0],
    "t1_2011": [1.0, 1.0, 0.0],
    "c3_2011": [1.0, 1.0, 1.0],
}

_TURFS = {
    "c1": ("A", "A", "TTC"),
    "c2": ("A", "A", "TT1"),
    "t1": ("B", "A", "TT2"),
    "c3": ("B", "B", "TTC"),
}


def _sim_rows(rows, m, d, species=("s1", "s2", "s3")) -> pd.DataFrame:
    records = []
    for turf, year, cover in rows:
        record = {"turfID": turf, "year": year, "m": m, "d": d}
        record.update({s: c for s, c in zip(species, cover)})
        records.append(record)
    return pd.DataFrame(records)


def _write_inputs(root) -> dict:
    """Write field tables, target table and corpus; return their paths."""
    data = root / "data"
    sims = root / "sims"
    data.mkdir()
    sims.mkdir()

    cover = pd.DataFrame.from_dict(_COVER, orient="index", columns=["s1", "s2", "s3"])
    cover.to_csv(data / "cover.csv", index_label="turf.year")

    meta = []
    for key in _COVER:
        turf, year = key.split("_")
        origin, dest, treatment = _TURFS[turf]
        meta.append(
            {"turfID": turf, "siteID": origin, "destSiteID": dest, "Year": int(year),
             "TTtreat": treatment}
        )
    pd.DataFrame(meta).to_csv(data / "cover_meta.csv", index=False)

    pd.DataFrame({"height": [2.0, 4.0, 6.0]}, index=["s1", "s2", "s3"]).to_csv(
        data / "traits.csv", index_label="species"
    )
    pd.DataFrame({"site": ["A"], "d": [5], "m": [0.1]}).to_csv(data / "pars.csv", index=False)

    # Two target runs of t1, plus a run of c3 whose site does not want (5, 0.1)
    _sim_rows(
        [
            ("t1", 2011, [0.0, 0.0, 1.0]),
            ("t1", 2011, [1.0, 1.0, 0.0]),
            ("c3", 2011, [1.0, 0.0, 0.0]),
        ],
        m=0.1,
        d=5,
    ).to_csv(sims / "sim_0.1_d_5_rep_1.csv")
    _sim_rows([("t1", 2011, [1.0, 0.0])], m=0.1, d=5, species=("s1", "s2")).to_csv(
        sims / "sim_0.1_d_5_rep_2.csv"
    )
    _sim_rows([("t1", 2011, [5.0, 5.0, 5.0])], m=0.9, d=50).to_csv(
        sims / "sim_0.9_d_50_rep_1.csv"
    )
    (sims / "readme.csv").write_text("not a corpus file\n")

    return {
        "cover": data / "cover.csv",
        "metadata": data / "cover_meta.csv",
        "traits": data / "traits.csv",
        "parameters": data / "pars.csv",
        "sims": sims,
    }


def _make_aggregator(paths, **kwargs) -> StreamingAggregator:
    field = load_field_data(paths["cover"], paths["metadata"], paths["traits"])
    targets = load_targets(paths["parameters"])
    return StreamingAggregator(field, targets, resolve_traits(["veg", "height"]), **kwargs)


def _value(table, trait, year):
    row = table[(table["trait"] == trait) & (table["year"] == year)]
    assert len(row) == 1
    return row["dissimilarity"].iloc[0]


# ---------------------------------------------------------------------------
# Streaming aggregation
# ---------------------------------------------------------------------------


class TestStreamingAggregator:
    def test_summary(self, tmp_path):
        paths = _write_inputs(tmp_path)
        outcome = _make_aggregator(paths).run(discover_corpus(paths["sims"]))

        summary = outcome.summary
        assert list(summary.columns) == ["trait", "turfID", "year", "m", "d", "dissimilarity"]
        assert len(summary) == 2
        assert set(summary["turfID"]) == {"t1"}
        # veg: the two runs score 1 and 1/3; height: they score 3 and 1
        assert _value(summary, "veg", 2011) == pytest.approx(2 / 3)
        assert _value(summary, "height", 2011) == pytest.approx(2.0)
        assert outcome.records["reps"].tolist() == [2, 2]

    def test_extended(self, tmp_path):
        paths = _write_inputs(tmp_path)
        outcome = _make_aggregator(paths).run(discover_corpus(paths["sims"]))

        extended = outcome.extended
        assert len(extended) == 4
        assert extended["year"].tolist()[:2] == [2009, 2009]
        # copied from the observed 2011 survey of t1, not its 2009 one
        assert _value(extended, "veg", 2009) == pytest.approx(1 / 3)
        assert _value(extended, "height", 2009) == pytest.approx(1.0)

    def test_report(self, tmp_path):
        paths = _write_inputs(tmp_path)
        report = _make_aggregator(paths).run(discover_corpus(paths["sims"])).report

        assert report.n_files_found == 4
        assert report.n_files_selected == 2
        assert report.n_files_processed == 1
        assert report.malformed_files == ["readme.csv"]
        assert report.failed_files == ["sim_0.1_d_5_rep_2.csv"]
        assert report.n_simulated_rows == 2
        assert report.n_units == 4
        assert report.traits == ["veg", "height"]

    @pytest.mark.parametrize("bad_cell", ["abc", -1.0])
    def test_bad_abundances_skip_file(self, tmp_path, bad_cell):
        paths = _write_inputs(tmp_path)
        clean = _make_aggregator(paths).run(discover_corpus(paths["sims"]))
        _sim_rows([("t1", 2011, [bad_cell, 0.0, 1.0])], m=0.1, d=5).to_csv(
            paths["sims"] / "sim_0.1_d_5_rep_9.csv"
        )

        outcome = _make_aggregator(paths).run(discover_corpus(paths["sims"]))

        assert outcome.report.failed_files == ["sim_0.1_d_5_rep_2.csv", "sim_0.1_d_5_rep_9.csv"]
        assert outcome.report.n_files_processed == 1
        pd.testing.assert_frame_equal(outcome.summary, clean.summary)

    def test_flush_threshold_does_not_change_result(self, tmp_path):
        paths = _write_inputs(tmp_path)
        corpus = discover_corpus(paths["sims"])
        eager = _make_aggregator(paths, flush_every=1).run(corpus)
        lazy = _make_aggregator(paths, flush_every=50).run(corpus)

        pd.testing.assert_frame_equal(eager.summary, lazy.summary)
        assert eager.report.n_flushes > lazy.report.n_flushes

    def test_file_order_does_not_change_result(self, tmp_path):
        paths = _write_inputs(tmp_path)
        corpus = discover_corpus(paths["sims"])
        forward = _make_aggregator(paths, flush_every=1).run(corpus)
        backward = _make_aggregator(paths, flush_every=1).run(corpus[::-1])
        pd.testing.assert_frame_equal(forward.summary, backward.summary)

    def test_seed_summary(self, tmp_path):
        paths = _write_inputs(tmp_path)
        seed = pd.DataFrame(
            {
                "trait": ["veg", "veg"],
                "turfID": ["t1", "c3"],
                "year": [2011, 2011],
                "m": [0.1, 0.1],
                "d": [5, 5],
                "dissimilarity": [0.0, 0.5],
                "reps": [2, 7],
            }
        )
        outcome = _make_aggregator(paths, seed=seed).run(discover_corpus(paths["sims"]))

        # c3 is at site B, which does not want (5, 0.1)
        assert outcome.report.n_seed_records == 1
        assert _value(outcome.summary, "veg", 2011) == pytest.approx((1 + 1 / 3) / 4)

    def test_empty_corpus(self, tmp_path):
        paths = _write_inputs(tmp_path)
        outcome = _make_aggregator(paths).run([])

        assert outcome.summary.empty
        # baseline rows for the treated turf at the target site
        assert len(outcome.extended) == 2
        assert (outcome.extended["year"] == 2009).all()

    def test_checkpoint(self, tmp_path):
        paths = _write_inputs(tmp_path)
        checkpoint = tmp_path / "out" / "checkpoint.csv"
        _make_aggregator(paths, checkpoint_path=checkpoint).run(discover_corpus(paths["sims"]))

        saved = read_summary(checkpoint)
        assert "reps" in pd.read_csv(checkpoint).columns
        assert saved["reps"].sum() == 4

    def test_missing_trait_column_fails_early(self, tmp_path):
        paths = _write_inputs(tmp_path)
        field = load_field_data(paths["cover"], paths["metadata"], paths["traits"])
        targets = load_targets(paths["parameters"])
        with pytest.raises(ValueError, match="SLA"):
            StreamingAggregator(field, targets, resolve_traits(["veg", "SLA"]))

    def test_process_file(self, tmp_path):
        paths = _write_inputs(tmp_path)
        batches = _make_aggregator(paths).process_file(paths["sims"] / "sim_0.1_d_5_rep_1.csv")

        assert len(batches) == 2
        assert [b["trait"].iloc[0] for b in batches] == ["veg", "height"]
        assert all(len(b) == 2 for b in batches)


# ---------------------------------------------------------------------------
# Command line interface
# ---------------------------------------------------------------------------


def _write_config(root, paths) -> str:
    config = {
        "name": "cli_test",
        "field": {
            "cover": str(paths["cover"]),
            "metadata": str(paths["metadata"]),
            "traits": str(paths["traits"]),
        },
        "parameters": str(paths["parameters"]),
        "corpus": {"directory": "sims"},
        "traits": ["veg", "height"],
        "output": {
            "summary": "results/summary.csv",
            "extended": "results/extended.csv",
            "observed": "results/observed.csv",
            "report": "results/report.json",
        },
    }
    path = root / "pipeline.yaml"
    path.write_text(yaml.safe_dump(config))
    return str(path)


class TestCli:
    def test_init(self, tmp_path):
        out = tmp_path / "new.yaml"
        result = CliRunner().invoke(cli, ["init", "-o", str(out)])

        assert result.exit_code == 0
        assert yaml.safe_load(out.read_text())["traits"] == ["veg"]

    def test_init_refuses_overwrite(self, tmp_path):
        out = tmp_path / "new.yaml"
        out.write_text("keep me")
        result = CliRunner().invoke(cli, ["init", "-o", str(out)])

        assert result.exit_code == 1
        assert out.read_text() == "keep me"

    def test_filter(self, tmp_path):
        paths = _write_inputs(tmp_path)
        config = _write_config(tmp_path, paths)
        result = CliRunner().invoke(cli, ["-q", "filter", "-c", config])

        assert result.exit_code == 0
        assert "sim_0.1_d_5_rep_1.csv" in result.stdout
        assert "sim_0.9_d_50_rep_1.csv" not in result.stdout

    def test_aggregate(self, tmp_path):
        paths = _write_inputs(tmp_path)
        config = _write_config(tmp_path, paths)
        result = CliRunner().invoke(cli, ["-q", "aggregate", "-c", config, "--flush-every", "1"])

        assert result.exit_code == 0, result.output
        results = tmp_path / "results"
        summary = pd.read_csv(results / "summary.csv")
        assert len(summary) == 2
        assert len(pd.read_csv(results / "extended.csv")) == 4
        assert (results / "observed.csv").exists()

        report = RunReport.load(results / "report.json")
        assert report.name == "cli_test"
        assert report.flush_every == 1
        assert len(report.config_hash) == 16
        assert json.loads((results / "report.json").read_text())["failed_files"] == [
            "sim_0.1_d_5_rep_2.csv"
        ]

    def test_observed(self, tmp_path):
        paths = _write_inputs(tmp_path)
        config = _write_config(tmp_path, paths)
        result = CliRunner().invoke(cli, ["-q", "observed", "-c", config])

        assert result.exit_code == 0, result.output
        table = pd.read_csv(tmp_path / "results" / "observed.csv")
        assert len(table) == 2 * len(_COVER)
        assert np.isnan(
            table[(table["turfID"] == "c3") & (table["trait"] == "veg")]["dissimilarity"]
        ).all()

    def test_missing_config(self, tmp_path):
        result = CliRunner().invoke(cli, ["aggregate", "-c", str(tmp_path / "none.yaml")])
        assert result.exit_code != 0
