"""
neutralturf Command Line Interface.

This module provides the main CLI entry point for neutralturf, using Click
for argument parsing and command organization.

Usage:
    neutralturf --help
    neutralturf init --output pipeline.yaml
    neutralturf filter --config pipeline.yaml
    neutralturf observed --config pipeline.yaml
    neutralturf aggregate --config pipeline.yaml --flush-every 20
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

import click

LOGGER = logging.getLogger("neutralturf")


TEMPLATE_CONFIG = """\
# neutralturf pipeline configuration
#
# Relative paths are resolved against the directory of this file.
name: my_run

field:
  cover: data/cover.csv          # community table, first column turf.year
  metadata: data/cover_meta.csv  # turfID, year, destSiteID, TTtreat
  traits: data/traits.csv        # species trait table (needed for CWM traits)

parameters: data/pars.csv        # target parameter table: site, d, m

corpus:
  directory: sims/
  pattern: "*.csv"
  # seed_summary: results/simSummary_veg.csv

# "veg" selects Bray-Curtis on composition; any other name is a trait column
traits: [veg]

aggregation:
  flush_every: 50
  significant_digits: 3
  control_treatments: [TTC, TT1]
  composition_key: veg
  # baseline_year: 2009

output:
  summary: results/simSummary_traits.csv
  extended: results/simSummary_traits_baseline.csv
  observed: results/observed_distances.csv
  report: results/run_report.json
  # checkpoint: results/checkpoint.csv
"""


@click.group()
@click.version_option(prog_name="neutralturf")
@click.option(
    "-q", "--quiet", is_flag=True, help="Suppress INFO messages, show warnings/errors only"
)
@click.option("--debug", is_flag=True, help="Enable DEBUG logging for troubleshooting")
def cli(quiet: bool, debug: bool) -> None:
    """neutralturf: score neutral community simulations against field controls.

    Filters a simulation corpus to target parameter sets, computes
    distance-to-control for every simulated community and merges the
    results into a single summary table.
    """
    from neutralturf.core.logging_utils import setup_logging

    setup_logging(quiet=quiet, debug=debug)


def _load_pipeline(config: str):
    """Load the configuration and field data, exiting on failure."""
    from neutralturf.config.schema import PipelineConfig
    from neutralturf.field import load_field_data

    try:
        pipeline = PipelineConfig.from_yaml(config)
        field_data = load_field_data(
            pipeline.field.cover, pipeline.field.metadata, pipeline.field.traits
        )
    except FileNotFoundError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)
    except Exception as e:
        click.echo(click.style(f"Failed to load inputs: {e}", fg="red"), err=True)
        sys.exit(1)

    if pipeline.needs_trait_table and pipeline.field.traits is None:
        click.echo(
            click.style(
                "Error: CWM traits are configured but field.traits is not set", fg="red"
            ),
            err=True,
        )
        sys.exit(1)

    return pipeline, field_data


# =============================================================================
# Init Command
# =============================================================================


@cli.command()
@click.option(
    "-o",
    "--output",
    default="pipeline.yaml",
    show_default=True,
    help="Where to write the template configuration",
)
def init(output: str) -> None:
    """Write a template pipeline configuration.

    \b
    Example:
        neutralturf init -o bayes_traits.yaml
    """
    path = Path(output)
    if path.exists():
        click.echo(
            click.style(f"Error: '{output}' already exists.", fg="red"),
            err=True,
        )
        sys.exit(1)

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(TEMPLATE_CONFIG)
    click.echo(f"Wrote template configuration: {path}")
    click.echo()
    click.echo("Next steps:")
    click.echo(f"  1. Edit {path} to point at your field tables and corpus")
    click.echo(f"  2. Dry run:  neutralturf filter -c {path}")
    click.echo(f"  3. Run:      neutralturf aggregate -c {path}")


# =============================================================================
# Filter Command
# =============================================================================


@cli.command("filter")
@click.option(
    "-c",
    "--config",
    required=True,
    type=click.Path(exists=True),
    help="Path to YAML configuration file",
)
def filter_corpus(config: str) -> None:
    """List the corpus files that match a target parameter pair.

    No file is opened; selection uses the (d, m) encoded in file names.
    """
    from neutralturf.config.schema import PipelineConfig
    from neutralturf.corpus.filters import load_targets, select_corpus_files
    from neutralturf.corpus.reader import discover_corpus

    try:
        pipeline = PipelineConfig.from_yaml(config)
        digits = pipeline.aggregation.significant_digits
        targets = load_targets(pipeline.parameters, digits)
        paths = discover_corpus(pipeline.corpus.directory, pipeline.corpus.pattern)
    except FileNotFoundError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)
    except Exception as e:
        click.echo(click.style(f"Failed to load inputs: {e}", fg="red"), err=True)
        sys.exit(1)

    selection = select_corpus_files(paths, targets, digits)
    for path in selection.selected:
        click.echo(str(path))

    click.echo(
        f"{len(selection.selected)} of {len(paths)} files selected "
        f"({len(selection.malformed)} malformed names)",
        err=True,
    )


# =============================================================================
# Observed Command
# =============================================================================


@cli.command()
@click.option(
    "-c",
    "--config",
    required=True,
    type=click.Path(exists=True),
    help="Path to YAML configuration file",
)
@click.option(
    "-o",
    "--output",
    type=click.Path(),
    default=None,
    help="Output CSV (default: output.observed from the config)",
)
def observed(config: str, output: Optional[str]) -> None:
    """Compute distance-to-control for every observed field turf."""
    from neutralturf.distances.evaluator import score_observed

    pipeline, field_data = _load_pipeline(config)
    destination = Path(output) if output else pipeline.output.observed
    if destination is None:
        click.echo(
            click.style("Error: no output given and output.observed is not set", fg="red"),
            err=True,
        )
        sys.exit(1)

    try:
        table = score_observed(
            field_data, pipeline.trait_specs(), pipeline.aggregation.control_treatments
        )
    except ValueError as e:
        click.echo(click.style(f"Scoring failed: {e}", fg="red"), err=True)
        sys.exit(1)

    destination.parent.mkdir(parents=True, exist_ok=True)
    table.to_csv(destination, index=False)
    click.echo(f"Wrote {len(table)} observed records to {destination}")


# =============================================================================
# Aggregate Command
# =============================================================================


@cli.command()
@click.option(
    "-c",
    "--config",
    required=True,
    type=click.Path(exists=True),
    help="Path to YAML configuration file",
)
@click.option(
    "--flush-every",
    type=click.IntRange(min=1),
    default=None,
    help="Override aggregation.flush_every",
)
def aggregate(config: str, flush_every: Optional[int]) -> None:
    """Run the streaming distance aggregation over the corpus.

    \b
    Writes:
        output.summary   trait, turfID, year, m, d, dissimilarity
        output.extended  summary with baseline-year rows
        output.observed  observed distance-to-control (optional)
        output.report    JSON run report (optional)
    """
    from neutralturf.aggregation.streaming import StreamingAggregator
    from neutralturf.aggregation.summary import read_summary, write_summary
    from neutralturf.corpus.filters import load_targets
    from neutralturf.corpus.reader import discover_corpus
    from neutralturf.results import RunReport, compute_config_hash

    pipeline, field_data = _load_pipeline(config)
    settings = pipeline.aggregation
    if flush_every is not None:
        LOGGER.debug(f"Overriding flush_every: {settings.flush_every} -> {flush_every}")
        settings.flush_every = flush_every

    try:
        targets = load_targets(pipeline.parameters, settings.significant_digits)
        paths = discover_corpus(pipeline.corpus.directory, pipeline.corpus.pattern)
        seed = None
        if pipeline.corpus.seed_summary is not None:
            seed = read_summary(pipeline.corpus.seed_summary)

        aggregator = StreamingAggregator(
            field_data,
            targets,
            pipeline.trait_specs(),
            flush_every=settings.flush_every,
            significant_digits=settings.significant_digits,
            control_treatments=settings.control_treatments,
            seed=seed,
            checkpoint_path=pipeline.output.checkpoint,
        )
        report = RunReport(name=pipeline.name, config_hash=compute_config_hash(pipeline))
        outcome = aggregator.run(paths, baseline_year=settings.baseline_year, report=report)
    except FileNotFoundError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)
    except ValueError as e:
        click.echo(click.style(f"Aggregation failed: {e}", fg="red"), err=True)
        sys.exit(1)

    output = pipeline.output
    write_summary(outcome.summary, output.summary)
    click.echo(f"Summary: {output.summary}")
    if output.extended is not None:
        write_summary(outcome.extended, output.extended)
        click.echo(f"Extended summary: {output.extended}")
    if output.observed is not None:
        output.observed.parent.mkdir(parents=True, exist_ok=True)
        outcome.observed.to_csv(output.observed, index=False)
        click.echo(f"Observed distances: {output.observed}")
    if output.report is not None:
        outcome.report.save(output.report)
        click.echo(f"Report: {output.report}")

    click.echo()
    click.echo(outcome.report.summary())


def main() -> int:
    """Main entry point."""
    try:
        cli()
        return 0
    except SystemExit as e:
        return e.code if isinstance(e.code, int) else 1
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
