"""Click CLI with scan, fix, report, graph and serve subcommands."""

from __future__ import annotations

import logging
from pathlib import Path

import click
import yaml

from depweave.analysis import AnalysisResult
from depweave.config import DepweaveConfig, load_config
from depweave.models import FixStatus, Severity
from depweave.pipeline import run_fix, run_report, run_scan

_SEVERITY_COLORS = {
    Severity.CRITICAL: "red",
    Severity.HIGH: "yellow",
    Severity.MEDIUM: "cyan",
    Severity.LOW: "white",
}

_STATUS_COLORS = {
    FixStatus.PLANNED: "cyan",
    FixStatus.APPLIED: "green",
    FixStatus.SKIPPED: "yellow",
    FixStatus.FAILED: "red",
}

_source_argument = click.argument(
    "source_dir", type=click.Path(file_okay=False, path_type=Path), default=".",
)


@click.group()
@click.version_option(version="0.1.0")
@click.option("--config", "-c", "config_path", type=click.Path(dir_okay=False, path_type=Path),
              help="YAML config file (default: ./depweave.yaml)")
@click.option("--verbose", "-v", is_flag=True, help="Log progress to stderr")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, verbose: bool):
    """depweave: find and break circular module dependencies."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    try:
        ctx.obj = load_config(config_path)
    except (ValueError, yaml.YAMLError) as e:
        click.echo(click.style(f"Invalid config: {e}; using defaults", fg="yellow"), err=True)
        ctx.obj = DepweaveConfig()


def _scan(ctx: click.Context, source_dir: Path):
    """Scan ``source_dir`` or return None after telling the user why not."""
    if not source_dir.is_dir():
        click.echo(f"Source directory not found: {source_dir}")
        return None
    config: DepweaveConfig = ctx.obj
    click.echo(f"Scanning {source_dir} for circular dependencies...\n")
    return run_scan(source_dir, config.detector)


def _print_summary(result: AnalysisResult) -> None:
    if not result.total:
        click.echo(click.style("No circular dependencies found.", fg="green"))
        click.echo(f"  {result.modules_scanned} module(s) scanned")
        return

    click.echo(f"Found {result.total} circular dependenc{'y' if result.total == 1 else 'ies'}:\n")
    for chain in result.chains:
        color = _SEVERITY_COLORS[chain.severity]
        click.echo(
            f"  {click.style(chain.severity.value.upper(), fg=color):>20}  "
            f"{' -> '.join(chain.chain.modules)}"
        )
        fix_note = chain.fix.type.value
        if chain.auto_fixable:
            fix_note += click.style(" (auto-fixable)", fg="green")
        click.echo(f"  {'':>11}fix: {fix_note}")
    click.echo()

    click.echo("Summary:")
    click.echo(f"  modules scanned: {result.modules_scanned}")
    for severity, count in result.severity_counts().items():
        if count:
            click.echo(f"  {severity}: {count}")
    click.echo(f"  auto-fixable: {len(result.auto_fixable)}")
    if result.skipped:
        click.echo(click.style(f"  files skipped: {len(result.skipped)}", dim=True))


@cli.command()
@_source_argument
@click.pass_context
def scan(ctx: click.Context, source_dir: Path):
    """Scan a directory and list circular dependencies."""
    scanned = _scan(ctx, source_dir)
    if scanned is None:
        return
    detector, result = scanned
    _print_summary(result)
    for rec in detector.generate_recommendations():
        click.echo(f"\n[{rec['priority']}] {rec['message']}\n  {rec['action']}")


@cli.command()
@_source_argument
@click.option("--apply", "apply_fixes", is_flag=True, help="Rewrite files (default is a dry run)")
@click.pass_context
def fix(ctx: click.Context, source_dir: Path, apply_fixes: bool):
    """Break auto-fixable cycles by deferring imports."""
    scanned = _scan(ctx, source_dir)
    if scanned is None:
        return
    detector, result = scanned

    if not result.auto_fixable:
        click.echo("No auto-fixable circular dependencies found.")
        return

    outcomes = run_fix(detector, apply=apply_fixes)
    if not apply_fixes:
        click.echo("Dry run; pass --apply to rewrite files.\n")

    for outcome in outcomes:
        status = click.style(outcome.status.value, fg=_STATUS_COLORS[outcome.status])
        click.echo(f"  {status:>20}  {outcome.file} (defer {outcome.target})")
        for change in outcome.changes:
            click.echo(f"  {'':>11}{change}")
        for note in outcome.notes:
            click.echo(click.style(f"  {'':>11}{note}", dim=True))
        if outcome.error:
            click.echo(click.style(f"  {'':>11}{outcome.error}", fg="red"))

    applied = sum(1 for o in outcomes if o.status is FixStatus.APPLIED)
    if apply_fixes:
        click.echo(f"\nApplied {applied} of {len(outcomes)} fix(es). Re-run `depweave scan` to verify.")


@cli.command()
@_source_argument
@click.option("-o", "--output", type=click.Path(dir_okay=False, path_type=Path),
              help="Report path (default: <source_dir>/circular-dependencies-report.json)")
@click.pass_context
def report(ctx: click.Context, source_dir: Path, output: Path | None):
    """Write a JSON report of every circular dependency."""
    scanned = _scan(ctx, source_dir)
    if scanned is None:
        return
    detector, result = scanned
    _print_summary(result)
    try:
        path = run_report(detector, output)
    except OSError as e:
        click.echo(click.style(f"\nCould not write report: {e}", fg="red"))
        return
    click.echo(f"\nReport written to {path}")


@cli.command()
@_source_argument
@click.option("-o", "--output", type=click.Path(dir_okay=False, path_type=Path),
              help="Write the Mermaid diagram to a file instead of stdout")
@click.pass_context
def graph(ctx: click.Context, source_dir: Path, output: Path | None):
    """Print the module graph as a Mermaid diagram."""
    scanned = _scan(ctx, source_dir)
    if scanned is None:
        return
    detector, _ = scanned
    diagram = detector.generate_mermaid()
    if output:
        try:
            output.parent.mkdir(parents=True, exist_ok=True)
            output.write_text(diagram, encoding="utf-8")
        except OSError as e:
            click.echo(click.style(f"Could not write diagram: {e}", fg="red"))
            return
        click.echo(f"Diagram written to {output}")
    else:
        click.echo(diagram)


@cli.command()
@click.option("--port", "-p", default=8421, help="Port number")
@click.option("--host", default="127.0.0.1", help="Host address")
def serve(port: int, host: str):
    """Start the HTTP API."""
    try:
        import uvicorn
    except ImportError:
        raise click.ClickException(
            "uvicorn is required for the HTTP API. "
            "Install with: pip install 'depweave[web]'"
        )

    from depweave.web import create_app

    click.echo(f"Starting depweave API at http://{host}:{port}")
    uvicorn.run(create_app(), host=host, port=port, log_level="info")


if __name__ == "__main__":
    cli()
