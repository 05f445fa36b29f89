"""CLI entry point for the railyard pipeline engine.

Provides ``demo`` and ``scenarios`` sub-commands using Click and Rich for
output formatting.  ``demo`` runs the bundled onboarding workflows and
reports their outcomes.

Usage::

    railyard scenarios
    railyard demo --verbose
    railyard demo --scenario send-failure --events
"""

from __future__ import annotations

import asyncio
import logging

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from railyard.examples.onboarding import SCENARIOS, Scenario, UserDirectory
from railyard.pipeline.events import PipelineEvent, PipelineEventEmitter
from railyard.pipeline.result import Result

console = Console()


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


@click.group()
@click.version_option(package_name="railyard")
def main() -> None:
    """Railyard - guard/step workflows with saga-style compensation."""


@main.command()
def scenarios() -> None:
    """List the bundled demo scenarios."""
    table = Table(title="Scenarios")
    table.add_column("Name", style="bold", no_wrap=True)
    table.add_column("Pipeline", no_wrap=True)
    table.add_column("Description")
    for scenario in SCENARIOS:
        table.add_row(scenario.name, scenario.build.__name__, scenario.description)
    console.print(table)


@main.command()
@click.option(
    "--scenario",
    "-s",
    "selected",
    multiple=True,
    help="Run only the named scenario (repeatable).",
)
@click.option("--events", is_flag=True, help="Print pipeline events as they fire.")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def demo(selected: tuple[str, ...], events: bool, verbose: bool) -> None:
    """Run the onboarding scenarios and summarise their results."""
    _setup_logging(verbose)

    known = {scenario.name: scenario for scenario in SCENARIOS}
    unknown = [name for name in selected if name not in known]
    if unknown:
        console.print(f"[red]Unknown scenario(s):[/red] {', '.join(unknown)}")
        raise SystemExit(1)
    to_run = [known[name] for name in selected] if selected else SCENARIOS

    emitter = PipelineEventEmitter() if events else None
    if emitter is not None:
        emitter.on_any(_print_event)

    table = Table(title="Onboarding Results")
    table.add_column("Scenario", style="bold", no_wrap=True)
    table.add_column("Outcome", no_wrap=True)
    table.add_column("Detail")
    table.add_column("Users", justify="right")

    for scenario in to_run:
        directory = UserDirectory()
        result = asyncio.run(_run_scenario(scenario, directory, emitter))
        outcome, detail = _describe(result)
        table.add_row(scenario.name, outcome, detail, str(len(directory.users)))

    console.print(table)


async def _run_scenario(
    scenario: Scenario,
    directory: UserDirectory,
    emitter: PipelineEventEmitter | None,
) -> Result:
    pipeline = scenario.pipeline(directory, event_emitter=emitter)
    return await pipeline.run(scenario.context)


def _describe(result: Result) -> tuple[str, str]:
    return result.fold(
        lambda error: ("[red]failure[/red]", getattr(error, "value", str(error))),
        lambda ctx: ("[green]success[/green]", "; ".join(ctx.log)),
    )


async def _print_event(event: PipelineEvent) -> None:
    style = "yellow" if event.type.is_compensation else "dim"
    console.print(event.describe(), style=style, markup=False, highlight=False)


if __name__ == "__main__":
    main()
