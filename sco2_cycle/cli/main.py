"""sCO2 Cycle command-line interface.

Entry point for the ``sco2`` CLI tool.
"""

from __future__ import annotations

import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from sco2_cycle import __app_name__, __version__

console = Console()


@click.group()
@click.version_option(version=__version__, prog_name=__app_name__)
@click.option("--verbose", "-v", count=True, help="Increase log verbosity (-v info, -vv debug).")
@click.pass_context
def cli(ctx: click.Context, verbose: int) -> None:
    """sCO2 Cycle: recompression Brayton cycle design and off-design analysis.

    Design, size and optimize a supercritical-CO2 recompression cycle,
    run it at off-design conditions, and evaluate wind-farm wake losses.
    """
    ctx.ensure_object(dict)
    ctx.obj["console"] = console
    level = {0: logging.WARNING, 1: logging.INFO}.get(verbose, logging.DEBUG)
    logging.basicConfig(level=level, format="%(message)s", handlers=[RichHandler(console=console)])


# Import and register sub-command groups
from sco2_cycle.cli.cycle_cmd import cycle  # noqa: E402
from sco2_cycle.cli.info_cmd import info  # noqa: E402
from sco2_cycle.cli.off_design_cmd import off_design  # noqa: E402
from sco2_cycle.cli.report_cmd import report  # noqa: E402
from sco2_cycle.cli.wind_cmd import wind  # noqa: E402

cli.add_command(cycle)
cli.add_command(off_design)
cli.add_command(wind)
cli.add_command(info)
cli.add_command(report)


def main() -> None:
    """Convenience wrapper for entry-point scripts."""
    cli()
