"""CLI commands for report generation."""

from __future__ import annotations

import click
from rich.console import Console

from sco2_cycle.core.config import load_cycle_json
from sco2_cycle.reports.summary import (
    generate_text_report,
    save_html_report,
    save_text_report,
)


@click.command("report")
@click.option(
    "--design",
    type=click.Path(exists=True),
    required=True,
    help="Input cycle JSON.",
)
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["text", "html", "both"], case_sensitive=False),
    default="text",
    show_default=True,
    help="Report format.",
)
@click.option(
    "--output", "-o",
    type=click.Path(),
    default=None,
    help="Output file path (auto-generated if not specified).",
)
@click.pass_context
def report(
    ctx: click.Context,
    design: str,
    fmt: str,
    output: str | None,
) -> None:
    """Generate a cycle summary report."""
    console: Console = ctx.obj.get("console", Console())

    record = load_cycle_json(design)
    fmt = fmt.lower()

    if fmt in ("text", "both"):
        out_txt = output or "cycle_report.txt"
        if fmt == "both" and output:
            out_txt = output.rsplit(".", 1)[0] + ".txt"
        save_text_report(record, out_txt)
        console.print(f"[green]Text report saved:[/green] {out_txt}")

    if fmt in ("html", "both"):
        out_html = output or "cycle_report.html"
        if fmt == "both" and output:
            out_html = output.rsplit(".", 1)[0] + ".html"
        save_html_report(record, out_html)
        console.print(f"[green]HTML report saved:[/green] {out_html}")

    if fmt == "text" and not output:
        console.print(f"\n{generate_text_report(record)}")
