"""CLI command for inspecting cycle files and CO2 properties."""

from __future__ import annotations

import click
from rich.console import Console
from rich.tree import Tree

from sco2_cycle.cli.cycle_cmd import new_table
from sco2_cycle.core.co2_props import T_CRIT, PropertyError, p_pseudocritical, state_from_TP
from sco2_cycle.core.config import load_cycle_json
from sco2_cycle.utils.units import pressure_to_kpa, temperature_to_k


@click.group("info")
@click.pass_context
def info(ctx: click.Context) -> None:
    """Inspect cycle files and CO2 properties."""
    pass


@info.command("design")
@click.argument("path", type=click.Path(exists=True))
@click.pass_context
def info_design(ctx: click.Context, path: str) -> None:
    """Display summary of a cycle file."""
    console: Console = ctx.obj.get("console", Console())
    record = load_cycle_json(path)

    tree = Tree(f"[bold]{record.meta.name}[/bold]")
    meta = tree.add("[cyan]Metadata[/cyan]")
    meta.add(f"Kind: {record.kind}")
    meta.add(f"Author: {record.meta.author or '—'}")
    meta.add(f"Version: {record.meta.version}")
    meta.add(f"Modified: {record.meta.modified or '—'}")

    p = record.parameters
    if p:
        op = tree.add("[cyan]Design Point[/cyan]")
        op.add(f"Topology: {p.get('topology', '—')}")
        op.add(f"Net Power: {p.get('W_dot_net', 0.0):.1f} kW")
        op.add(f"Compressor Inlet: {p.get('T_mc_in', 0.0):.2f} K, {p.get('P_mc_in', 0.0):.1f} kPa")
        op.add(f"Turbine Inlet: {p.get('T_t_in', 0.0):.2f} K")
        op.add(f"Compressor Outlet: {p.get('P_mc_out', 0.0):.1f} kPa")

    if record.performance:
        perf = tree.add("[cyan]Performance[/cyan]")
        for k, v in record.performance.items():
            perf.add(f"{k}: {v}")

    for name, comp in record.components.items():
        if not comp:
            continue
        branch = tree.add(f"[cyan]{name}[/cyan]")
        for k, v in comp.items():
            if isinstance(v, dict):
                continue  # per-exchanger records
            branch.add(f"{k}: {v}")

    if record.off_design:
        od = tree.add("[cyan]Off-Design[/cyan]")
        for k, v in record.off_design.get("performance", {}).items():
            od.add(f"{k}: {v}")

    if record.arrays:
        arr = tree.add("[cyan]Arrays[/cyan]")
        for k, v in record.arrays.items():
            arr.add(f"{k}: {v.shape}")

    console.print(tree)


@info.command("fluid")
@click.option("--t", "temp", type=float, required=True, help="Temperature.")
@click.option("--p", "pres", type=float, required=True, help="Pressure.")
@click.option("--t-unit", type=click.Choice(["K", "degC"]), default="K", show_default=True)
@click.option("--p-unit", type=click.Choice(["kPa", "MPa", "bar"]), default="kPa", show_default=True)
@click.pass_context
def info_fluid(ctx: click.Context, temp: float, pres: float, t_unit: str, p_unit: str) -> None:
    """CO2 properties at a temperature and pressure."""
    console: Console = ctx.obj.get("console", Console())
    T = temperature_to_k(temp, t_unit)
    P = pressure_to_kpa(pres, p_unit)
    try:
        state = state_from_TP(T, P)
    except PropertyError as exc:
        raise click.ClickException(f"Property evaluation failed (error code {exc.code})") from exc

    table = new_table("CO2 State")
    table.add_row("Temperature", f"{state.temp:.2f}", "K")
    table.add_row("Pressure", f"{state.pres:.1f}", "kPa")
    table.add_row("Enthalpy", f"{state.enth:.3f}", "kJ/kg")
    table.add_row("Entropy", f"{state.entr:.5f}", "kJ/kg-K")
    table.add_row("Density", f"{state.dens:.3f}", "kg/m³")
    table.add_row("Speed of Sound", f"{state.ssnd:.2f}", "m/s")
    if T > T_CRIT:
        table.add_row("Pseudocritical Pressure", f"{p_pseudocritical(T):.1f}", "kPa")
    console.print(table)
