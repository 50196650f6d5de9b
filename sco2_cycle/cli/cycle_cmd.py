"""CLI commands for design-point cycle analysis and optimization."""

from __future__ import annotations

from typing import Any, Callable

import click
from rich.console import Console
from rich.table import Table

from sco2_cycle.core.co2_props import T_CRIT
from sco2_cycle.core.config import CycleRecord, ProjectMeta, save_cycle_json
from sco2_cycle.cycle.components.base import NODE_NAMES
from sco2_cycle.cycle.design import DesignSolved
from sco2_cycle.cycle.parameters import (
    AutoOptDesignParameters,
    DesignParameters,
    HitEtaParameters,
    OptDesignParameters,
    Topology,
)
from sco2_cycle.cycle.solver import RecompCycle
from sco2_cycle.utils.units import power_to_kw, pressure_to_kpa, temperature_to_k
from sco2_cycle.utils.validation import validate_cycle_design

TOPOLOGY_CHOICES = {
    "standard": Topology.STANDARD,
    "htr-bypass": Topology.HTR_BYPASS,
    "htr-bypass-target": Topology.HTR_BYPASS_TARGET,
}


def new_table(title: str) -> Table:
    """Parameter / Value / Unit table in the house style."""
    table = Table(title=title)
    table.add_column("Parameter", style="cyan")
    table.add_column("Value", style="green", justify="right")
    table.add_column("Unit", style="dim")
    return table


def common_options(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Operating-point options shared by every design command."""
    options = [
        click.option("--power", type=float, default=10.0e3, show_default=True, help="Net power."),
        click.option(
            "--power-unit",
            type=click.Choice(["kW", "MW"]),
            default="kW",
            show_default=True,
            help="Unit of the power option.",
        ),
        click.option("--t-mc-in", type=float, default=305.15, show_default=True, help="Compressor inlet temperature."),
        click.option("--t-t-in", type=float, default=823.15, show_default=True, help="Turbine inlet temperature."),
        click.option(
            "--t-unit",
            type=click.Choice(["K", "degC"]),
            default="K",
            show_default=True,
            help="Unit of the temperature options.",
        ),
        click.option(
            "--p-unit",
            type=click.Choice(["kPa", "MPa", "bar"]),
            default="kPa",
            show_default=True,
            help="Unit of the pressure options.",
        ),
        click.option("--eta-mc", type=float, default=0.89, show_default=True, help="Main compressor efficiency (<0 polytropic)."),
        click.option("--eta-rc", type=float, default=0.89, show_default=True, help="Recompressor efficiency (<0 polytropic)."),
        click.option("--eta-t", type=float, default=0.90, show_default=True, help="Turbine efficiency (<0 polytropic)."),
        click.option("--p-high-limit", type=float, default=25000.0, show_default=True, help="Upper pressure limit."),
        click.option("--n-turbine", type=float, default=3600.0, show_default=True, help="Turbine speed [rpm] (<=0 links to compressor)."),
        click.option("--n-sub", type=int, default=10, show_default=True, help="Sub-exchangers per recuperator."),
        click.option("--output", "-o", type=click.Path(), default=None, help="Output file (JSON)."),
    ]
    for option in reversed(options):
        fn = option(fn)
    return fn


def operating_point(kw: dict[str, Any]) -> dict[str, Any]:
    """Convert the shared options to solver units and parameter names."""
    t_unit, p_unit = kw["t_unit"], kw["p_unit"]
    return {
        "W_dot_net": power_to_kw(kw["power"], kw["power_unit"]),
        "T_mc_in": temperature_to_k(kw["t_mc_in"], t_unit),
        "T_t_in": temperature_to_k(kw["t_t_in"], t_unit),
        "eta_mc": kw["eta_mc"],
        "eta_rc": kw["eta_rc"],
        "eta_t": kw["eta_t"],
        "P_high_limit": pressure_to_kpa(kw["p_high_limit"], p_unit),
        "N_turbine": kw["n_turbine"],
        "N_sub_hxrs": kw["n_sub"],
    }


def print_design(console: Console, solved: DesignSolved, title: str) -> None:
    """Print performance, turbomachinery and node tables of a sized design."""
    console.print(f"\n[bold]{title}[/bold]\n")

    p = solved.params
    perf = new_table("Cycle Performance")
    perf.add_row("Thermal Efficiency", f"{solved.eta_thermal:.5f}", "—")
    perf.add_row("Net Power", f"{solved.W_dot_net:.1f}", "kW")
    perf.add_row("PHX Duty", f"{solved.Q_dot_PHX:.1f}", "kW")
    perf.add_row("Heat Rejected", f"{solved.Q_dot_PC:.1f}", "kW")
    if solved.Q_dot_bypass > 0.0:
        perf.add_row("Bypass Heat", f"{solved.Q_dot_bypass:.1f}", "kW")
        perf.add_row("Bypass Fraction", f"{solved.bypass_frac:.4f}", "—")
    perf.add_row("Compressor Inlet P", f"{p.P_mc_in:.1f}", "kPa")
    perf.add_row("Compressor Outlet P", f"{p.P_mc_out:.1f}", "kPa")
    perf.add_row("Recompression Fraction", f"{solved.recomp_frac:.4f}", "—")
    perf.add_row("UA LTR / HTR", f"{solved.UA_LT:.1f} / {solved.UA_HT:.1f}", "kW/K")
    perf.add_row("Turbine Flow", f"{solved.m_dot_t:.3f}", "kg/s")
    console.print(perf)

    tm = new_table("Turbomachinery")
    if solved.mc is not None:
        tm.add_row("MC Rotor Diameter", f"{solved.mc.D_rotor * 1e3:.1f}", "mm")
        tm.add_row("MC Design Speed", f"{solved.mc.N_design:.0f}", "rpm")
    if solved.rc is not None:
        tm.add_row("RC Rotor Diameters", f"{solved.rc.D_rotor * 1e3:.1f} / {solved.rc.D_rotor_2 * 1e3:.1f}", "mm")
        tm.add_row("RC Design Speed", f"{solved.rc.N_design:.0f}", "rpm")
    if solved.t is not None:
        tm.add_row("Turbine Rotor Diameter", f"{solved.t.D_rotor * 1e3:.1f}", "mm")
        tm.add_row("Turbine Nozzle Area", f"{solved.t.A_nozzle * 1e4:.2f}", "cm²")
        tm.add_row("Turbine Speed", f"{solved.t.N_design:.0f}", "rpm")
    console.print(tm)

    nodes = Table(title="Cycle Nodes")
    nodes.add_column("Node", style="cyan")
    nodes.add_column("T [K]", style="green", justify="right")
    nodes.add_column("P [kPa]", style="green", justify="right")
    nodes.add_column("h [kJ/kg]", style="green", justify="right")
    for i, node in enumerate(solved.states, start=1):
        nodes.add_row(f"{i} {NODE_NAMES[i]}", f"{node.T:.2f}", f"{node.P:.1f}", f"{node.h:.2f}")
    console.print(nodes)


def finish(ctx: click.Context, rc: RecompCycle, title: str, output: str | None) -> None:
    """Print the sized design and optionally save it."""
    console: Console = ctx.obj.get("console", Console())
    solved = rc.design_solved
    print_design(console, solved, title)

    if output:
        save_cycle_json(CycleRecord.from_design(solved, ProjectMeta(name=title)), output)
        console.print(f"\n[dim]Saved to {output}[/dim]")


@click.group("cycle")
@click.pass_context
def cycle(ctx: click.Context) -> None:
    """Design-point cycle analysis and optimization."""
    pass


@cycle.command("design")
@common_options
@click.option("--p-mc-in", type=float, default=7690.0, show_default=True, help="Compressor inlet pressure.")
@click.option("--p-mc-out", type=float, default=25000.0, show_default=True, help="Compressor outlet pressure.")
@click.option("--recomp-frac", type=float, default=0.3, show_default=True, help="Recompression fraction.")
@click.option("--ua-lt", type=float, default=500.0, show_default=True, help="LTR conductance [kW/K].")
@click.option("--ua-ht", type=float, default=500.0, show_default=True, help="HTR conductance [kW/K].")
@click.option(
    "--topology",
    type=click.Choice(list(TOPOLOGY_CHOICES), case_sensitive=False),
    default="standard",
    show_default=True,
    help="Cycle layout.",
)
@click.option("--bypass-frac", type=float, default=0.0, show_default=True, help="HTR bypass fraction (htr-bypass).")
@click.pass_context
def design_cmd(ctx: click.Context, **kw: Any) -> None:
    """Solve and size a single design point."""
    params = DesignParameters(
        **operating_point(kw),
        P_mc_in=pressure_to_kpa(kw["p_mc_in"], kw["p_unit"]),
        P_mc_out=pressure_to_kpa(kw["p_mc_out"], kw["p_unit"]),
        recomp_frac=kw["recomp_frac"],
        UA_LT=kw["ua_lt"],
        UA_HT=kw["ua_ht"],
        topology=TOPOLOGY_CHOICES[kw["topology"].lower()],
        bypass_frac=kw["bypass_frac"],
    )
    checks = validate_cycle_design(params, T_CRIT)
    console: Console = ctx.obj.get("console", Console())
    for msg in checks.warnings:
        console.print(f"[yellow]{msg.message}[/yellow]")
    if not checks.is_valid:
        raise click.ClickException("; ".join(m.message for m in checks.errors))

    rc = RecompCycle()
    code = rc.design(params)
    if code != 0:
        raise click.ClickException(f"Design failed with error code {code}")
    finish(ctx, rc, "sCO2 Cycle - Design Point", kw["output"])


@cycle.command("optimize")
@common_options
@click.option("--ua-total", type=float, default=1000.0, show_default=True, help="Total recuperator UA [kW/K].")
@click.option("--p-mc-out", type=float, default=None, help="Fix the compressor outlet pressure.")
@click.option("--pr", type=float, default=None, help="Fix the main compressor pressure ratio.")
@click.option("--recomp-frac", type=float, default=None, help="Fix the recompression fraction.")
@click.option("--lt-frac", type=float, default=None, help="Fix the LTR share of the total UA.")
@click.pass_context
def optimize_cmd(ctx: click.Context, **kw: Any) -> None:
    """Maximize design efficiency over the free design variables."""
    op = operating_point(kw)
    opt = OptDesignParameters(**op, UA_rec_total=kw["ua_total"], P_mc_out_guess=op["P_high_limit"])
    if kw["p_mc_out"] is not None:
        opt.P_mc_out_guess = pressure_to_kpa(kw["p_mc_out"], kw["p_unit"])
        opt.fixed_P_mc_out = True
    if kw["pr"] is not None:
        opt.PR_mc_guess, opt.fixed_PR_mc = kw["pr"], True
    if kw["recomp_frac"] is not None:
        opt.recomp_frac_guess, opt.fixed_recomp_frac = kw["recomp_frac"], True
    if kw["lt_frac"] is not None:
        opt.LT_frac_guess, opt.fixed_LT_frac = kw["lt_frac"], True

    rc = RecompCycle()
    code = rc.opt_design(opt)
    if code != 0:
        raise click.ClickException(f"Design optimization failed with error code {code}")
    finish(ctx, rc, "sCO2 Cycle - Optimized Design", kw["output"])


@cycle.command("auto-optimize")
@common_options
@click.option("--ua-total", type=float, default=1000.0, show_default=True, help="Total recuperator UA [kW/K].")
@click.pass_context
def auto_optimize_cmd(ctx: click.Context, **kw: Any) -> None:
    """Optimize over the outlet pressure, comparing recompression and simple layouts."""
    auto = AutoOptDesignParameters(**operating_point(kw), UA_rec_total=kw["ua_total"])
    rc = RecompCycle()
    code = rc.auto_opt_design(auto)
    if code != 0:
        raise click.ClickException(f"Automatic design optimization failed with error code {code}")
    finish(ctx, rc, "sCO2 Cycle - Auto-Optimized Design", kw["output"])


@cycle.command("hit-eta")
@common_options
@click.option("--eta-target", type=float, default=0.45, show_default=True, help="Target thermal efficiency.")
@click.pass_context
def hit_eta_cmd(ctx: click.Context, **kw: Any) -> None:
    """Find the recuperator UA that reaches a target efficiency."""
    console: Console = ctx.obj.get("console", Console())
    params = HitEtaParameters(**operating_point(kw), eta_thermal=kw["eta_target"])
    rc = RecompCycle()
    code, message = rc.auto_opt_design_hit_eta(params)
    if message:
        console.print(f"[yellow]{message}[/yellow]")
    if code != 0:
        raise click.ClickException(f"Target efficiency not reached (error code {code})")
    finish(ctx, rc, "sCO2 Cycle - Target Efficiency Design", kw["output"])
