"""CLI commands for off-design operation of a saved design."""

from __future__ import annotations

import math
from typing import Any

import click
from rich.console import Console

from sco2_cycle.cli.cycle_cmd import new_table
from sco2_cycle.core.config import CycleRecord, load_cycle_json, save_cycle_json
from sco2_cycle.cycle.parameters import (
    DesignParameters,
    OffDesignParameters,
    OptOffDesignParameters,
    OptTargetOffDesignParameters,
    PHXOffDesignParameters,
    TargetOffDesignParameters,
    Topology,
)
from sco2_cycle.cycle.solver import RecompCycle
from sco2_cycle.utils.units import temperature_to_k


def rebuild_cycle(record: CycleRecord) -> RecompCycle:
    """Re-solve the design stored in a cycle record."""
    if not record.parameters:
        raise click.ClickException("Design file holds no design parameters")
    values = dict(record.parameters)
    values["topology"] = Topology(values.get("topology", Topology.STANDARD.value))
    params = DesignParameters(**values)

    rc = RecompCycle()
    code = rc.design(params)
    if code != 0:
        raise click.ClickException(f"Stored design could not be rebuilt (error code {code})")
    return rc


def print_point(ctx: click.Context, rc: RecompCycle, title: str) -> None:
    console: Console = ctx.obj.get("console", Console())
    od, sol = rc.od_par, rc.od_solved
    console.print(f"\n[bold]{title}[/bold]\n")

    table = new_table("Off-Design Point")
    table.add_row("Compressor Inlet T", f"{od.T_mc_in:.2f}", "K")
    table.add_row("Turbine Inlet T", f"{od.T_t_in:.2f}", "K")
    table.add_row("Compressor Inlet P", f"{od.P_mc_in:.1f}", "kPa")
    table.add_row("Recompression Fraction", f"{sol.recomp_frac:.4f}", "—")
    table.add_row("Compressor Speed", f"{sol.N_mc:.0f}", "rpm")
    table.add_row("Turbine Speed", f"{sol.N_t:.0f}", "rpm")
    table.add_row("Thermal Efficiency", f"{sol.eta_thermal:.5f}", "—")
    table.add_row("Net Power", f"{sol.W_dot_net:.1f}", "kW")
    table.add_row("PHX Duty", f"{sol.Q_dot_PHX:.1f}", "kW")
    table.add_row("Heat Rejected", f"{sol.Q_dot_PC:.1f}", "kW")
    table.add_row("Turbine Flow", f"{sol.m_dot_t:.3f}", "kg/s")
    console.print(table)

    design = rc.design_solved
    ratio = sol.W_dot_net / design.W_dot_net if design.W_dot_net else 0.0
    console.print(f"\nPart load: [green]{100.0 * ratio:.1f}%[/green] of design net power")


def save_point(ctx: click.Context, record: CycleRecord, rc: RecompCycle, output: str | None) -> None:
    if not output:
        return
    console: Console = ctx.obj.get("console", Console())
    record.add_off_design(rc.od_par, rc.od_solved, rc.states.as_arrays())
    save_cycle_json(record, output)
    console.print(f"\n[dim]Saved to {output}[/dim]")


def _temperatures(kw: dict[str, Any], rc: RecompCycle) -> tuple[float, float]:
    design = rc.design_solved.params
    T_mc_in = design.T_mc_in if kw["t_mc_in"] is None else temperature_to_k(kw["t_mc_in"], kw["t_unit"])
    T_t_in = design.T_t_in if kw["t_t_in"] is None else temperature_to_k(kw["t_t_in"], kw["t_unit"])
    return T_mc_in, T_t_in


def design_options(fn: Any) -> Any:
    options = [
        click.option("--design", type=click.Path(exists=True), required=True, help="Input design JSON."),
        click.option("--t-mc-in", type=float, default=None, help="Compressor inlet temperature [design]."),
        click.option("--t-t-in", type=float, default=None, help="Turbine inlet temperature [design]."),
        click.option(
            "--t-unit",
            type=click.Choice(["K", "degC"]),
            default="K",
            show_default=True,
            help="Unit of the temperature options.",
        ),
        click.option("--output", "-o", type=click.Path(), default=None, help="Output file (JSON)."),
    ]
    for option in reversed(options):
        fn = option(fn)
    return fn


@click.group("off-design")
@click.pass_context
def off_design(ctx: click.Context) -> None:
    """Off-design operation of a saved design."""
    pass


@off_design.command("run")
@design_options
@click.option("--p-mc-in", type=float, default=None, help="Compressor inlet pressure [kPa, design].")
@click.option("--recomp-frac", type=float, default=None, help="Recompression fraction [design].")
@click.option("--n-mc", type=float, default=None, help="Compressor speed [rpm, design].")
@click.option("--n-t", type=float, default=None, help="Turbine speed [rpm, design].")
@click.pass_context
def run_cmd(ctx: click.Context, **kw: Any) -> None:
    """Solve the sized cycle at one operating point."""
    record = load_cycle_json(kw["design"])
    rc = rebuild_cycle(record)
    design = rc.design_solved
    T_mc_in, T_t_in = _temperatures(kw, rc)

    od = OffDesignParameters(
        T_mc_in=T_mc_in,
        T_t_in=T_t_in,
        P_mc_in=design.params.P_mc_in if kw["p_mc_in"] is None else kw["p_mc_in"],
        recomp_frac=design.recomp_frac if kw["recomp_frac"] is None else kw["recomp_frac"],
        N_mc=design.mc.N_design if kw["n_mc"] is None else kw["n_mc"],
        N_t=design.t.N_design if kw["n_t"] is None else kw["n_t"],
        N_sub_hxrs=design.params.N_sub_hxrs,
    )
    code = rc.off_design(od)
    if code != 0:
        raise click.ClickException(f"Off-design solve failed with error code {code}")
    print_point(ctx, rc, "sCO2 Cycle - Off-Design Point")
    save_point(ctx, record, rc, kw["output"])


@off_design.command("optimize")
@design_options
@click.option(
    "--objective",
    type=click.Choice(["power", "efficiency"], case_sensitive=False),
    default="power",
    show_default=True,
    help="Quantity to maximize.",
)
@click.option("--fix-pressure", type=float, default=None, help="Fix the compressor inlet pressure [kPa].")
@click.option("--fix-recomp-frac", type=float, default=None, help="Fix the recompression fraction.")
@click.option("--fix-n-mc", type=float, default=None, help="Fix the compressor speed [rpm].")
@click.option("--fix-n-t", type=float, default=None, help="Fix the turbine speed [rpm].")
@click.pass_context
def optimize_cmd(ctx: click.Context, **kw: Any) -> None:
    """Maximize off-design net power or efficiency."""
    record = load_cycle_json(kw["design"])
    rc = rebuild_cycle(record)
    design = rc.design_solved
    T_mc_in, T_t_in = _temperatures(kw, rc)

    opt = OptOffDesignParameters(
        T_mc_in=T_mc_in,
        T_t_in=T_t_in,
        is_max_W_dot=kw["objective"].lower() == "power",
        N_sub_hxrs=design.params.N_sub_hxrs,
        P_mc_in_guess=design.params.P_mc_in,
        recomp_frac_guess=design.recomp_frac,
        N_mc_guess=design.mc.N_design,
        N_t_guess=design.t.N_design,
    )
    if kw["fix_pressure"] is not None:
        opt.P_mc_in_guess, opt.fixed_P_mc_in = kw["fix_pressure"], True
    if kw["fix_recomp_frac"] is not None:
        opt.recomp_frac_guess, opt.fixed_recomp_frac = kw["fix_recomp_frac"], True
    if kw["fix_n_mc"] is not None:
        opt.N_mc_guess, opt.fixed_N_mc = kw["fix_n_mc"], True
    if kw["fix_n_t"] is not None:
        opt.N_t_guess, opt.fixed_N_t = kw["fix_n_t"], True

    code = rc.optimal_off_design(opt)
    if code != 0:
        raise click.ClickException(f"Off-design optimization failed with error code {code}")
    print_point(ctx, rc, "sCO2 Cycle - Optimal Off-Design Point")
    save_point(ctx, record, rc, kw["output"])


@off_design.command("target")
@design_options
@click.option("--target", type=float, required=True, help="Target net power (or PHX duty) [kW].")
@click.option("--heat", is_flag=True, default=False, help="Target PHX duty instead of net power.")
@click.option("--lowest-pressure", type=float, default=1000.0, show_default=True, help="Lowest inlet pressure [kPa].")
@click.option("--highest-pressure", type=float, default=12000.0, show_default=True, help="Highest inlet pressure [kPa].")
@click.option("--optimize", "do_optimize", is_flag=True, default=False, help="Choose recompression fraction and speeds for best efficiency.")
@click.option("--no-check", is_flag=True, default=False, help="With --optimize, skip the maximum-output check.")
@click.pass_context
def target_cmd(ctx: click.Context, **kw: Any) -> None:
    """Find the compressor inlet pressure delivering a target output."""
    console: Console = ctx.obj.get("console", Console())
    record = load_cycle_json(kw["design"])
    rc = rebuild_cycle(record)
    design = rc.design_solved
    T_mc_in, T_t_in = _temperatures(kw, rc)

    if kw["do_optimize"]:
        opt_tar = OptTargetOffDesignParameters(
            T_mc_in=T_mc_in,
            T_t_in=T_t_in,
            target=kw["target"],
            is_target_Q=kw["heat"],
            N_sub_hxrs=design.params.N_sub_hxrs,
            lowest_pressure=kw["lowest_pressure"],
            highest_pressure=kw["highest_pressure"],
            recomp_frac_guess=design.recomp_frac,
            N_mc_guess=design.mc.N_design,
            N_t_guess=design.t.N_design,
        )
        if kw["no_check"]:
            code = rc.optimal_target_off_design_no_check(opt_tar)
        else:
            code = rc.optimal_target_off_design(opt_tar)
            if not math.isnan(rc.max_output):
                console.print(f"Maximum output: [green]{rc.max_output:.1f}[/green] kW")
    else:
        tar = TargetOffDesignParameters(
            T_mc_in=T_mc_in,
            T_t_in=T_t_in,
            recomp_frac=design.recomp_frac,
            N_mc=design.mc.N_design,
            N_t=design.t.N_design,
            N_sub_hxrs=design.params.N_sub_hxrs,
            target=kw["target"],
            is_target_Q=kw["heat"],
            lowest_pressure=kw["lowest_pressure"],
            highest_pressure=kw["highest_pressure"],
        )
        code = rc.target_off_design(tar)

    if code != 0:
        raise click.ClickException(f"Target not reached (error code {code})")
    print_point(ctx, rc, "sCO2 Cycle - Target Off-Design Point")
    save_point(ctx, record, rc, kw["output"])


@off_design.command("phx")
@design_options
@click.option("--t-htf-hot", type=float, required=True, help="Heat-transfer fluid inlet temperature [K].")
@click.option("--t-htf-cold", type=float, required=True, help="Target heat-transfer fluid return temperature [K].")
@click.option("--m-dot-htf", type=float, required=True, help="Heat-transfer fluid flow [kg/s].")
@click.option("--m-dot-htf-des", type=float, default=None, help="Design heat-transfer fluid flow [kg/s, current flow].")
@click.option("--ua-phx", type=float, required=True, help="Design PHX conductance [kW/K].")
@click.option("--cp-htf", type=float, default=1.5, show_default=True, help="Heat-transfer fluid heat capacity [kJ/kg-K].")
@click.pass_context
def phx_cmd(ctx: click.Context, **kw: Any) -> None:
    """Most efficient point matching primary heat exchanger conditions."""
    console: Console = ctx.obj.get("console", Console())
    record = load_cycle_json(kw["design"])
    rc = rebuild_cycle(record)
    design = rc.design_solved
    T_mc_in, T_t_in = _temperatures(kw, rc)

    od = OffDesignParameters(
        T_mc_in=T_mc_in,
        T_t_in=T_t_in,
        P_mc_in=design.params.P_mc_in,
        recomp_frac=design.recomp_frac,
        N_mc=design.mc.N_design,
        N_t=design.t.N_design,
        N_sub_hxrs=design.params.N_sub_hxrs,
    )
    phx = PHXOffDesignParameters(
        T_htf_hot=kw["t_htf_hot"],
        T_htf_cold=kw["t_htf_cold"],
        m_dot_htf=kw["m_dot_htf"],
        m_dot_htf_des=kw["m_dot_htf"] if kw["m_dot_htf_des"] is None else kw["m_dot_htf_des"],
        UA_PHX_des=kw["ua_phx"],
        cp_htf=kw["cp_htf"],
    )
    code = rc.opt_od_eta_for_hx(od, phx)
    point = rc.phx_point
    if point is None or point.point is None:
        raise click.ClickException(f"No off-design point for the PHX conditions (error code {code})")
    if code != 0:
        console.print("[yellow]No point met every PHX condition; showing the closest one.[/yellow]")

    print_point(ctx, rc, "sCO2 Cycle - PHX-Coupled Off-Design Point")
    console.print(f"HTF return temperature: [green]{point.T_htf_cold:.2f}[/green] K")
    save_point(ctx, record, rc, kw["output"])
