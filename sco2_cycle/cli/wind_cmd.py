"""CLI commands for wind-farm wake and energy calculations."""

from __future__ import annotations

import json

import click
import numpy as np
from rich.console import Console
from rich.table import Table

from sco2_cycle.cli.cycle_cmd import new_table
from sco2_cycle.utils.constants import HOURS_PER_YEAR
from sco2_cycle.wind.farm import FarmInput, wind_power
from sco2_cycle.wind.power_curve import TurbineSpec, WindFarmError, annual_energy_weibull
from sco2_cycle.wind.wake_models import WakeModel

MODEL_CHOICES = {
    "pq": WakeModel.PQ_MODIFIED,
    "park": WakeModel.PARK,
    "ev": WakeModel.EDDY_VISCOSITY,
    "pq-original": WakeModel.PQ_ORIGINAL,
}


def grid_layout(rows: int, cols: int, spacing: float) -> tuple[np.ndarray, np.ndarray]:
    """Rectangular layout, ``spacing`` metres apart, rows running east-west."""
    xx, yy = np.meshgrid(np.arange(cols) * spacing, np.arange(rows) * spacing)
    return xx.ravel(), yy.ravel()


def load_layout(path: str) -> tuple[np.ndarray, np.ndarray]:
    """Read ``{"x": [...], "y": [...]}`` turbine coordinates in metres."""
    with open(path) as f:
        data = json.load(f)
    return np.asarray(data["x"], dtype=float), np.asarray(data["y"], dtype=float)


@click.group("wind")
@click.pass_context
def wind(ctx: click.Context) -> None:
    """Wind-farm wake losses and turbine energy yield."""
    pass


@wind.command("farm")
@click.option("--rows", type=int, default=1, show_default=True, help="Turbine rows (grid layout).")
@click.option("--cols", type=int, default=3, show_default=True, help="Turbines per row (grid layout).")
@click.option("--spacing", type=float, default=630.0, show_default=True, help="Grid spacing [m].")
@click.option("--layout", type=click.Path(exists=True), default=None, help="Layout JSON with x and y lists [m].")
@click.option(
    "--model",
    type=click.Choice(list(MODEL_CHOICES), case_sensitive=False),
    default="pq",
    show_default=True,
    help="Wake model.",
)
@click.option("--wind-speed", type=float, default=10.0, show_default=True, help="Wind speed [m/s].")
@click.option("--wind-dir", type=float, default=270.0, show_default=True, help="Wind direction [deg, from north].")
@click.option("--ti", type=float, default=0.1, show_default=True, help="Ambient turbulence intensity.")
@click.option("--air-temp", type=float, default=15.0, show_default=True, help="Air temperature [°C].")
@click.option("--air-pressure", type=float, default=1.0, show_default=True, help="Air pressure [atm].")
@click.option("--rotor-diameter", type=float, default=90.0, show_default=True, help="Rotor diameter [m].")
@click.option("--hub-height", type=float, default=80.0, show_default=True, help="Hub height [m].")
@click.option("--output", "-o", type=click.Path(), default=None, help="Output file (JSON).")
@click.pass_context
def farm_cmd(
    ctx: click.Context,
    rows: int,
    cols: int,
    spacing: float,
    layout: str | None,
    model: str,
    wind_speed: float,
    wind_dir: float,
    ti: float,
    air_temp: float,
    air_pressure: float,
    rotor_diameter: float,
    hub_height: float,
    output: str | None,
) -> None:
    """Farm power with wake losses at one wind condition."""
    console: Console = ctx.obj.get("console", Console())

    x, y = load_layout(layout) if layout else grid_layout(rows, cols, spacing)
    farm = FarmInput(
        turbine=TurbineSpec(rotor_diameter=rotor_diameter, hub_height=hub_height),
        x=x,
        y=y,
        wake_model=MODEL_CHOICES[model.lower()],
        turbulence_intensity=ti,
    )
    try:
        result = wind_power(farm, wind_speed, wind_dir, air_temp, air_pressure)
    except WindFarmError as exc:
        raise click.ClickException(str(exc)) from exc

    console.print(f"\n[bold]Wind Farm - {farm.wake_model.display_name}[/bold]\n")

    table = Table(title="Turbines")
    table.add_column("#", style="cyan")
    table.add_column("x [m]", justify="right")
    table.add_column("y [m]", justify="right")
    table.add_column("Power [kW]", style="green", justify="right")
    table.add_column("Eff [%]", style="green", justify="right")
    table.add_column("Wind [m/s]", justify="right")
    table.add_column("TI", justify="right")
    table.add_column("CT", style="dim", justify="right")
    for i in range(farm.n_turbines):
        table.add_row(
            str(i + 1),
            f"{farm.x[i]:.0f}",
            f"{farm.y[i]:.0f}",
            f"{result.power[i]:.1f}",
            f"{result.eff[i]:.1f}",
            f"{result.wind_speed[i]:.2f}",
            f"{result.turb_intensity[i]:.3f}",
            f"{result.thrust[i]:.3f}",
        )
    console.print(table)

    free = result.power.max() * farm.n_turbines
    wake_loss = 100.0 * (1.0 - result.farm_power / free) if free > 0.0 else 0.0
    console.print(f"\nFarm power: [green]{result.farm_power:.1f}[/green] kW")
    console.print(f"Wake loss vs. best turbine: [green]{wake_loss:.1f}%[/green]")

    if output:
        data = {
            "wake_model": farm.wake_model.value,
            "wind_speed": wind_speed,
            "wind_dir": wind_dir,
            "x": farm.x.tolist(),
            "y": farm.y.tolist(),
            "summary": result.summary(),
            "power": result.power.tolist(),
            "eff": result.eff.tolist(),
            "wind_speed_at_turbine": result.wind_speed.tolist(),
            "turb_intensity": result.turb_intensity.tolist(),
            "thrust": result.thrust.tolist(),
        }
        with open(output, "w") as f:
            json.dump(data, f, indent=2)
        console.print(f"\n[dim]Saved to {output}[/dim]")


@wind.command("energy")
@click.option("--weibull-k", type=float, default=2.0, show_default=True, help="Weibull shape factor.")
@click.option("--resource-class", type=float, default=7.0, show_default=True, help="Mean wind speed at 50 m [m/s].")
@click.option("--hub-height", type=float, default=80.0, show_default=True, help="Hub height [m].")
@click.option("--n-turbines", type=int, default=1, show_default=True, help="Number of turbines.")
@click.pass_context
def energy_cmd(ctx: click.Context, weibull_k: float, resource_class: float, hub_height: float, n_turbines: int) -> None:
    """Annual energy of the reference turbine from a Weibull distribution."""
    console: Console = ctx.obj.get("console", Console())
    spec = TurbineSpec(hub_height=hub_height)
    try:
        energy = annual_energy_weibull(spec, weibull_k, resource_class)
    except WindFarmError as exc:
        raise click.ClickException(str(exc)) from exc

    table = new_table("Annual Energy (Weibull)")
    table.add_row("Shape Factor k", f"{weibull_k:.2f}", "—")
    table.add_row("Mean Wind at 50 m", f"{resource_class:.2f}", "m/s")
    table.add_row("Energy per Turbine", f"{energy / 1e3:.1f}", "MWh/yr")
    table.add_row("Farm Energy (no wakes)", f"{n_turbines * energy / 1e3:.1f}", "MWh/yr")
    table.add_row("Capacity Factor", f"{100.0 * energy / (spec.rated_power * HOURS_PER_YEAR):.1f}", "%")
    console.print(table)
