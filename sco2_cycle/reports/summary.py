"""Cycle summary report generation for sCO2 Cycle.

Produces text and HTML reports from a CycleRecord: design parameters,
performance, turbomachinery and heat exchanger sizing, the node states
and, when present, the attached off-design point.
"""

from __future__ import annotations

import html as html_mod
from datetime import datetime, timezone
from typing import Any

import numpy as np

from sco2_cycle import __app_name__
from sco2_cycle.core.config import CycleRecord
from sco2_cycle.cycle.components.base import NODE_NAMES

_HX_LABELS = {"LTR": "Low-Temp Recuperator", "HTR": "High-Temp Recuperator", "PHX": "Primary HX", "PC": "Precooler"}


def _topology(record: CycleRecord) -> str:
    topology = record.parameters.get("topology", "standard")
    return str(getattr(topology, "value", topology))


def _design_rows(record: CycleRecord) -> list[tuple[str, dict[str, Any], str, str, float]]:
    p = record.parameters
    return [
        ("Net Power", p, "W_dot_net", "MW", 1e-3),
        ("Compressor Inlet T", p, "T_mc_in", "K", 1.0),
        ("Turbine Inlet T", p, "T_t_in", "K", 1.0),
        ("Compressor Inlet P", p, "P_mc_in", "MPa", 1e-3),
        ("Compressor Outlet P", p, "P_mc_out", "MPa", 1e-3),
        ("Recompression Frac", p, "recomp_frac", "", 1.0),
        ("UA LTR", p, "UA_LT", "kW/K", 1.0),
        ("UA HTR", p, "UA_HT", "kW/K", 1.0),
        ("eta Main Comp.", p, "eta_mc", "", 1.0),
        ("eta Recomp.", p, "eta_rc", "", 1.0),
        ("eta Turbine", p, "eta_t", "", 1.0),
    ]


def _performance_rows(perf: dict[str, Any]) -> list[tuple[str, dict[str, Any], str, str, float]]:
    return [
        ("Thermal Efficiency", perf, "eta_thermal", "", 1.0),
        ("Net Power", perf, "W_dot_net_kW", "kW", 1.0),
        ("PHX Duty", perf, "Q_dot_PHX_kW", "kW", 1.0),
        ("Heat Rejected", perf, "Q_dot_PC_kW", "kW", 1.0),
        ("Bypass Heat", perf, "Q_dot_bypass_kW", "kW", 1.0),
        ("Turbine Flow", perf, "m_dot_t_kg_s", "kg/s", 1.0),
        ("Main Comp. Flow", perf, "m_dot_mc_kg_s", "kg/s", 1.0),
        ("Recomp. Flow", perf, "m_dot_rc_kg_s", "kg/s", 1.0),
        ("Recompression Frac", perf, "recomp_frac", "", 1.0),
    ]


def _component_rows(record: CycleRecord) -> list[tuple[str, list[tuple[str, dict[str, Any], str, str, float]]]]:
    c = record.components
    sections = []
    mc = c.get("main_compressor")
    if mc:
        sections.append(
            (
                "Main Compressor",
                [
                    ("Rotor Diameter", mc, "D_rotor", "mm", 1e3),
                    ("Design Speed", mc, "N_design", "rpm", 1.0),
                    ("Tip Speed Ratio", mc, "w_tip_ratio", "", 1.0),
                    ("Efficiency", mc, "eta_design", "", 1.0),
                ],
            )
        )
    rc = c.get("recompressor")
    if rc:
        sections.append(
            (
                "Recompressor",
                [
                    ("Stage 1 Diameter", rc, "D_rotor", "mm", 1e3),
                    ("Stage 2 Diameter", rc, "D_rotor_2", "mm", 1e3),
                    ("Design Speed", rc, "N_design", "rpm", 1.0),
                    ("Efficiency", rc, "eta_design", "", 1.0),
                ],
            )
        )
    t = c.get("turbine")
    if t:
        sections.append(
            (
                "Turbine",
                [
                    ("Rotor Diameter", t, "D_rotor", "mm", 1e3),
                    ("Nozzle Area", t, "A_nozzle", "cm²", 1e4),
                    ("Design Speed", t, "N_design", "rpm", 1.0),
                    ("Tip Speed Ratio", t, "w_tip_ratio", "", 1.0),
                    ("Efficiency", t, "eta", "", 1.0),
                ],
            )
        )
    for name, hx in c.get("heat_exchangers", {}).items():
        sections.append(
            (
                _HX_LABELS.get(name, name),
                [
                    ("UA", hx, "UA_design", "kW/K", 1.0),
                    ("Duty", hx, "Q_dot_design", "kW", 1.0),
                    ("Effectiveness", hx, "eff_design", "", 1.0),
                    ("Min. Approach", hx, "min_DT_design", "K", 1.0),
                ],
            )
        )
    return sections


def _od_rows(record: CycleRecord) -> list[tuple[str, dict[str, Any], str, str, float]]:
    p = record.off_design.get("parameters", {})
    perf = record.off_design.get("performance", {})
    return [
        ("Compressor Inlet T", p, "T_mc_in", "K", 1.0),
        ("Turbine Inlet T", p, "T_t_in", "K", 1.0),
        ("Compressor Inlet P", p, "P_mc_in", "MPa", 1e-3),
        ("Recompression Frac", p, "recomp_frac", "", 1.0),
        ("Main Comp. Speed", p, "N_mc", "rpm", 1.0),
        ("Turbine Speed", p, "N_t", "rpm", 1.0),
        ("Thermal Efficiency", perf, "eta_thermal", "", 1.0),
        ("Net Power", perf, "W_dot_net", "kW", 1.0),
        ("PHX Duty", perf, "Q_dot_PHX", "kW", 1.0),
        ("Turbine Flow", perf, "m_dot_t", "kg/s", 1.0),
    ]


def generate_text_report(record: CycleRecord) -> str:
    """Generate a plain-text cycle summary report.

    Args:
        record: CycleRecord with design (and optionally off-design) data.

    Returns:
        Multi-line text report string.
    """
    lines: list[str] = []
    _hr = "=" * 60

    lines.append(_hr)
    lines.append(f"  {__app_name__} - Cycle Report")
    lines.append(f"  {record.meta.name}")
    lines.append(_hr)
    lines.append("")

    if record.parameters:
        lines.append("DESIGN PARAMETERS")
        lines.append("-" * 40)
        _add_param_str(lines, "Topology", _topology(record))
        for row in _design_rows(record):
            _add_param(lines, *row)
        lines.append("")

    if record.performance:
        lines.append("PERFORMANCE")
        lines.append("-" * 40)
        for row in _performance_rows(record.performance):
            _add_param(lines, *row)
        lines.append("")

    for title, rows in _component_rows(record):
        lines.append(title.upper())
        lines.append("-" * 40)
        for row in rows:
            _add_param(lines, *row)
        lines.append("")

    if "temperature" in record.arrays:
        lines.append("CYCLE NODES")
        lines.append("-" * 40)
        lines.append(f"  {'Node':<24s} {'T [K]':>9s} {'P [kPa]':>10s}")
        T = np.asarray(record.arrays["temperature"])
        P = np.asarray(record.arrays["pressure"])
        for i, (t_i, p_i) in enumerate(zip(T, P), start=1):
            lines.append(f"  {i:>2d} {NODE_NAMES.get(i, ''):<21s} {t_i:>9.2f} {p_i:>10.1f}")
        lines.append("")

    if record.off_design:
        lines.append("OFF-DESIGN POINT")
        lines.append("-" * 40)
        for row in _od_rows(record):
            _add_param(lines, *row)
        lines.append("")

    lines.append(_hr)
    lines.append(f"  Generated: {datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M UTC')}")
    lines.append(f"  {__app_name__} v{record.meta.version}")
    lines.append(_hr)

    return "\n".join(lines)


def _add_param(
    lines: list[str],
    label: str,
    data: dict[str, Any],
    key: str,
    unit: str = "",
    scale: float = 1.0,
) -> None:
    """Add a parameter line if the key exists in data."""
    val = data.get(key)
    if val is not None:
        scaled = val * scale
        unit_str = f" {unit}" if unit else ""
        if isinstance(scaled, float):
            lines.append(f"  {label:<20s} {scaled:>12.4f}{unit_str}")
        else:
            lines.append(f"  {label:<20s} {scaled!s:>12}{unit_str}")


def _add_param_str(lines: list[str], label: str, value: str) -> None:
    """Add a string parameter line."""
    lines.append(f"  {label:<20s} {value:>12}")


def generate_html_report(record: CycleRecord) -> str:
    """Generate an HTML cycle summary report.

    Produces a self-contained HTML document with inline CSS styling.
    """
    sections: list[str] = [_html_header(record)]

    if record.parameters:
        rows = [("Topology", _topology(record), "")]
        for row in _design_rows(record):
            _html_row(rows, *row)
        sections.append(_html_table("Design Parameters", rows))

    if record.performance:
        rows = []
        for row in _performance_rows(record.performance):
            _html_row(rows, *row)
        sections.append(_html_table("Performance", rows))

    for title, spec_rows in _component_rows(record):
        rows = []
        for row in spec_rows:
            _html_row(rows, *row)
        sections.append(_html_table(title, rows))

    if "temperature" in record.arrays:
        rows = []
        T = np.asarray(record.arrays["temperature"])
        P = np.asarray(record.arrays["pressure"])
        for i, (t_i, p_i) in enumerate(zip(T, P), start=1):
            rows.append((f"{i} {NODE_NAMES.get(i, '')}", f"{t_i:.2f} K", f"{p_i:.1f} kPa"))
        sections.append(_html_table("Cycle Nodes", rows, header=("Node", "Temperature", "Pressure")))

    if record.off_design:
        rows = []
        for row in _od_rows(record):
            _html_row(rows, *row)
        sections.append(_html_table("Off-Design Point", rows))

    sections.append(_html_footer(record))
    return "\n".join(sections)


def _html_header(record: CycleRecord) -> str:
    title = html_mod.escape(record.meta.name)
    app = html_mod.escape(__app_name__)
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>{app} &mdash; {title}</title>
<style>
body {{ font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, sans-serif;
       max-width: 800px; margin: 2em auto; padding: 0 1em; color: #222; }}
h1 {{ color: #1a365d; border-bottom: 2px solid #2b6cb0; padding-bottom: 0.3em; }}
h2 {{ color: #2b6cb0; margin-top: 1.5em; }}
table {{ width: 100%; border-collapse: collapse; margin: 0.5em 0 1.5em; }}
th, td {{ text-align: left; padding: 0.4em 0.8em; border-bottom: 1px solid #e2e8f0; }}
th {{ background: #ebf4ff; color: #1a365d; }}
td:nth-child(2) {{ text-align: right; font-family: "SF Mono", "Fira Code", monospace; }}
td:nth-child(3) {{ color: #718096; font-size: 0.9em; }}
.footer {{ margin-top: 2em; padding-top: 1em; border-top: 1px solid #e2e8f0;
           color: #a0aec0; font-size: 0.85em; }}
</style>
</head>
<body>
<h1>{app} &mdash; Cycle Report</h1>
<p><strong>{title}</strong></p>
"""


def _html_table(
    title: str,
    rows: list[tuple[str, str, str]],
    header: tuple[str, str, str] = ("Parameter", "Value", "Unit"),
) -> str:
    esc = html_mod.escape
    lines = [f"<h2>{esc(title)}</h2>", "<table>"]
    lines.append("<tr>" + "".join(f"<th>{esc(h)}</th>" for h in header) + "</tr>")
    for label, value, unit in rows:
        lines.append(f"<tr><td>{esc(label)}</td><td>{esc(value)}</td><td>{esc(unit)}</td></tr>")
    lines.append("</table>")
    return "\n".join(lines)


def _html_row(
    rows: list[tuple[str, str, str]],
    label: str,
    data: dict[str, Any],
    key: str,
    unit: str,
    scale: float = 1.0,
) -> None:
    val = data.get(key)
    if val is not None:
        scaled = val * scale
        if isinstance(scaled, float):
            rows.append((label, f"{scaled:.4f}", unit))
        else:
            rows.append((label, str(scaled), unit))


def _html_footer(record: CycleRecord) -> str:
    ts = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
    return f"""<div class="footer">
Generated: {ts} &middot; {html_mod.escape(__app_name__)} v{html_mod.escape(record.meta.version)}
</div>
</body>
</html>"""


def save_text_report(record: CycleRecord, filepath: str) -> None:
    """Generate and save a plain-text report to a file."""
    report = generate_text_report(record)
    with open(filepath, "w") as f:
        f.write(report)


def save_html_report(record: CycleRecord, filepath: str) -> None:
    """Generate and save an HTML report to a file."""
    report = generate_html_report(record)
    with open(filepath, "w") as f:
        f.write(report)
