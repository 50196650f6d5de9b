"""Tests for the report generation module."""

import numpy as np
import pytest

from sco2_cycle.core.config import CycleRecord, ProjectMeta
from sco2_cycle.cycle.parameters import DesignParameters
from sco2_cycle.cycle.solver import RecompCycle
from sco2_cycle.reports.summary import (
    generate_html_report,
    generate_text_report,
    save_html_report,
    save_text_report,
)


def _make_record() -> CycleRecord:
    """Create a sample CycleRecord for testing."""
    return CycleRecord(
        meta=ProjectMeta(name="Test Cycle"),
        parameters={
            "W_dot_net": 10.0e3,
            "T_mc_in": 305.15,
            "T_t_in": 823.15,
            "P_mc_in": 7690.0,
            "P_mc_out": 25000.0,
            "recomp_frac": 0.3,
            "UA_LT": 500.0,
            "UA_HT": 500.0,
            "topology": "standard",
        },
        performance={
            "eta_thermal": 0.4712,
            "W_dot_net_kW": 10.0e3,
            "Q_dot_PHX_kW": 21222.0,
            "m_dot_t_kg_s": 95.3,
        },
        components={
            "main_compressor": {"D_rotor": 0.12, "N_design": 32000.0, "w_tip_ratio": 0.7, "eta_design": 0.89},
            "turbine": {"D_rotor": 0.55, "N_design": 3600.0, "A_nozzle": 0.01, "w_tip_ratio": 0.707, "eta": 0.9},
            "heat_exchangers": {"LTR": {"UA_design": 500.0, "Q_dot_design": 12000.0}},
        },
    )


class TestTextReport:
    """Test plain-text report generation."""

    def test_generates_string(self):
        report = generate_text_report(_make_record())
        assert isinstance(report, str)
        assert len(report) > 100

    def test_contains_key_sections(self):
        report = generate_text_report(_make_record())
        assert "DESIGN PARAMETERS" in report
        assert "PERFORMANCE" in report
        assert "MAIN COMPRESSOR" in report
        assert "TURBINE" in report
        assert "LOW-TEMP RECUPERATOR" in report

    def test_contains_values(self):
        report = generate_text_report(_make_record())
        assert "standard" in report
        assert "0.4712" in report  # efficiency
        assert "25.0000" in report  # outlet pressure in MPa

    def test_skips_missing_components(self):
        report = generate_text_report(_make_record())
        assert "RECOMPRESSOR" not in report

    def test_empty_record_still_works(self):
        report = generate_text_report(CycleRecord())
        assert "Cycle Report" in report
        assert "DESIGN PARAMETERS" not in report

    def test_contains_footer(self):
        report = generate_text_report(_make_record())
        assert "sCO2 Cycle" in report

    def test_node_table(self):
        record = _make_record()
        record.arrays["temperature"] = np.linspace(305.0, 823.0, 10)
        record.arrays["pressure"] = np.full(10, 7690.0)
        report = generate_text_report(record)
        assert "CYCLE NODES" in report
        assert "Turbine inlet" in report

    def test_off_design_section(self):
        record = _make_record()
        record.off_design = {
            "parameters": {"P_mc_in": 7400.0, "N_mc": 30000.0},
            "performance": {"W_dot_net": 9100.0, "eta_thermal": 0.46},
        }
        report = generate_text_report(record)
        assert "OFF-DESIGN POINT" in report
        assert "9100" in report


class TestHtmlReport:
    """Test HTML report generation."""

    def test_generates_html(self):
        report = generate_html_report(_make_record())
        assert report.startswith("<!DOCTYPE html>")
        assert "</html>" in report

    def test_contains_tables(self):
        report = generate_html_report(_make_record())
        assert "<table>" in report
        assert "Design Parameters" in report
        assert "Main Compressor" in report

    def test_valid_structure(self):
        report = generate_html_report(_make_record())
        assert "<head>" in report
        assert "<body>" in report
        assert report.count("<table>") == report.count("</table>")

    def test_name_escaped(self):
        report = generate_html_report(CycleRecord(meta=ProjectMeta(name="<b>cycle</b>")))
        assert "&lt;b&gt;cycle&lt;/b&gt;" in report

    def test_empty_record(self):
        report = generate_html_report(CycleRecord())
        assert "</html>" in report


class TestReportFromSolvedCycle:
    """Reports built from a finalized design."""

    @pytest.fixture(scope="class")
    def record(self):
        cycle = RecompCycle()
        assert cycle.design(DesignParameters()) == 0
        return CycleRecord.from_design(cycle.design_solved, ProjectMeta(name="Baseline"))

    def test_text(self, record):
        report = generate_text_report(record)
        assert "RECOMPRESSOR" in report
        assert "PRECOOLER" in report
        assert "CYCLE NODES" in report

    def test_save(self, record, tmp_path):
        text_path = tmp_path / "report.txt"
        html_path = tmp_path / "report.html"
        save_text_report(record, str(text_path))
        save_html_report(record, str(html_path))
        assert "Baseline" in text_path.read_text()
        assert "Cycle Nodes" in html_path.read_text()
