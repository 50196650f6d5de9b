"""Tests for cycle record persistence."""

import json

import numpy as np
import pytest

from sco2_cycle.core.config import (
    CycleRecord,
    ProjectMeta,
    load_arrays_hdf5,
    load_cycle_json,
    save_arrays_hdf5,
    save_cycle_json,
)
from sco2_cycle.cycle.off_design import OffDesignSolution
from sco2_cycle.cycle.parameters import OffDesignParameters, Topology


def _make_record() -> CycleRecord:
    """A record with hand-filled results and node arrays."""
    return CycleRecord(
        meta=ProjectMeta(name="Test Cycle"),
        parameters={"W_dot_net": 10.0e3, "P_mc_in": 7690.0, "topology": Topology.STANDARD},
        performance={"eta_thermal": 0.47, "W_dot_net_kW": 10.0e3},
        components={"turbine": {"N_design": 3600.0, "D_rotor": 0.5}},
        _array_data={
            "temperature": np.linspace(305.15, 823.15, 10),
            "pressure": np.full(10, 7690.0),
        },
    )


class TestProjectMeta:
    def test_touch(self):
        meta = ProjectMeta(name="Test")
        meta.touch()
        assert meta.modified != ""
        assert meta.created == meta.modified

    def test_touch_keeps_created(self):
        meta = ProjectMeta(created="2024-01-01T00:00:00+00:00")
        meta.touch()
        assert meta.created == "2024-01-01T00:00:00+00:00"


class TestCycleRecord:
    def test_defaults(self):
        record = CycleRecord()
        assert record.kind == "design"
        assert record.arrays == {}

    def test_add_off_design(self):
        record = _make_record()
        record.add_off_design(
            OffDesignParameters(P_mc_in=7500.0),
            OffDesignSolution(W_dot_net=9500.0),
            {"temperature": np.ones(10)},
        )
        assert record.kind == "off_design"
        assert record.off_design["parameters"]["P_mc_in"] == 7500.0
        assert record.off_design["performance"]["W_dot_net"] == 9500.0
        assert "od_temperature" in record.arrays
        assert "temperature" in record.arrays


class TestJsonPersistence:
    def test_save_and_load(self, tmp_path):
        path = tmp_path / "cycle.json"
        save_cycle_json(_make_record(), path)

        loaded = load_cycle_json(path)
        assert loaded.meta.name == "Test Cycle"
        assert loaded.meta.modified != ""
        assert loaded.parameters["P_mc_in"] == pytest.approx(7690.0)
        assert loaded.performance["eta_thermal"] == pytest.approx(0.47)
        assert loaded.components["turbine"]["N_design"] == pytest.approx(3600.0)

    def test_enum_serialized_by_value(self, tmp_path):
        path = tmp_path / "cycle.json"
        save_cycle_json(_make_record(), path)
        with open(path) as f:
            data = json.load(f)
        assert data["parameters"]["topology"] == "standard"
        assert "_array_data" not in data

    def test_arrays_in_companion_file(self, tmp_path):
        path = tmp_path / "cycle.json"
        save_cycle_json(_make_record(), path)
        assert (tmp_path / "cycle.h5").exists()

        loaded = load_cycle_json(path)
        np.testing.assert_allclose(loaded.arrays["temperature"], np.linspace(305.15, 823.15, 10))

    def test_no_arrays_no_companion(self, tmp_path):
        path = tmp_path / "bare.json"
        save_cycle_json(CycleRecord(), path)
        assert not (tmp_path / "bare.h5").exists()
        assert load_cycle_json(path).arrays == {}


class TestHdf5:
    def test_round_trip(self, tmp_path):
        arrays = {"a": np.arange(5.0), "b": np.eye(3)}
        path = tmp_path / "arrays.h5"
        save_arrays_hdf5(arrays, path)
        loaded = load_arrays_hdf5(path)
        assert set(loaded) == {"a", "b"}
        np.testing.assert_array_equal(loaded["b"], np.eye(3))
