"""Result records and project I/O for sCO2 Cycle.

Solved cycles are saved as JSON (metadata, parameters, performance and
component records) with the node state arrays in a companion HDF5 file.
The solver itself never touches disk; the CLI and reports go through
these helpers.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

import h5py
import numpy as np

from sco2_cycle.cycle.design import DesignSolved
from sco2_cycle.cycle.off_design import OffDesignSolution
from sco2_cycle.cycle.parameters import OffDesignParameters

logger = logging.getLogger(__name__)


@dataclass
class ProjectMeta:
    """Top-level project metadata."""

    name: str = "Untitled"
    description: str = ""
    author: str = ""
    version: str = "0.1.0"
    created: str = ""
    modified: str = ""

    def touch(self) -> None:
        """Update the modified timestamp (and the created one on first save)."""
        self.modified = datetime.now(timezone.utc).isoformat()
        if not self.created:
            self.created = self.modified


@dataclass
class CycleRecord:
    """Persisted result of a design or off-design solve.

    Node arrays (temperature, pressure, ...) are kept out of the JSON
    and written to HDF5.
    """

    meta: ProjectMeta = field(default_factory=ProjectMeta)
    kind: str = "design"  # "design" or "off_design"
    parameters: dict[str, Any] = field(default_factory=dict)
    performance: dict[str, Any] = field(default_factory=dict)
    components: dict[str, Any] = field(default_factory=dict)
    off_design: dict[str, Any] = field(default_factory=dict)

    _array_data: dict[str, np.ndarray] = field(default_factory=dict, repr=False)

    @property
    def arrays(self) -> dict[str, np.ndarray]:
        return self._array_data

    @classmethod
    def from_design(cls, solved: DesignSolved, meta: ProjectMeta | None = None) -> CycleRecord:
        """Build a record from a finalized design."""
        summary = solved.summary()
        return cls(
            meta=meta or ProjectMeta(),
            kind="design",
            parameters=asdict(solved.params),
            performance=summary["performance"],
            components={
                "main_compressor": summary["main_compressor"],
                "recompressor": summary["recompressor"],
                "turbine": summary["turbine"],
                "heat_exchangers": summary["heat_exchangers"],
            },
            _array_data=solved.states.as_arrays(),
        )

    def add_off_design(
        self,
        params: OffDesignParameters,
        solution: OffDesignSolution,
        arrays: dict[str, np.ndarray] | None = None,
    ) -> None:
        """Attach an off-design point; its node arrays get an ``od_`` prefix."""
        self.kind = "off_design"
        self.off_design = {"parameters": asdict(params), "performance": asdict(solution)}
        for key, arr in (arrays or {}).items():
            self._array_data[f"od_{key}"] = arr


class _NumpyEncoder(json.JSONEncoder):
    """JSON encoder that handles numpy and enum types."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, np.ndarray):
            return obj.tolist()
        if isinstance(obj, (np.integer,)):
            return int(obj)
        if isinstance(obj, (np.floating,)):
            return float(obj)
        if isinstance(obj, Enum):
            return obj.value
        return super().default(obj)


def save_cycle_json(record: CycleRecord, path: str | Path) -> None:
    """Save a cycle record to JSON, arrays to a companion ``.h5`` file."""
    path = Path(path)
    record.meta.touch()

    data = asdict(record)
    data.pop("_array_data", None)

    with open(path, "w") as f:
        json.dump(data, f, indent=2, cls=_NumpyEncoder)

    logger.info("Saved cycle record to %s", path)

    if record._array_data:
        save_arrays_hdf5(record._array_data, path.with_suffix(".h5"))


def load_cycle_json(path: str | Path) -> CycleRecord:
    """Load a cycle record; a companion ``.h5`` file is read when present."""
    path = Path(path)
    with open(path) as f:
        data = json.load(f)

    meta = ProjectMeta(**data.pop("meta", {}))
    record = CycleRecord(meta=meta, **data)

    h5_path = path.with_suffix(".h5")
    if h5_path.exists():
        record._array_data = load_arrays_hdf5(h5_path)

    return record


def save_arrays_hdf5(arrays: dict[str, np.ndarray], path: str | Path) -> None:
    """Save a dictionary of numpy arrays to HDF5."""
    path = Path(path)
    with h5py.File(path, "w") as f:
        for key, arr in arrays.items():
            f.create_dataset(key, data=arr)
        f.attrs["created"] = datetime.now(timezone.utc).isoformat()
    logger.info("Saved %d arrays to %s", len(arrays), path)


def load_arrays_hdf5(path: str | Path) -> dict[str, np.ndarray]:
    """Load all datasets from an HDF5 file into a dictionary."""
    path = Path(path)
    arrays: dict[str, np.ndarray] = {}
    with h5py.File(path, "r") as f:
        for key in f.keys():
            arrays[key] = f[key][:]
    return arrays
