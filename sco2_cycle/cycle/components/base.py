"""Base classes for cycle components and the cycle state vector.

Defines the 10-node thermodynamic state container shared by the design
and off-design solvers and the common interface of the turbomachinery
components (main compressor, recompressor, turbine).
"""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Iterator

import numpy as np

from sco2_cycle.core.co2_props import CO2State

N_NODES = 10

NODE_NAMES = {
    1: "MC inlet",
    2: "MC outlet",
    3: "LTR cold outlet",
    4: "HTR cold inlet",
    5: "HTR cold outlet",
    6: "Turbine inlet",
    7: "Turbine outlet",
    8: "HTR hot outlet",
    9: "LTR hot outlet",
    10: "RC outlet",
}


@dataclass
class CycleNode:
    """Thermodynamic state at one cycle node."""

    T: float = float("nan")  # K
    P: float = float("nan")  # kPa
    h: float = float("nan")  # kJ/kg
    s: float = float("nan")  # kJ/(kg·K)
    D: float = float("nan")  # kg/m³

    def set_state(self, state: CO2State) -> None:
        """Copy T, h, s and D from an oracle state (pressure is kept)."""
        self.T = state.temp
        self.h = state.enth
        self.s = state.entr
        self.D = state.dens


class CycleStateVector:
    """Fixed-capacity container of the 10 cycle nodes.

    Nodes are addressed with the 1-based numbering used throughout the
    cycle documentation (1 = main compressor inlet ... 10 = recompressor
    outlet).  Access outside 1..10 raises ``IndexError``.
    """

    def __init__(self) -> None:
        self._nodes = [CycleNode() for _ in range(N_NODES)]

    def __getitem__(self, index: int) -> CycleNode:
        if not 1 <= index <= N_NODES:
            raise IndexError(f"Cycle node index must be in 1..{N_NODES}, got {index}")
        return self._nodes[index - 1]

    def __len__(self) -> int:
        return N_NODES

    def __iter__(self) -> Iterator[CycleNode]:
        return iter(self._nodes)

    def reset(self) -> None:
        """Invalidate every node before a new solve."""
        self._nodes = [CycleNode() for _ in range(N_NODES)]

    def copy(self) -> CycleStateVector:
        return copy.deepcopy(self)

    def temperatures(self) -> np.ndarray:
        return np.array([n.T for n in self._nodes])

    def pressures(self) -> np.ndarray:
        return np.array([n.P for n in self._nodes])

    def enthalpies(self) -> np.ndarray:
        return np.array([n.h for n in self._nodes])

    def entropies(self) -> np.ndarray:
        return np.array([n.s for n in self._nodes])

    def densities(self) -> np.ndarray:
        return np.array([n.D for n in self._nodes])

    def as_arrays(self) -> dict[str, np.ndarray]:
        """Node properties keyed by short name, for persistence."""
        return {
            "temperature": self.temperatures(),
            "pressure": self.pressures(),
            "enthalpy": self.enthalpies(),
            "entropy": self.entropies(),
            "density": self.densities(),
        }


class CycleComponent(ABC):
    """Abstract base class for a sized cycle component.

    Components are sized once from a converged design solution and then
    evaluated at off-design conditions against that sizing.
    """

    name: str = ""
    component_type: str = ""

    @property
    @abstractmethod
    def is_sized(self) -> bool:
        """True once the design-point sizing has been run."""
        ...

    @abstractmethod
    def design_summary(self) -> dict[str, Any]:
        """Sized geometry and design-point parameters."""
        ...

    def summary(self) -> dict[str, Any]:
        """Return a summary dictionary of the component state."""
        d: dict[str, Any] = {"name": self.name, "type": self.component_type}
        if self.is_sized:
            d.update(self.design_summary())
        return d
