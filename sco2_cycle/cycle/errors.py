"""Error codes and exceptions for the cycle solver.

Solver internals raise :class:`CycleError`; the public methods of
:class:`~sco2_cycle.cycle.solver.RecompCycle` catch it (together with
:class:`~sco2_cycle.core.co2_props.PropertyError`) and hand the integer
code back to the caller.  Codes are grouped by the sub-problem that failed
so a caller can tell which loop did not converge.
"""

from __future__ import annotations

# Component maps.  Code 1 is shared by three failures; the warning logged
# with it names the one that occurred.
COMPRESSOR_OUT_OF_MAP = 1
COMPRESSOR_OUTLET_FAILED = 2
RECOMPRESSOR_NOT_CONVERGED = 1
NO_PHX_SOLUTION = 1

# Heat exchanger UA calculation
HX_NEGATIVE_DUTY = 4
HX_INLET_TEMPERATURES = 5
HX_HOT_PRESSURE_RISE = 6
HX_COLD_PRESSURE_RISE = 7
HX_HOT_INLET_STATE = 9
HX_SECOND_LAW = 11
HX_HOT_NODE_STATE = 12
HX_COLD_NODE_STATE = 13
HX_UA_NOT_FINITE = 14

# Turbine sizing.  Shares 7 with HX_COLD_PRESSURE_RISE; the logged message
# tells them apart.
TURBINE_SPEED_UNDEFINED = 7

# Design solver
NON_POSITIVE_NET_WORK = 25
NON_POSITIVE_MASS_FLOW = 29
T9_NOT_CONVERGED = 31
T8_NOT_CONVERGED = 35
DESIGN_OPT_NO_SOLUTION = 87

# Off-design solver
MASS_FLOW_NOT_CONVERGED = 42
TARGET_NOT_BRACKETED = 26
TARGET_NOT_CONVERGED = 82

# Off-design optimizers
TARGET_OPT_NO_SOLUTION = 98
MAX_OUTPUT_NOT_FOUND = 99
OFF_DESIGN_OPT_NO_SOLUTION = 111
TARGET_ABOVE_MAX_OUTPUT = 123

# Off-design entry point called before any design was solved and sized
NO_DESIGN = 150

# auto_opt_design_hit_eta input / search failure
HIT_ETA_FAILED = -1


class CycleError(Exception):
    """A fatal cycle-solver failure identified by an integer code."""

    def __init__(self, code: int, message: str = ""):
        self.code = code
        super().__init__(message or f"Cycle solver error {code}")


class SecondLawViolation(CycleError):
    """Cold stream computed hotter than the hot stream inside a recuperator.

    Not fatal inside the nested temperature loops: it means the current
    temperature guess is too low.
    """

    def __init__(self, message: str = ""):
        super().__init__(HX_SECOND_LAW, message or "Second-law violation in heat exchanger")
