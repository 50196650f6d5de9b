"""Input validation for the cycle solver."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Severity(Enum):
    """Severity level for validation messages."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass
class ValidationMessage:
    """A single validation finding."""

    severity: Severity
    parameter: str
    message: str
    value: Any = None
    limit: Any = None


@dataclass
class ValidationResult:
    """Aggregated validation result."""

    messages: list[ValidationMessage] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not any(m.severity == Severity.ERROR for m in self.messages)

    @property
    def has_warnings(self) -> bool:
        return any(m.severity == Severity.WARNING for m in self.messages)

    @property
    def errors(self) -> list[ValidationMessage]:
        return [m for m in self.messages if m.severity == Severity.ERROR]

    @property
    def warnings(self) -> list[ValidationMessage]:
        return [m for m in self.messages if m.severity == Severity.WARNING]

    def add(self, severity: Severity, parameter: str, message: str, **kwargs: Any) -> None:
        self.messages.append(
            ValidationMessage(severity=severity, parameter=parameter, message=message, **kwargs)
        )

    def error(self, parameter: str, message: str, **kwargs: Any) -> None:
        self.add(Severity.ERROR, parameter, message, **kwargs)

    def warning(self, parameter: str, message: str, **kwargs: Any) -> None:
        self.add(Severity.WARNING, parameter, message, **kwargs)

    def info(self, parameter: str, message: str, **kwargs: Any) -> None:
        self.add(Severity.INFO, parameter, message, **kwargs)

    def merge(self, other: ValidationResult) -> None:
        self.messages.extend(other.messages)

    def text(self) -> str:
        """All messages joined one per line."""
        return "\n".join(m.message for m in self.messages)



# --- Common validators ---


def validate_positive(name: str, value: float, result: ValidationResult) -> None:
    """Validate that a value is strictly positive."""
    if value <= 0:
        result.error(name, f"{name} must be positive, got {value}")


def validate_range(
    name: str,
    value: float,
    low: float,
    high: float,
    result: ValidationResult,
    severity: Severity = Severity.ERROR,
) -> None:
    """Validate that a value falls within [low, high]."""
    if value < low or value > high:
        result.add(severity, name, f"{name} = {value} is outside [{low}, {high}]")


# --- Cycle inputs ---


def clamp_efficiency(name: str, label: str, eta: float, eta_min: float, result: ValidationResult) -> float:
    """Clamp an isentropic efficiency into [eta_min, 1], warning on every change."""
    if eta > 1.0:
        result.warning(name, f"The {label} isentropic efficiency, {eta:g}, was reset to theoretical maximum 1.0",
                       value=eta, limit=1.0)
        return 1.0
    if eta < eta_min:
        result.warning(
            name,
            f"The {label} isentropic efficiency, {eta:g}, was increased to the internal limit of "
            f"{eta_min:g} to improve solution stability",
            value=eta,
            limit=eta_min,
        )
        return eta_min
    return eta


def clamp_pressure_limit(P_high_limit: float, P_max: float, P_min: float, result: ValidationResult) -> float:
    """Cap the high-side pressure limit at ``P_max``; below ``P_min`` is an error.

    Pressures in kPa.
    """
    if P_high_limit >= P_max:
        result.warning(
            "P_high_limit",
            f"The upper pressure limit, {P_high_limit:g} [kPa], was set to the internal limit in the CO2 "
            f"properties code {P_max:g} [kPa]",
            value=P_high_limit,
            limit=P_max,
        )
        P_high_limit = P_max
    if P_high_limit <= P_min:
        result.error(
            "P_high_limit",
            f"The upper pressure limit, {P_high_limit:g} [kPa], must be greater than "
            f"{P_min:g} [kPa] to ensure solution stability",
            value=P_high_limit,
            limit=P_min,
        )
    return P_high_limit


def validate_cycle_design(params: Any, T_crit: float) -> ValidationResult:
    """Run checks on the inputs of a single design-point solve.

    Args:
        params: Design inputs with the attributes of ``DesignParameters``.
        T_crit: Critical temperature of the working fluid [K].
    """
    result = ValidationResult()

    validate_positive("W_dot_net", params.W_dot_net, result)
    validate_positive("P_mc_in", params.P_mc_in, result)

    if params.P_mc_out <= params.P_mc_in:
        result.error(
            "P_mc_out",
            f"Compressor outlet pressure {params.P_mc_out:g} kPa must exceed the inlet pressure "
            f"{params.P_mc_in:g} kPa",
            value=params.P_mc_out,
            limit=params.P_mc_in,
        )
    if params.P_mc_out > params.P_high_limit:
        result.warning(
            "P_mc_out",
            f"Compressor outlet pressure {params.P_mc_out:g} kPa is above the high-side limit "
            f"{params.P_high_limit:g} kPa",
            value=params.P_mc_out,
            limit=params.P_high_limit,
        )

    if params.T_t_in <= params.T_mc_in:
        result.error("T_t_in", "Turbine inlet temperature must exceed the compressor inlet temperature")
    if params.T_mc_in <= T_crit:
        result.warning(
            "T_mc_in",
            f"Compressor inlet temperature {params.T_mc_in:.2f} K is not above the critical temperature",
            value=params.T_mc_in,
            limit=T_crit,
        )

    for name in ("eta_mc", "eta_rc", "eta_t"):
        eta = getattr(params, name)
        if eta <= 0.0 or eta > 1.0:
            result.error(name, f"{name} = {eta} is outside (0, 1]", value=eta)

    validate_range("recomp_frac", params.recomp_frac, 0.0, 1.0, result)
    if params.recomp_frac == 1.0:
        result.error("recomp_frac", "A recompression fraction of 1 leaves no flow through the precooler")
    validate_range("UA_LT", params.UA_LT, 0.0, math.inf, result)
    validate_range("UA_HT", params.UA_HT, 0.0, math.inf, result)

    return result
