"""Physical constants and conversion factors used throughout the package.

Cycle quantities use the solver units (K, kPa, kJ/kg, kW); the wind
engine works in SI and atmospheres.
"""

import math

# Thermodynamic
T_CELSIUS_OFFSET = 273.15  # K
R_AIR = 287.15  # J/(kg·K) specific gas constant of dry air

# Atmospheric
P_ATM = 101325.0  # Pa standard atmospheric pressure
RHO_AIR_STD = 1.225  # kg/m³ air density at 15 °C, 1 atm

# Mathematical
DEG_TO_RAD = math.pi / 180.0

# Time
HOURS_PER_YEAR = 8760.0
