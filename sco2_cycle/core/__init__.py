"""Core modules for sCO2 Cycle.

This package contains the property layer and persistence:
- co2_props: CoolProp-backed CO2 equation-of-state oracle
- config: Cycle record persistence (JSON + HDF5)
"""
