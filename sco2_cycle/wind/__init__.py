"""Wind-farm wake and power model.

Evaluates per-turbine power, thrust and turbulence for a farm layout
using one of four wake propagation models.
"""
