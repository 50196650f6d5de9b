"""Recompression Brayton cycle analysis for sCO2 Cycle.

Provides turbomachinery and heat exchanger component models, the
design-point and off-design cycle solvers, and the ``RecompCycle``
solver context that ties them together.
"""
