"""Optimization framework for sCO2 Cycle.

Provides the bounded derivative-free maximizer and the design and
off-design optimization / target-seeking wrappers built on it.
"""
