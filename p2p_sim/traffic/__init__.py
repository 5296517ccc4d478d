"""Traffic generation for scenario simulation.

This package provides flow specifications, the sources and sinks installed
for them, and interarrival patterns (constant, Poisson, Pareto, bursty).
"""
